"""
Graph Store: the authoritative owner of the whiteboard's nodes and edges.

Every public mutation runs under the store lock and leaves the graph
well-formed on return:

  - node ids and edge ids are unique
  - every edge's endpoints are nodes of the graph (deleting a node removes
    its incident edges in the same step)

Self-loops and cycles are allowed; edges are deduplicated only by their
``(source, target)`` pair. ``replace`` is the one exception to the
endpoint rule, since a loaded document is trusted as-is.

Observers registered with ``subscribe`` receive a ``GraphChange`` after each
successful mutation. They must not call back into mutating operations.
"""

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from .exceptions import InvariantViolation, NotFoundError
from .identifiers import IdGenerator, edge_id_for
from .models import (
    ConfigValue, Edge, Graph, Node, NodeStatus, Position, ValidationError, is_config_value
)

logger = logging.getLogger(__name__)

PositionLike = Union[Position, Tuple[float, float], Mapping[str, float]]

DUPLICATE_OFFSET = (50.0, 50.0)
COPY_SUFFIX = " (Copy)"

UPDATABLE_FIELDS = frozenset({'label', 'description', 'status', 'config', 'type_id'})

# Starter workflow shown when the whiteboard first opens.
DEFAULT_WORKFLOW = [
    {
        'type_id': 'Deploy',
        'position': (100.0, 100.0),
        'label': 'Deploy Contract',
        'description': 'Deploy smart contract to blockchain',
        'config': {'network': 'ethereum', 'gasLimit': '3000000'},
    },
    {
        'type_id': 'Constructor',
        'position': (400.0, 100.0),
        'label': 'Initialize Storage',
        'description': 'Set initial contract state',
        'config': {'params': ['owner', 'totalSupply']},
    },
]


@dataclass(frozen=True)
class GraphChange:
    """Describes one committed mutation of the store."""
    kind: str
    node_ids: FrozenSet[str] = frozenset()
    edge_ids: FrozenSet[str] = frozenset()


def to_position(value: PositionLike) -> Position:
    """Coerce a tuple, ``{x, y}`` mapping or Position into a new Position."""
    if isinstance(value, Position):
        return Position(float(value.x), float(value.y))
    if isinstance(value, Mapping):
        return Position(float(value.get('x', 0.0)), float(value.get('y', 0.0)))
    x, y = value
    return Position(float(x), float(y))


def to_status(value: Union[str, NodeStatus]) -> NodeStatus:
    if isinstance(value, NodeStatus):
        return value
    return NodeStatus(value)


def _check_config(config: Mapping[str, Any]) -> Dict[str, ConfigValue]:
    if not isinstance(config, Mapping):
        raise ValueError("config must be a mapping")
    for key, value in config.items():
        if not isinstance(key, str) or not is_config_value(value):
            raise ValueError(f"Unsupported config value for key {key!r}")
    return copy.deepcopy(dict(config))


class GraphStore:
    """Owns the node and edge collections and enforces graph invariants."""
    
    def __init__(self, id_generator: Optional[IdGenerator] = None):
        self.id_generator = id_generator or IdGenerator()
        self._nodes: Dict[str, Node] = {}
        self._edges: Dict[str, Edge] = {}
        self._lock = threading.RLock()
        self._observers: List[Callable[[GraphChange], None]] = []
    
    # ─────────────────────────────────────────────────────────────────
    # Observers
    # ─────────────────────────────────────────────────────────────────
    
    def subscribe(self, callback: Callable[[GraphChange], None]):
        """Register a read-only listener for committed changes."""
        if callback not in self._observers:
            self._observers.append(callback)
    
    def unsubscribe(self, callback: Callable[[GraphChange], None]):
        if callback in self._observers:
            self._observers.remove(callback)
    
    def _notify(self, change: GraphChange):
        for callback in list(self._observers):
            callback(change)
    
    # ─────────────────────────────────────────────────────────────────
    # Nodes
    # ─────────────────────────────────────────────────────────────────
    
    def add_node(self, type_id: str, position: PositionLike = (0.0, 0.0),
                 initial_data: Optional[Mapping[str, Any]] = None) -> Node:
        """Create a node with a fresh id and return a copy of it."""
        data = dict(initial_data or {})
        unknown = set(data) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown node fields: {sorted(unknown)}")
        
        with self._lock:
            node = Node(
                id=self.id_generator.next_node_id(),
                type_id=data.get('type_id', type_id),
                position=to_position(position),
                label=data.get('label', type_id),
                description=data.get('description', ''),
                status=to_status(data.get('status', NodeStatus.IDLE)),
                config=_check_config(data.get('config', {}))
            )
            self._nodes[node.id] = node
            result = node.copy()
        
        logger.debug("Added node %s (%s) at (%s, %s)", node.id, node.type_id,
                     node.position.x, node.position.y)
        self._notify(GraphChange('node_added', frozenset({node.id})))
        return result
    
    def update_node(self, node_id: str, partial_data: Mapping[str, Any]) -> Node:
        """Merge fields into an existing node. The id never changes."""
        unknown = set(partial_data) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown node fields: {sorted(unknown)}")
        
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NotFoundError('node', node_id)
            
            # Validate everything before touching the node
            status = to_status(partial_data['status']) if 'status' in partial_data else node.status
            config = _check_config(partial_data['config']) if 'config' in partial_data else node.config
            
            node.label = partial_data.get('label', node.label)
            node.description = partial_data.get('description', node.description)
            node.type_id = partial_data.get('type_id', node.type_id)
            node.status = status
            node.config = config
            result = node.copy()
        
        logger.debug("Updated node %s: %s", node_id, sorted(partial_data))
        self._notify(GraphChange('node_updated', frozenset({node_id})))
        return result
    
    def move_node(self, node_id: str, position: PositionLike):
        """Set a node's position; nothing else about the node changes."""
        new_position = to_position(position)
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise NotFoundError('node', node_id)
            node.position = new_position
        self._notify(GraphChange('node_moved', frozenset({node_id})))
    
    def delete_node(self, node_id: str) -> bool:
        """Remove a node and its incident edges. Absent ids are a no-op."""
        change = self.delete_nodes([node_id])
        return node_id in change.node_ids
    
    def delete_nodes(self, node_ids: Iterable[str]) -> GraphChange:
        """Remove several nodes and every edge touching any of them at once."""
        requested = set(node_ids)
        with self._lock:
            doomed_nodes = frozenset(nid for nid in requested if nid in self._nodes)
            doomed_edges = frozenset(
                edge.id for edge in self._edges.values()
                if edge.source_id in doomed_nodes or edge.target_id in doomed_nodes
            )
            for edge_id in doomed_edges:
                del self._edges[edge_id]
            for node_id in doomed_nodes:
                del self._nodes[node_id]
        
        change = GraphChange('nodes_deleted', doomed_nodes, doomed_edges)
        if doomed_nodes:
            logger.debug("Deleted nodes %s with %d incident edges",
                         sorted(doomed_nodes), len(doomed_edges))
            self._notify(change)
        return change
    
    def duplicate_node(self, node_id: str) -> Node:
        """Copy a node under a fresh id, offset and labelled as a copy.

        Edges are never duplicated.
        """
        with self._lock:
            original = self._nodes.get(node_id)
            if original is None:
                raise NotFoundError('node', node_id)
            clone = original.copy()
            clone.id = self.id_generator.next_node_id()
            clone.position = original.position.offset(*DUPLICATE_OFFSET)
            clone.label = f"{original.label}{COPY_SUFFIX}"
            self._nodes[clone.id] = clone
            result = clone.copy()
        
        logger.debug("Duplicated node %s as %s", node_id, clone.id)
        self._notify(GraphChange('node_added', frozenset({clone.id})))
        return result
    
    # ─────────────────────────────────────────────────────────────────
    # Edges
    # ─────────────────────────────────────────────────────────────────
    
    def connect(self, source_id: str, target_id: str) -> Edge:
        """Connect two existing nodes; reconnecting a pair returns the existing edge.

        Edges are matched on their endpoints, so an edge loaded under a
        foreign id still counts. If the derived id is already held by an
        edge between other endpoints, a numeric suffix keeps it unique.
        """
        with self._lock:
            if source_id not in self._nodes:
                raise NotFoundError('node', source_id)
            if target_id not in self._nodes:
                raise NotFoundError('node', target_id)
            
            existing = self._find_edge(source_id, target_id)
            if existing is not None:
                return existing
            
            base_id = edge_id_for(source_id, target_id)
            edge_id = base_id
            suffix = 1
            while edge_id in self._edges:
                edge_id = f"{base_id}-{suffix}"
                suffix += 1
            
            edge = Edge(id=edge_id, source_id=source_id, target_id=target_id)
            self._edges[edge_id] = edge
        
        logger.debug("Connected %s -> %s as %s", source_id, target_id, edge_id)
        self._notify(GraphChange('edge_added', frozenset({source_id, target_id}),
                                 frozenset({edge_id})))
        return edge
    
    def _find_edge(self, source_id: str, target_id: str) -> Optional[Edge]:
        for edge in self._edges.values():
            if edge.source_id == source_id and edge.target_id == target_id:
                return edge
        return None
    
    def delete_edge(self, edge_id: str) -> bool:
        """Remove an edge. Absent ids are a no-op."""
        with self._lock:
            edge = self._edges.pop(edge_id, None)
        if edge is None:
            return False
        logger.debug("Deleted edge %s", edge_id)
        self._notify(GraphChange('edge_deleted', edge_ids=frozenset({edge_id})))
        return True
    
    # ─────────────────────────────────────────────────────────────────
    # Whole-graph operations
    # ─────────────────────────────────────────────────────────────────
    
    def clear(self):
        """Remove every node and edge."""
        with self._lock:
            change = GraphChange('cleared', frozenset(self._nodes), frozenset(self._edges))
            self._nodes = {}
            self._edges = {}
        logger.debug("Cleared %d nodes and %d edges", len(change.node_ids), len(change.edge_ids))
        self._notify(change)
    
    def snapshot(self) -> Graph:
        """Return a full copy of the graph that shares nothing with the store."""
        with self._lock:
            return Graph(
                nodes={node_id: node.copy() for node_id, node in self._nodes.items()},
                edges=dict(self._edges)
            )
    
    def replace(self, graph: Graph):
        """Swap in the entire contents of another graph."""
        incoming = graph.copy()
        with self._lock:
            change = GraphChange('replaced', frozenset(self._nodes) | frozenset(incoming.nodes),
                                 frozenset(self._edges) | frozenset(incoming.edges))
            self._nodes = incoming.nodes
            self._edges = incoming.edges
            self.id_generator.observe_all(self._nodes)
        logger.debug("Replaced graph with %d nodes and %d edges",
                     len(incoming.nodes), len(incoming.edges))
        self._notify(change)
    
    def seed_default_workflow(self) -> List[Node]:
        """Populate the starter Deploy/Constructor nodes."""
        created = []
        for entry in DEFAULT_WORKFLOW:
            created.append(self.add_node(
                entry['type_id'], entry['position'],
                {key: entry[key] for key in ('label', 'description', 'config')}
            ))
        return created
    
    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────
    
    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes
    
    def get_node(self, node_id: str) -> Optional[Node]:
        with self._lock:
            node = self._nodes.get(node_id)
            return node.copy() if node else None
    
    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self._edges.get(edge_id)
    
    def nodes(self) -> List[Node]:
        with self._lock:
            return [node.copy() for node in self._nodes.values()]
    
    def edges(self) -> List[Edge]:
        with self._lock:
            return list(self._edges.values())
    
    def incident_edges(self, node_id: str) -> List[Edge]:
        with self._lock:
            return [edge for edge in self._edges.values() if edge.touches(node_id)]
    
    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {'nodes': len(self._nodes), 'edges': len(self._edges)}
    
    def validate(self) -> List[ValidationError]:
        """Check the current contents against the graph invariants."""
        return self.snapshot().validate()
    
    def assert_consistent(self):
        """Raise InvariantViolation if the graph is ill-formed."""
        errors = self.validate()
        if errors:
            raise InvariantViolation("Graph invariants violated", [str(e) for e in errors])
    
    def __len__(self) -> int:
        return len(self._nodes)
