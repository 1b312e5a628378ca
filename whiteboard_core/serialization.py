"""
Document codec for whiteboard graphs.

Encodes a ``Graph`` into the persisted JSON document shape and decodes it back.
Decoding is defensive: missing collections become empty, unreadable entries
are skipped, and edges whose endpoints are missing are handled according to
a ``DanglingEdgePolicy``. Anything recovered this way is reported in
``DecodedDocument.warnings``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping

from .identifiers import edge_id_for
from .models import NODE_RENDER_TYPE, Edge, Graph, Node, NodeStatus, Position, is_config_value

logger = logging.getLogger(__name__)


class DanglingEdgePolicy(Enum):
    """What to do with loaded edges that reference a missing node."""
    DROP = "drop"
    KEEP = "keep"


@dataclass
class DecodedDocument:
    """Result of decoding a stored document."""
    graph: Graph
    warnings: List[str] = field(default_factory=list)
    dropped_edges: List[str] = field(default_factory=list)
    
    @property
    def recovered(self) -> bool:
        return bool(self.warnings)


def node_to_dict(node: Node) -> Dict[str, Any]:
    return {
        'id': node.id,
        'type': NODE_RENDER_TYPE,
        'position': node.position.to_dict(),
        'data': {
            'label': node.label,
            'type': node.type_id,
            'description': node.description,
            'status': node.status.value,
            'config': node.config,
        },
    }


def edge_to_dict(edge: Edge) -> Dict[str, Any]:
    return {'id': edge.id, 'source': edge.source_id, 'target': edge.target_id}


def graph_to_document(graph: Graph) -> Dict[str, Any]:
    """Encode the nodes and edges collections of a graph."""
    return {
        'nodes': [node_to_dict(node) for node in graph.nodes.values()],
        'edges': [edge_to_dict(edge) for edge in graph.edges.values()],
    }


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def node_from_dict(raw: Mapping[str, Any], warnings: List[str]) -> Node:
    """Decode one node entry, substituting defaults for unreadable fields."""
    node_id = raw.get('id')
    if not isinstance(node_id, str) or not node_id:
        raise ValueError(f"node entry without an id: {raw!r}")
    
    data = raw.get('data')
    if not isinstance(data, Mapping):
        warnings.append(f"Node {node_id} has no data block")
        data = {}
    
    position = raw.get('position')
    if not isinstance(position, Mapping):
        warnings.append(f"Node {node_id} has no position")
        position = {}
    
    try:
        status = NodeStatus(data.get('status', NodeStatus.IDLE.value))
    except ValueError:
        warnings.append(f"Node {node_id} has unknown status {data.get('status')!r}")
        status = NodeStatus.IDLE
    
    config = data.get('config', {})
    if not isinstance(config, Mapping) or not is_config_value(dict(config)):
        warnings.append(f"Node {node_id} has unreadable config")
        config = {}
    
    return Node(
        id=node_id,
        type_id=str(data.get('type', '')),
        position=Position(_number(position.get('x')), _number(position.get('y'))),
        label=str(data.get('label') or ''),
        description=str(data.get('description', '') or ''),
        status=status,
        config=dict(config)
    )


def edge_from_dict(raw: Mapping[str, Any]) -> Edge:
    source_id = raw.get('source')
    target_id = raw.get('target')
    if not isinstance(source_id, str) or not isinstance(target_id, str):
        raise ValueError(f"edge entry without endpoints: {raw!r}")
    edge_id = raw.get('id')
    if not isinstance(edge_id, str) or not edge_id:
        edge_id = edge_id_for(source_id, target_id)
    return Edge(id=edge_id, source_id=source_id, target_id=target_id)


def _collection(document: Mapping[str, Any], key: str, warnings: List[str]) -> List[Any]:
    value = document.get(key)
    if isinstance(value, list):
        return value
    warnings.append(f"Document has no '{key}' array; treating it as empty")
    return []


def document_to_graph(document: Mapping[str, Any],
                      policy: DanglingEdgePolicy = DanglingEdgePolicy.DROP) -> DecodedDocument:
    """Decode a stored document into a well-keyed graph."""
    warnings: List[str] = []
    graph = Graph()
    
    for raw in _collection(document, 'nodes', warnings):
        if not isinstance(raw, Mapping):
            warnings.append(f"Skipped non-object node entry: {raw!r}")
            continue
        try:
            node = node_from_dict(raw, warnings)
        except ValueError as exc:
            warnings.append(f"Skipped node: {exc}")
            continue
        if node.id in graph.nodes:
            warnings.append(f"Skipped duplicate node id {node.id}")
            continue
        graph.nodes[node.id] = node
    
    dropped: List[str] = []
    for raw in _collection(document, 'edges', warnings):
        if not isinstance(raw, Mapping):
            warnings.append(f"Skipped non-object edge entry: {raw!r}")
            continue
        try:
            edge = edge_from_dict(raw)
        except ValueError as exc:
            warnings.append(f"Skipped edge: {exc}")
            continue
        if edge.id in graph.edges:
            warnings.append(f"Skipped duplicate edge id {edge.id}")
            continue
        dangling = edge.source_id not in graph.nodes or edge.target_id not in graph.nodes
        if dangling:
            if policy is DanglingEdgePolicy.DROP:
                dropped.append(edge.id)
                warnings.append(f"Dropped edge {edge.id} referencing a missing node")
                continue
            warnings.append(f"Kept edge {edge.id} referencing a missing node")
        graph.edges[edge.id] = edge
    
    for message in warnings:
        logger.warning("Recovered malformed document: %s", message)
    
    return DecodedDocument(graph=graph, warnings=warnings, dropped_edges=dropped)
