"""
Core data models for the whiteboard.

This module defines the fundamental data structures of the graph authoring core:
placed block instances (nodes), directed connections between them (edges), and
the graph that owns both collections.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Union, Optional
from enum import Enum
import copy

from .exceptions import WhiteboardError


# Opaque per-node configuration values. Lists are allowed because the standard
# Constructor block stores its parameter names as one.
ConfigValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]

NODE_RENDER_TYPE = "customNode"


class ValidationError(WhiteboardError):
    """Exception raised when graph validation fails."""
    pass


class NodeStatus(Enum):
    """Presentational execution status of a node."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


def is_config_value(value: Any) -> bool:
    """Check that a value belongs to the closed set of config value kinds."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, list):
        return all(is_config_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_config_value(v) for k, v in value.items())
    return False


@dataclass
class Position:
    """Canvas coordinates of a node."""
    x: float = 0.0
    y: float = 0.0
    
    def offset(self, dx: float, dy: float) -> 'Position':
        """Return a new position shifted by the given delta."""
        return Position(self.x + dx, self.y + dy)
    
    def to_dict(self) -> Dict[str, float]:
        return {'x': self.x, 'y': self.y}


@dataclass
class Node:
    """Represents one placed block instance on the whiteboard."""
    id: str
    type_id: str
    position: Position = field(default_factory=Position)
    label: str = ""
    description: str = ""
    status: NodeStatus = NodeStatus.IDLE
    config: Dict[str, ConfigValue] = field(default_factory=dict)
    
    def validate(self) -> List[ValidationError]:
        """Validate the node and return any errors."""
        errors = []
        if not self.id:
            errors.append(ValidationError("Node id must not be empty"))
        if not isinstance(self.status, NodeStatus):
            errors.append(ValidationError(f"Node {self.id} has invalid status: {self.status!r}"))
        for key, value in self.config.items():
            if not isinstance(key, str) or not is_config_value(value):
                errors.append(ValidationError(f"Node {self.id} has unsupported config value for '{key}'"))
        return errors
    
    def copy(self) -> 'Node':
        """Return a deep copy that shares no mutable state with this node."""
        return Node(
            id=self.id,
            type_id=self.type_id,
            position=Position(self.position.x, self.position.y),
            label=self.label,
            description=self.description,
            status=self.status,
            config=copy.deepcopy(self.config)
        )


@dataclass(frozen=True)
class Edge:
    """Represents a directed connection from one node's output to another's input."""
    id: str
    source_id: str
    target_id: str
    
    @property
    def is_self_loop(self) -> bool:
        return self.source_id == self.target_id
    
    def touches(self, node_id: str) -> bool:
        """Check whether either endpoint is the given node."""
        return self.source_id == node_id or self.target_id == node_id


@dataclass
class Graph:
    """A complete whiteboard graph: nodes and edges keyed by id."""
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, Edge] = field(default_factory=dict)
    
    def copy(self) -> 'Graph':
        """Return a fully independent copy of this graph."""
        return Graph(
            nodes={node_id: node.copy() for node_id, node in self.nodes.items()},
            edges=dict(self.edges)
        )
    
    def dangling_edges(self) -> List[Edge]:
        """Edges whose source or target is not a node of this graph."""
        return [
            edge for edge in self.edges.values()
            if edge.source_id not in self.nodes or edge.target_id not in self.nodes
        ]
    
    def validate(self) -> List[ValidationError]:
        """Validate the entire graph and return any errors."""
        errors = []
        
        for node_id, node in self.nodes.items():
            if node.id != node_id:
                errors.append(ValidationError(f"Node keyed as {node_id} carries id {node.id}"))
            errors.extend(node.validate())
        
        for edge_id, edge in self.edges.items():
            if edge.id != edge_id:
                errors.append(ValidationError(f"Edge keyed as {edge_id} carries id {edge.id}"))
            if edge.source_id not in self.nodes:
                errors.append(ValidationError(f"Edge {edge_id} references missing source node: {edge.source_id}"))
            if edge.target_id not in self.nodes:
                errors.append(ValidationError(f"Edge {edge_id} references missing target node: {edge.target_id}"))
        
        return errors
