"""
Whiteboard Core - the graph authoring and persistence engine behind the
smart-contract workflow whiteboard.

Users drop typed blocks from a palette onto a canvas, wire them into a
directed graph and save, load or export the result. This package holds the
graph model, the operations that mutate it, selection tracking, gesture
handling and the document persistence contract.
"""

__version__ = "0.1.0"

from .models import Node, Edge, Graph, Position, NodeStatus, ValidationError
from .exceptions import (
    WhiteboardError, NotFoundError, MalformedDocumentError, InvariantViolation, StorageError
)
from .identifiers import IdGenerator, edge_id_for
from .block_catalog import BlockCatalog, BlockDefinition, Category
from .graph_store import GraphStore, GraphChange
from .selection import SelectionTracker
from .serialization import DanglingEdgePolicy, graph_to_document, document_to_graph
from .storage import StorageBackend, MemoryStorage, JsonFileStorage, SqliteStorage
from .persistence import PersistenceGateway
from .interaction import InteractionController, ViewportState, DropPayload, HandleKind
from .config import WhiteboardSettings, resolve_setting

__all__ = [
    "Node",
    "Edge",
    "Graph",
    "Position",
    "NodeStatus",
    "ValidationError",
    "WhiteboardError",
    "NotFoundError",
    "MalformedDocumentError",
    "InvariantViolation",
    "StorageError",
    "IdGenerator",
    "edge_id_for",
    "BlockCatalog",
    "BlockDefinition",
    "Category",
    "GraphStore",
    "GraphChange",
    "SelectionTracker",
    "DanglingEdgePolicy",
    "graph_to_document",
    "document_to_graph",
    "StorageBackend",
    "MemoryStorage",
    "JsonFileStorage",
    "SqliteStorage",
    "PersistenceGateway",
    "InteractionController",
    "ViewportState",
    "DropPayload",
    "HandleKind",
    "WhiteboardSettings",
    "resolve_setting",
]
