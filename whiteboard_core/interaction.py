"""
Interaction Controller for the whiteboard canvas.

Translates UI gestures (palette drop, node drag, connection drag, clicks,
key presses, toolbar actions) into Graph Store operations. It is the only
writer into the store. Blocking UI prompts are injected as plain callables,
so the controller runs headless in tests:

    confirm(message) -> bool
    prompt(message, default) -> Optional[str]
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .block_catalog import BlockCatalog
from .graph_store import GraphChange, GraphStore
from .models import NODE_RENDER_TYPE, Edge, Graph, Node, Position
from .persistence import PersistenceGateway
from .selection import SelectionTracker

logger = logging.getLogger(__name__)

DELETE_KEYS = frozenset({'Delete', 'Backspace'})

CONFIRM_DELETE_NODE = "Are you sure you want to delete this node?"
CONFIRM_DELETE_SELECTION = "Delete the selected nodes?"
CONFIRM_CLEAR = "Clear all nodes and connections?"
PROMPT_EDIT_LABEL = "Edit node label:"


class HandleKind(Enum):
    """Connection handles on a node."""
    SOURCE = "source"   # output handle
    TARGET = "target"   # input handle


@dataclass
class ViewportState:
    """Current pan/zoom of the canvas, used to project drop coordinates."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    
    def world_to_screen(self, world_x: float, world_y: float) -> Tuple[float, float]:
        """Convert canvas coordinates to screen coordinates."""
        return (world_x + self.pan_x) * self.zoom, (world_y + self.pan_y) * self.zoom
    
    def screen_to_world(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """Convert screen coordinates to canvas coordinates."""
        return (screen_x / self.zoom) - self.pan_x, (screen_y / self.zoom) - self.pan_y


@dataclass
class DropPayload:
    """Transient palette → canvas transfer payload."""
    node_type: str
    label: str = ""
    type: str = NODE_RENDER_TYPE
    
    @classmethod
    def parse(cls, raw: Union[str, Mapping[str, Any], None]) -> Optional['DropPayload']:
        """Read a payload from its JSON text or dict form; None if unusable."""
        if raw is None:
            return None
        if isinstance(raw, str):
            if not raw.strip():
                return None
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Ignored drop with unreadable payload")
                return None
        if not isinstance(raw, Mapping):
            return None
        node_type = raw.get('nodeType')
        if not isinstance(node_type, str) or not node_type:
            return None
        return cls(node_type=node_type, label=str(raw.get('label') or ''),
                   type=str(raw.get('type') or NODE_RENDER_TYPE))
    
    def to_dict(self) -> Dict[str, str]:
        return {'type': self.type, 'label': self.label, 'nodeType': self.node_type}


@dataclass
class DragOperation:
    """Represents an ongoing node drag."""
    node_ids: List[str]
    start_positions: Dict[str, Position]
    current_offset: Tuple[float, float] = (0.0, 0.0)
    is_active: bool = False


@dataclass
class ConnectionPreview:
    """Represents a connection being dragged out of an output handle."""
    source_node_id: str
    target_position: Tuple[float, float] = (0.0, 0.0)
    target_node_id: Optional[str] = None
    target_handle: Optional[HandleKind] = None
    
    @property
    def is_valid(self) -> bool:
        return self.target_node_id is not None and self.target_handle is HandleKind.TARGET


def _always_confirm(message: str) -> bool:
    return True


def _no_prompt(message: str, default: str) -> Optional[str]:
    return None


class InteractionController:
    """Maps whiteboard gestures onto Graph Store operations."""
    
    def __init__(self, store: GraphStore,
                 selection: Optional[SelectionTracker] = None,
                 gateway: Optional[PersistenceGateway] = None,
                 catalog: Optional[BlockCatalog] = None,
                 project: Optional[Callable[[float, float], Tuple[float, float]]] = None,
                 confirm: Callable[[str], bool] = _always_confirm,
                 prompt: Callable[[str, str], Optional[str]] = _no_prompt):
        self.store = store
        self.selection = selection or SelectionTracker(store)
        self.gateway = gateway or PersistenceGateway(store)
        self.catalog = catalog or BlockCatalog()
        self.viewport = ViewportState()
        self._project = project
        self.confirm = confirm
        self.prompt = prompt
        
        self.drag_operation: Optional[DragOperation] = None
        self.connection_preview: Optional[ConnectionPreview] = None
        
        # Grid settings
        self.grid_size = 20.0
        self.snap_to_grid = False
    
    # ─────────────────────────────────────────────────────────────────
    # Palette drop
    # ─────────────────────────────────────────────────────────────────
    
    def project(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        """Resolve screen coordinates to canvas coordinates."""
        if self._project is not None:
            return self._project(screen_x, screen_y)
        return self.viewport.screen_to_world(screen_x, screen_y)
    
    def drop(self, payload: Union[str, Mapping[str, Any], DropPayload, None],
             screen_x: float, screen_y: float) -> Optional[Node]:
        """Create a node for a palette block dropped on the canvas."""
        if not isinstance(payload, DropPayload):
            payload = DropPayload.parse(payload)
        if payload is None:
            return None
        
        position = self._snap(self.project(screen_x, screen_y))
        node_type = payload.node_type
        if node_type not in self.catalog:
            logger.warning("Dropped unknown block type %s; rendering with fallback", node_type)
        
        node = self.store.add_node(node_type, position, {
            'label': payload.label or f"New {node_type}",
            'description': f"{node_type} node",
            'config': {},
        })
        logger.info("Dropped %s as %s", node_type, node.id)
        return node
    
    # ─────────────────────────────────────────────────────────────────
    # Node drag
    # ─────────────────────────────────────────────────────────────────
    
    def start_node_drag(self, node_ids: List[str]) -> bool:
        """Start dragging the given nodes."""
        start_positions = {}
        for node_id in node_ids:
            node = self.store.get_node(node_id)
            if node is not None:
                start_positions[node_id] = node.position
        if not start_positions:
            return False
        
        self.drag_operation = DragOperation(
            node_ids=list(start_positions),
            start_positions=start_positions,
            is_active=True
        )
        return True
    
    def update_node_drag(self, offset: Tuple[float, float]) -> bool:
        """Move dragged nodes to their start positions plus the pointer offset."""
        if not self.drag_operation or not self.drag_operation.is_active:
            return False
        
        self.drag_operation.current_offset = offset
        for node_id in self.drag_operation.node_ids:
            if not self.store.has_node(node_id):
                continue
            start = self.drag_operation.start_positions[node_id]
            new_pos = self._snap((start.x + offset[0], start.y + offset[1]))
            self.store.move_node(node_id, new_pos)
        return True
    
    def end_node_drag(self) -> bool:
        if self.drag_operation and self.drag_operation.is_active:
            self.drag_operation.is_active = False
            return True
        return False
    
    def cancel_node_drag(self) -> bool:
        """Abort the drag and restore the original positions."""
        if not self.drag_operation:
            return False
        for node_id, original in self.drag_operation.start_positions.items():
            if self.store.has_node(node_id):
                self.store.move_node(node_id, original)
        self.drag_operation = None
        return True
    
    def drag_node(self, node_id: str, position: Tuple[float, float]):
        """Single-node drag step reported in canvas coordinates."""
        self.store.move_node(node_id, self._snap(position))
    
    # ─────────────────────────────────────────────────────────────────
    # Connection drag
    # ─────────────────────────────────────────────────────────────────
    
    def start_connection(self, source_node_id: str,
                         pointer: Tuple[float, float] = (0.0, 0.0)) -> bool:
        """Begin dragging a connection out of a node's output handle."""
        if not self.store.has_node(source_node_id):
            return False
        self.connection_preview = ConnectionPreview(source_node_id, pointer)
        return True
    
    def update_connection(self, pointer: Tuple[float, float],
                          target_node_id: Optional[str] = None,
                          target_handle: Optional[HandleKind] = None) -> bool:
        """Track the pointer and the handle it is hovering, if any."""
        if not self.connection_preview:
            return False
        self.connection_preview.target_position = pointer
        self.connection_preview.target_node_id = target_node_id
        self.connection_preview.target_handle = target_handle
        return True
    
    def complete_connection(self) -> Optional[Edge]:
        """Drop the connection; only an input handle of a live node connects."""
        preview = self.connection_preview
        self.connection_preview = None
        if preview is None or not preview.is_valid:
            return None
        if not (self.store.has_node(preview.source_node_id) and
                self.store.has_node(preview.target_node_id)):
            return None
        return self.store.connect(preview.source_node_id, preview.target_node_id)
    
    def cancel_connection(self):
        self.connection_preview = None
    
    def delete_edge(self, edge_id: str) -> bool:
        return self.store.delete_edge(edge_id)
    
    # ─────────────────────────────────────────────────────────────────
    # Selection and keyboard
    # ─────────────────────────────────────────────────────────────────
    
    def click_node(self, node_id: str, shift: bool = False):
        if shift:
            self.selection.toggle(node_id)
        else:
            self.selection.select(node_id)
    
    def click_canvas(self):
        self.selection.clear()
    
    def marquee(self, x1: float, y1: float, x2: float, y2: float, shift: bool = False) -> List[str]:
        return self.selection.select_in_rectangle(x1, y1, x2, y2, extend=shift)
    
    def selection_changed(self, node_ids: List[str]):
        """Selection reported wholesale by the rendering layer."""
        self.selection.set_selection(node_ids)
    
    def handle_key(self, key: str) -> Optional[GraphChange]:
        """Delete/Backspace removes the current selection; other keys are ignored."""
        if key not in DELETE_KEYS or self.selection.is_empty():
            return None
        return self.delete_selection()
    
    def delete_selection(self) -> Optional[GraphChange]:
        if self.selection.is_empty():
            return None
        if not self.confirm(CONFIRM_DELETE_SELECTION):
            return None
        change = self.store.delete_nodes(self.selection.selected)
        self.selection.clear()
        logger.info("Deleted %d selected nodes", len(change.node_ids))
        return change
    
    # ─────────────────────────────────────────────────────────────────
    # Node toolbar
    # ─────────────────────────────────────────────────────────────────
    
    def edit_label(self, node_id: str) -> Optional[Node]:
        """Prompt for a new label and apply it if non-empty and changed."""
        node = self.store.get_node(node_id)
        if node is None:
            return None
        return self.rename(node_id, self.prompt(PROMPT_EDIT_LABEL, node.label))
    
    def rename(self, node_id: str, new_label: Optional[str]) -> Optional[Node]:
        node = self.store.get_node(node_id)
        if node is None or not new_label or new_label == node.label:
            return None
        return self.store.update_node(node_id, {'label': new_label})
    
    def update_node(self, node_id: str, fields: Mapping[str, Any]) -> Node:
        """Apply an edit from the node inspector."""
        return self.store.update_node(node_id, fields)
    
    def delete_node(self, node_id: str) -> bool:
        if not self.store.has_node(node_id):
            return False
        if not self.confirm(CONFIRM_DELETE_NODE):
            return False
        return self.store.delete_node(node_id)
    
    def duplicate(self, node_id: str) -> Node:
        """Duplicate a node and make the copy the sole selection."""
        clone = self.store.duplicate_node(node_id)
        self.selection.set_selection([clone.id])
        return clone
    
    # ─────────────────────────────────────────────────────────────────
    # Workflow toolbar
    # ─────────────────────────────────────────────────────────────────
    
    def clear_all(self) -> bool:
        if not self.confirm(CONFIRM_CLEAR):
            return False
        self.store.clear()
        return True
    
    def save(self, storage_key: Optional[str] = None) -> Dict[str, Any]:
        return self.gateway.save(storage_key)
    
    def load(self, storage_key: Optional[str] = None) -> Optional[Graph]:
        return self.gateway.load(storage_key)
    
    def export(self) -> Dict[str, Any]:
        return self.gateway.export_document()
    
    def _snap(self, position: Tuple[float, float]) -> Tuple[float, float]:
        """Snap a position to the grid when snapping is on."""
        if not self.snap_to_grid:
            return position
        x, y = position
        return round(x / self.grid_size) * self.grid_size, round(y / self.grid_size) * self.grid_size
