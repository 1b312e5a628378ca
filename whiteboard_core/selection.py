"""
Selection Tracker: which nodes are currently selected on the whiteboard.

Selection is derived state. It is never persisted and it follows the Graph
Store: ids removed from the store are dropped from the selection, and a
cleared or replaced graph clears the selection entirely.
"""

from typing import Callable, FrozenSet, Iterable, List, Optional, Set

from .graph_store import GraphChange, GraphStore


class SelectionTracker:
    """Tracks the set of selected node ids."""
    
    def __init__(self, store: Optional[GraphStore] = None):
        self._selected: Set[str] = set()
        self.on_selection_changed: Optional[Callable[[FrozenSet[str]], None]] = None
        self._store = store
        if store is not None:
            store.subscribe(self._on_graph_change)
    
    @property
    def selected(self) -> FrozenSet[str]:
        return frozenset(self._selected)
    
    def is_selected(self, node_id: str) -> bool:
        return node_id in self._selected
    
    def is_empty(self) -> bool:
        return not self._selected
    
    def __len__(self) -> int:
        return len(self._selected)
    
    def select(self, node_id: str, extend: bool = False):
        """Select a node; a plain click replaces the selection, shift-click extends it."""
        if self._store is not None and not self._store.has_node(node_id):
            return False
        before = self.selected
        if not extend:
            self._selected.clear()
        self._selected.add(node_id)
        self._changed(before)
        return True
    
    def toggle(self, node_id: str):
        """Shift-click on an already selected node deselects it."""
        if node_id in self._selected:
            self.deselect(node_id)
        else:
            self.select(node_id, extend=True)
    
    def deselect(self, node_id: str):
        before = self.selected
        self._selected.discard(node_id)
        self._changed(before)
    
    def set_selection(self, node_ids: Iterable[str]):
        """Replace the selection wholesale, as the rendering layer reports it."""
        before = self.selected
        ids = set(node_ids)
        if self._store is not None:
            ids = {node_id for node_id in ids if self._store.has_node(node_id)}
        self._selected = ids
        self._changed(before)
    
    def select_in_rectangle(self, x1: float, y1: float, x2: float, y2: float, extend: bool = False):
        """Marquee selection over node positions (canvas coordinates)."""
        if self._store is None:
            return []
        min_x, max_x = min(x1, x2), max(x1, x2)
        min_y, max_y = min(y1, y2), max(y1, y2)
        
        hits: List[str] = [
            node.id for node in self._store.nodes()
            if min_x <= node.position.x <= max_x and min_y <= node.position.y <= max_y
        ]
        if extend:
            hits = list(self._selected) + hits
        self.set_selection(hits)
        return hits
    
    def clear(self):
        before = self.selected
        self._selected.clear()
        self._changed(before)
    
    def _on_graph_change(self, change: GraphChange):
        if change.kind in ('cleared', 'replaced'):
            self.clear()
        elif change.kind == 'nodes_deleted' and self._selected & change.node_ids:
            before = self.selected
            self._selected -= change.node_ids
            self._changed(before)
    
    def _changed(self, before: FrozenSet[str]):
        if self.on_selection_changed and before != self._selected:
            self.on_selection_changed(self.selected)
