"""
Identifier generation for whiteboard nodes and edges.

Node ids come from a counter owned by each ``IdGenerator`` instance, so
independent editors never share state. Edge ids are derived from their
endpoints, which makes wiring the same pair twice idempotent.
"""

import re
from typing import Iterable

NODE_ID_PREFIX = "node-"
EDGE_ID_PREFIX = "edge-"

_NODE_ID_PATTERN = re.compile(r'^' + re.escape(NODE_ID_PREFIX) + r'(\d+)$')


def edge_id_for(source_id: str, target_id: str) -> str:
    """Derive the edge id for a (source, target) pair."""
    return f"{EDGE_ID_PREFIX}{source_id}-{target_id}"


class IdGenerator:
    """Produces ``node-{n}`` ids with a strictly increasing suffix."""
    
    def __init__(self, start: int = 0):
        self._counter = start
    
    @property
    def counter(self) -> int:
        return self._counter
    
    def next_node_id(self) -> str:
        """Return an id distinct from every id previously returned or observed."""
        self._counter += 1
        return f"{NODE_ID_PREFIX}{self._counter}"
    
    def observe(self, node_id: str):
        """Advance the counter past an externally supplied id."""
        match = _NODE_ID_PATTERN.match(node_id or "")
        if match:
            self._counter = max(self._counter, int(match.group(1)))
    
    def observe_all(self, node_ids: Iterable[str]):
        for node_id in node_ids:
            self.observe(node_id)