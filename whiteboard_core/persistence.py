"""
Persistence Gateway: save, load and export whiteboard graphs.

``save`` and ``load`` round-trip the graph through a named storage slot.
``export_document`` produces a one-way downloadable artifact that carries
contract metadata and is never read back.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .exceptions import MalformedDocumentError
from .graph_store import GraphStore
from .models import Graph
from .serialization import DanglingEdgePolicy, document_to_graph, graph_to_document
from .storage import MemoryStorage, StorageBackend

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "workflow"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class PersistenceGateway:
    """Serializes the Graph Store to storage slots and export documents."""
    
    def __init__(self, store: GraphStore,
                 storage: Optional[StorageBackend] = None,
                 dangling_edges: DanglingEdgePolicy = DanglingEdgePolicy.DROP,
                 contract_type: str = "ERC-20",
                 network: str = "ethereum",
                 default_key: str = DEFAULT_STORAGE_KEY,
                 clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.storage = storage if storage is not None else MemoryStorage()
        self.dangling_edges = dangling_edges
        self.contract_type = contract_type
        self.network = network
        self.default_key = default_key
        self._clock = clock
        self.last_load_warnings: List[str] = []
    
    # ─────────────────────────────────────────────────────────────────
    # SAVE / LOAD
    # ─────────────────────────────────────────────────────────────────
    
    def save(self, storage_key: Optional[str] = None) -> Dict[str, Any]:
        """Write the full graph plus a timestamp to a slot, overwriting it."""
        key = storage_key or self.default_key
        document = graph_to_document(self.store.snapshot())
        document['timestamp'] = iso_timestamp(self._clock())
        self.storage.write(key, json.dumps(document))
        logger.info("Saved %d nodes and %d edges to slot '%s' (%s)",
                    len(document['nodes']), len(document['edges']), key, self.storage.name)
        return document
    
    def load(self, storage_key: Optional[str] = None) -> Optional[Graph]:
        """Replace the graph with a slot's contents.

        Returns None, leaving the store untouched, when the slot is empty.
        """
        key = storage_key or self.default_key
        text = self.storage.read(key)
        if text is None:
            logger.info("Slot '%s' is empty; nothing loaded", key)
            return None
        
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedDocumentError(f"Slot '{key}' does not hold JSON: {exc}", key) from exc
        if not isinstance(document, dict):
            raise MalformedDocumentError(f"Slot '{key}' does not hold a JSON object", key)
        
        decoded = document_to_graph(document, self.dangling_edges)
        self.last_load_warnings = decoded.warnings
        self.store.replace(decoded.graph)
        logger.info("Loaded %d nodes and %d edges from slot '%s'",
                    len(decoded.graph.nodes), len(decoded.graph.edges), key)
        return decoded.graph.copy()
    
    def list_slots(self) -> List[str]:
        return self.storage.keys()
    
    def delete_slot(self, storage_key: str) -> bool:
        return self.storage.delete(storage_key)
    
    # ─────────────────────────────────────────────────────────────────
    # EXPORT
    # ─────────────────────────────────────────────────────────────────
    
    def export_document(self, contract_type: Optional[str] = None,
                        network: Optional[str] = None) -> Dict[str, Any]:
        """Build the downloadable contract-structure document."""
        document = graph_to_document(self.store.snapshot())
        document['contractType'] = contract_type or self.contract_type
        document['network'] = network or self.network
        return document
    
    def export_json(self, contract_type: Optional[str] = None,
                    network: Optional[str] = None) -> str:
        return json.dumps(self.export_document(contract_type, network), indent=2)
    
    def export_filename(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        return f"smart-contract-{millis}.json"
