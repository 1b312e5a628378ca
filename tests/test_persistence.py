"""
Unit tests for the Persistence Gateway.
"""

import json
from datetime import datetime, timezone

import pytest
from whiteboard_core.exceptions import MalformedDocumentError
from whiteboard_core.graph_store import GraphStore
from whiteboard_core.persistence import PersistenceGateway, iso_timestamp
from whiteboard_core.serialization import DanglingEdgePolicy
from whiteboard_core.storage import MemoryStorage

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 15, 250000, tzinfo=timezone.utc)


@pytest.fixture
def store():
    store = GraphStore()
    a = store.add_node("Deploy", (100, 100))
    b = store.add_node("Constructor", (400, 100))
    store.connect(a.id, b.id)
    return store


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def gateway(store, storage):
    return PersistenceGateway(store, storage, clock=lambda: FIXED_NOW)


class TestSave:
    """Test cases for save."""
    
    def test_save_writes_document(self, gateway, storage):
        gateway.save("wf")
        document = json.loads(storage.read("wf"))
        assert len(document['nodes']) == 2
        assert len(document['edges']) == 1
        assert document['timestamp'] == "2024-05-01T12:30:15.250Z"
    
    def test_save_default_key(self, gateway, storage):
        gateway.save()
        assert storage.keys() == ['workflow']
    
    def test_save_overwrites(self, gateway, store, storage):
        gateway.save("wf")
        store.clear()
        gateway.save("wf")
        assert json.loads(storage.read("wf"))['nodes'] == []


class TestLoad:
    """Test cases for load."""
    
    def test_save_clear_load_restores_graph(self, gateway, store):
        """Scenario: save, clear, load restores two nodes and one edge with identical ids."""
        before = store.snapshot()
        gateway.save("wf")
        store.clear()
        graph = gateway.load("wf")
        
        assert sorted(graph.nodes) == ['node-1', 'node-2']
        assert list(graph.edges) == ['edge-node-1-node-2']
        assert store.snapshot() == before
    
    def test_load_empty_slot_is_noop(self, gateway, store):
        before = store.snapshot()
        assert gateway.load("missing") is None
        assert store.snapshot() == before
    
    def test_load_missing_collections(self, gateway, store, storage):
        storage.write("wf", json.dumps({'timestamp': 'x'}))
        graph = gateway.load("wf")
        assert graph.nodes == {}
        assert store.stats() == {'nodes': 0, 'edges': 0}
        assert len(gateway.last_load_warnings) == 2
    
    def test_load_dangling_edge_dropped(self, gateway, store, storage):
        storage.write("wf", json.dumps({
            'nodes': [{'id': 'node-1', 'position': {'x': 0, 'y': 0}, 'data': {'type': 'Deploy'}}],
            'edges': [{'id': 'edge-node-1-node-7', 'source': 'node-1', 'target': 'node-7'}],
        }))
        gateway.load("wf")
        assert store.edges() == []
        assert store.validate() == []
    
    def test_load_dangling_edge_kept(self, store, storage):
        gateway = PersistenceGateway(store, storage, dangling_edges=DanglingEdgePolicy.KEEP)
        storage.write("wf", json.dumps({
            'nodes': [{'id': 'node-1', 'position': {'x': 0, 'y': 0}, 'data': {'type': 'Deploy'}}],
            'edges': [{'id': 'edge-node-1-node-7', 'source': 'node-1', 'target': 'node-7'}],
        }))
        gateway.load("wf")
        assert [e.id for e in store.edges()] == ['edge-node-1-node-7']
        
        # New nodes never collide with loaded ids
        new_ids = {store.add_node("Event").id for _ in range(10)}
        assert 'node-1' not in new_ids
        assert len(store) == 11
    
    def test_new_nodes_after_load_do_not_collide(self, store, storage):
        storage.write("wf", json.dumps({
            'nodes': [{'id': 'node-40', 'position': {'x': 0, 'y': 0}, 'data': {'type': 'Deploy'}}],
            'edges': [],
        }))
        fresh = GraphStore()
        PersistenceGateway(fresh, storage).load("wf")
        assert fresh.add_node("Event").id == "node-41"
    
    def test_load_not_json(self, gateway, store, storage):
        storage.write("wf", "{not json")
        with pytest.raises(MalformedDocumentError) as exc_info:
            gateway.load("wf")
        assert exc_info.value.storage_key == "wf"
        assert store.stats() == {'nodes': 2, 'edges': 1}
    
    def test_load_not_object(self, gateway, storage):
        storage.write("wf", "[1, 2]")
        with pytest.raises(MalformedDocumentError):
            gateway.load("wf")
    
    def test_slots(self, gateway):
        gateway.save("a")
        gateway.save("b")
        assert gateway.list_slots() == ['a', 'b']
        assert gateway.delete_slot("a") is True
        assert gateway.list_slots() == ['b']


class TestExport:
    """Test cases for export."""
    
    def test_export_document(self, gateway):
        document = gateway.export_document()
        assert document['contractType'] == "ERC-20"
        assert document['network'] == "ethereum"
        assert len(document['nodes']) == 2
        assert 'timestamp' not in document
    
    def test_export_overrides(self, gateway):
        document = gateway.export_document(contract_type="ERC-721", network="polygon")
        assert document['contractType'] == "ERC-721"
        assert document['network'] == "polygon"
    
    def test_export_is_not_saved(self, gateway, storage):
        gateway.export_document()
        assert storage.keys() == []
    
    def test_export_json_indented(self, gateway):
        text = gateway.export_json()
        assert text.startswith('{\n  "nodes"')
        assert json.loads(text)['network'] == "ethereum"
    
    def test_export_filename(self, gateway):
        assert gateway.export_filename() == f"smart-contract-{int(FIXED_NOW.timestamp() * 1000)}.json"


def test_iso_timestamp_converts_to_utc():
    from datetime import timedelta
    moment = datetime(2024, 1, 1, 5, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    assert iso_timestamp(moment) == "2024-01-01T03:00:00.000Z"
