"""
Unit tests for the Graph Store.
"""

import pytest
from hypothesis import given, settings, strategies as st
from whiteboard_core.exceptions import InvariantViolation, NotFoundError
from whiteboard_core.graph_store import GraphStore, GraphChange, DUPLICATE_OFFSET
from whiteboard_core.identifiers import IdGenerator
from whiteboard_core.models import Edge, Graph, Node, NodeStatus, Position


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def pair(store):
    a = store.add_node("Deploy", (100, 100))
    b = store.add_node("Constructor", (400, 100))
    return a, b


class TestAddNode:
    """Test cases for node creation."""
    
    def test_add_node_defaults(self, store):
        node = store.add_node("Deploy", (100, 100))
        assert node.id == "node-1"
        assert node.type_id == "Deploy"
        assert node.position == Position(100.0, 100.0)
        assert node.status == NodeStatus.IDLE
        assert node.config == {}
        assert store.has_node(node.id)
    
    def test_add_node_with_initial_data(self, store):
        node = store.add_node("Stake", {'x': 5, 'y': 6}, {
            'label': 'Stake ETH', 'description': 'stake', 'status': 'running',
            'config': {'amount': 10}
        })
        assert node.label == 'Stake ETH'
        assert node.status == NodeStatus.RUNNING
        assert node.config == {'amount': 10}
        assert node.position == Position(5.0, 6.0)
    
    def test_add_node_rejects_unknown_fields(self, store):
        with pytest.raises(ValueError):
            store.add_node("Deploy", (0, 0), {'colour': 'red'})
        assert len(store) == 0
    
    def test_returned_node_is_a_copy(self, store):
        node = store.add_node("Deploy", (0, 0))
        node.label = "tampered"
        node.position.x = 500
        stored = store.get_node(node.id)
        assert stored.label == "Deploy"
        assert stored.position.x == 0.0
    
    def test_uses_injected_generator(self):
        store = GraphStore(IdGenerator(start=7))
        assert store.add_node("Event").id == "node-8"


class TestUpdateAndMove:
    """Test cases for node updates and moves."""
    
    def test_update_merges_fields(self, store, pair):
        a, _ = pair
        updated = store.update_node(a.id, {'label': 'Ship it', 'status': NodeStatus.SUCCESS})
        assert updated.id == a.id
        assert updated.label == 'Ship it'
        assert updated.status == NodeStatus.SUCCESS
        assert updated.type_id == 'Deploy'
    
    def test_update_missing_node(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            store.update_node("node-99", {'label': 'x'})
        assert exc_info.value.item_id == "node-99"
    
    def test_update_invalid_status_leaves_node_untouched(self, store, pair):
        a, _ = pair
        with pytest.raises(ValueError):
            store.update_node(a.id, {'label': 'changed', 'status': 'exploded'})
        assert store.get_node(a.id).label == 'Deploy'
    
    def test_update_rejects_id_change(self, store, pair):
        a, _ = pair
        with pytest.raises(ValueError):
            store.update_node(a.id, {'id': 'node-77'})
    
    def test_move_node(self, store, pair):
        a, _ = pair
        store.move_node(a.id, (250.5, 80))
        moved = store.get_node(a.id)
        assert moved.position == Position(250.5, 80.0)
        assert moved.label == a.label
    
    def test_move_missing_node(self, store):
        with pytest.raises(NotFoundError):
            store.move_node("node-5", (0, 0))


class TestDelete:
    """Test cases for cascading deletes."""
    
    def test_scenario_delete_source_removes_edge(self, store):
        """Delete A from A->B: one node (B) and no edges remain."""
        a = store.add_node("Deploy", {'x': 100, 'y': 100})
        b = store.add_node("Constructor", {'x': 400, 'y': 100})
        store.connect(a.id, b.id)
        
        assert store.delete_node(a.id) is True
        assert [n.id for n in store.nodes()] == [b.id]
        assert store.edges() == []
    
    def test_delete_absent_is_noop(self, store, pair):
        assert store.delete_node("node-404") is False
        assert len(store) == 2
    
    def test_delete_nodes_batch(self, store):
        a = store.add_node("A")
        b = store.add_node("B")
        c = store.add_node("C")
        store.connect(a.id, b.id)
        store.connect(b.id, c.id)
        store.connect(c.id, a.id)
        
        change = store.delete_nodes({a.id, b.id, "node-404"})
        assert change.node_ids == frozenset({a.id, b.id})
        assert len(change.edge_ids) == 3
        assert [n.id for n in store.nodes()] == [c.id]
        assert store.edges() == []
    
    def test_delete_self_loop_node(self, store):
        a = store.add_node("Event")
        store.connect(a.id, a.id)
        store.delete_node(a.id)
        assert store.stats() == {'nodes': 0, 'edges': 0}
    
    def test_observers_see_consistent_graph(self, store, pair):
        """Observers run after the node and its edges are both gone."""
        a, b = pair
        store.connect(a.id, b.id)
        seen = []
        store.subscribe(lambda change: seen.append((change.kind, store.validate())))
        store.delete_node(a.id)
        assert seen == [('nodes_deleted', [])]
    
    def test_delete_edge(self, store, pair):
        a, b = pair
        edge = store.connect(a.id, b.id)
        assert store.delete_edge(edge.id) is True
        assert store.delete_edge(edge.id) is False
        assert len(store) == 2


class TestDuplicate:
    """Test cases for duplicateNode."""
    
    def test_duplicate_node(self, store, pair):
        a, b = pair
        store.update_node(a.id, {'config': {'network': 'ethereum'}})
        store.connect(a.id, b.id)
        
        clone = store.duplicate_node(a.id)
        assert clone.id not in (a.id, b.id)
        assert clone.type_id == a.type_id
        assert clone.config == {'network': 'ethereum'}
        assert clone.position == Position(100 + DUPLICATE_OFFSET[0], 100 + DUPLICATE_OFFSET[1])
        assert clone.label == "Deploy (Copy)"
        assert len(store.edges()) == 1
        assert store.incident_edges(clone.id) == []
    
    def test_duplicate_config_is_not_shared(self, store):
        node = store.add_node("Constructor", (0, 0), {'config': {'params': ['owner']}})
        clone = store.duplicate_node(node.id)
        store.update_node(clone.id, {'config': {'params': ['owner', 'supply']}})
        assert store.get_node(node.id).config == {'params': ['owner']}
    
    def test_duplicate_missing(self, store):
        with pytest.raises(NotFoundError):
            store.duplicate_node("node-1")


class TestConnect:
    """Test cases for connect."""
    
    def test_connect_creates_edge(self, store, pair):
        a, b = pair
        edge = store.connect(a.id, b.id)
        assert edge == Edge(f"edge-{a.id}-{b.id}", a.id, b.id)
        assert store.get_edge(edge.id) == edge
    
    def test_connect_twice_is_idempotent(self, store, pair):
        a, b = pair
        first = store.connect(a.id, b.id)
        second = store.connect(a.id, b.id)
        assert first == second
        assert len(store.edges()) == 1
    
    def test_reverse_direction_is_a_new_edge(self, store, pair):
        a, b = pair
        store.connect(a.id, b.id)
        store.connect(b.id, a.id)
        assert len(store.edges()) == 2
    
    def test_self_loop_allowed(self, store, pair):
        a, _ = pair
        assert store.connect(a.id, a.id).is_self_loop
    
    def test_connect_matches_loaded_edge_by_endpoints(self, store):
        """An edge loaded under a foreign id still dedupes the pair."""
        graph = Graph(
            nodes={nid: Node(id=nid, type_id="Deploy") for nid in ("node-1", "node-2")},
            edges={"reactflow__edge-node-1-node-2": Edge("reactflow__edge-node-1-node-2", "node-1", "node-2")}
        )
        store.replace(graph)
        edge = store.connect("node-1", "node-2")
        assert edge.id == "reactflow__edge-node-1-node-2"
        assert len(store.edges()) == 1
    
    def test_connect_with_colliding_derived_ids(self, store):
        """Hyphenated ids can derive the same edge id for different pairs."""
        graph = Graph(nodes={nid: Node(id=nid, type_id="Deploy") for nid in ("a-b", "c", "a", "b-c")})
        store.replace(graph)
        first = store.connect("a-b", "c")
        second = store.connect("a", "b-c")
        assert (first.source_id, first.target_id) == ("a-b", "c")
        assert (second.source_id, second.target_id) == ("a", "b-c")
        assert first.id != second.id
        assert len(store.edges()) == 2
        assert store.connect("a", "b-c") == second
        store.assert_consistent()
    
    def test_connect_missing_endpoint(self, store, pair):
        a, _ = pair
        with pytest.raises(NotFoundError):
            store.connect(a.id, "node-404")
        with pytest.raises(NotFoundError):
            store.connect("node-404", a.id)
        assert store.edges() == []


class TestSnapshotAndReplace:
    """Test cases for snapshot, replace and clear."""
    
    def test_snapshot_is_a_copy(self, store, pair):
        a, _ = pair
        snap = store.snapshot()
        snap.nodes[a.id].label = "tampered"
        snap.edges["edge-x"] = Edge("edge-x", "x", "y")
        assert store.get_node(a.id).label == "Deploy"
        assert store.get_edge("edge-x") is None
    
    def test_snapshot_replace_round_trip(self, store, pair):
        a, b = pair
        store.connect(a.id, b.id)
        before = store.snapshot()
        store.replace(store.snapshot())
        assert store.snapshot() == before
    
    def test_replace_continues_counter(self, store):
        graph = Graph(nodes={"node-9": Node(id="node-9", type_id="Deploy")})
        store.replace(graph)
        assert store.add_node("Event").id == "node-10"
    
    def test_replace_trusts_document(self, store):
        graph = Graph(edges={"edge-a-b": Edge("edge-a-b", "a", "b")})
        store.replace(graph)
        assert len(store.edges()) == 1
        with pytest.raises(InvariantViolation):
            store.assert_consistent()
    
    def test_clear(self, store, pair):
        a, b = pair
        store.connect(a.id, b.id)
        store.clear()
        assert store.stats() == {'nodes': 0, 'edges': 0}
        store.assert_consistent()
    
    def test_seed_default_workflow(self, store):
        deploy, constructor = store.seed_default_workflow()
        assert deploy.label == "Deploy Contract"
        assert deploy.config == {'network': 'ethereum', 'gasLimit': '3000000'}
        assert constructor.position == Position(400.0, 100.0)
        assert constructor.config == {'params': ['owner', 'totalSupply']}


class TestObservers:
    """Test cases for change notifications."""
    
    def test_change_kinds(self, store):
        changes = []
        store.subscribe(changes.append)
        a = store.add_node("A")
        b = store.add_node("B")
        store.connect(a.id, b.id)
        store.move_node(a.id, (1, 1))
        store.clear()
        assert [c.kind for c in changes] == [
            'node_added', 'node_added', 'edge_added', 'node_moved', 'cleared'
        ]
    
    def test_unsubscribe(self, store):
        changes = []
        store.subscribe(changes.append)
        store.unsubscribe(changes.append)
        store.add_node("A")
        assert changes == []
    
    def test_noop_delete_does_not_notify(self, store):
        changes = []
        store.subscribe(changes.append)
        store.delete_nodes(["node-1"])
        assert changes == []


operations = st.lists(
    st.tuples(
        st.sampled_from(['add', 'connect', 'delete', 'delete_many', 'duplicate', 'delete_edge']),
        st.integers(min_value=0, max_value=20),
        st.integers(min_value=0, max_value=20),
    ),
    max_size=40,
)


class TestInvariantProperties:
    """Property tests over random operation sequences."""
    
    @settings(max_examples=60, deadline=None)
    @given(operations)
    def test_invariants_hold_after_every_operation(self, ops):
        store = GraphStore()
        for op, i, j in ops:
            ids = [n.id for n in store.nodes()]
            edge_ids = [e.id for e in store.edges()]
            if op == 'add' or not ids:
                store.add_node("Event", (i, j))
            elif op == 'connect':
                store.connect(ids[i % len(ids)], ids[j % len(ids)])
            elif op == 'delete':
                victim = ids[i % len(ids)]
                store.delete_node(victim)
                assert all(not e.touches(victim) for e in store.edges())
            elif op == 'delete_many':
                store.delete_nodes(ids[i % len(ids):][:j % 3 + 1])
            elif op == 'duplicate':
                store.duplicate_node(ids[i % len(ids)])
            elif op == 'delete_edge' and edge_ids:
                store.delete_edge(edge_ids[i % len(edge_ids)])
            
            assert store.validate() == []
            node_ids = [n.id for n in store.nodes()]
            assert len(node_ids) == len(set(node_ids))
    
    @settings(max_examples=40, deadline=None)
    @given(st.integers(min_value=1, max_value=8), st.data())
    def test_connect_is_idempotent(self, count, data):
        store = GraphStore()
        ids = [store.add_node("Event").id for _ in range(count)]
        source = data.draw(st.sampled_from(ids))
        target = data.draw(st.sampled_from(ids))
        store.connect(source, target)
        store.connect(source, target)
        matching = [e for e in store.edges() if e.source_id == source and e.target_id == target]
        assert len(matching) == 1
