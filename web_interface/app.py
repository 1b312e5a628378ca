"""
Flask web interface for the Whiteboard Core.

This provides the REST API the whiteboard canvas talks to. Every mutation is
routed through the InteractionController and broadcast to connected
renderers over Socket.IO.
"""

from flask import Flask, request, jsonify, Response
from flask_cors import CORS
from flask_socketio import SocketIO
import logging

# Import our whiteboard components
import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from whiteboard_core.block_catalog import ALL_CATEGORIES, BlockCatalog
from whiteboard_core.config import WhiteboardSettings
from whiteboard_core.exceptions import MalformedDocumentError, NotFoundError, StorageError
from whiteboard_core.graph_store import GraphStore
from whiteboard_core.interaction import HandleKind, InteractionController
from whiteboard_core.persistence import PersistenceGateway
from whiteboard_core.selection import SelectionTracker
from whiteboard_core.serialization import edge_to_dict, graph_to_document, node_to_dict

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config['SECRET_KEY'] = 'whiteboard-secret-key'
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*", async_mode='threading')

# Global instances
settings = WhiteboardSettings.from_env()
catalog = BlockCatalog()
store = GraphStore()
selection = SelectionTracker(store)
gateway = PersistenceGateway(
    store,
    storage=settings.create_storage(),
    dangling_edges=settings.dangling_edges,
    contract_type=settings.contract_type,
    network=settings.network,
    default_key=settings.storage_key,
)
# The browser shows its own confirmation dialogs before calling the API
controller = InteractionController(store, selection, gateway, catalog)

if os.environ.get('WHITEBOARD_SEED', '1') == '1':
    store.seed_default_workflow()


def _ok(data, status=200):
    return jsonify({'success': True, 'data': data}), status


def _fail(error, status):
    return jsonify({'success': False, 'error': str(error)}), status


def _state():
    document = graph_to_document(store.snapshot())
    document['selection'] = sorted(selection.selected)
    document['stats'] = store.stats()
    return document


@app.route('/favicon.ico')
def favicon():
    """Suppress favicon 404 errors."""
    return '', 204


# Palette API endpoints
@app.route('/api/palette/blocks', methods=['GET'])
def get_palette_blocks():
    """List palette blocks, filtered the way the sidebar filters them."""
    search = request.args.get('search', '')
    category = request.args.get('category', ALL_CATEGORIES)
    blocks = catalog.filter(search, category)
    return _ok([
        dict(block.to_dict(), dragPayload=catalog.drag_payload(block.type_id))
        for block in blocks
    ])


@app.route('/api/palette/categories', methods=['GET'])
def get_palette_categories():
    return _ok(catalog.get_categories())


# Whiteboard API endpoints
@app.route('/api/whiteboard/state', methods=['GET'])
def get_whiteboard_state():
    """Get the full graph, the selection and the stats panel counts."""
    return _ok(_state())


@app.route('/api/whiteboard/drop', methods=['POST'])
def drop_block():
    """Create a node from a palette drop."""
    data = request.get_json(silent=True) or {}
    try:
        x, y = float(data.get('x', 0.0)), float(data.get('y', 0.0))
    except (TypeError, ValueError) as e:
        return _fail(e, 400)
    node = controller.drop(data.get('payload'), x, y)
    if node is None:
        return _fail('Drop payload has no block type', 400)
    node_data = node_to_dict(node)
    socketio.emit('node_added', {'node': node_data})
    return _ok(node_data, 201)


@app.route('/api/whiteboard/nodes/<node_id>', methods=['PATCH'])
def update_node(node_id):
    """Edit a node's label, description, status or config."""
    data = request.get_json(silent=True) or {}
    fields = {key: data[key] for key in ('label', 'description', 'status', 'config') if key in data}
    try:
        node = controller.update_node(node_id, fields)
    except NotFoundError as e:
        return _fail(e, 404)
    except ValueError as e:
        return _fail(e, 400)
    node_data = node_to_dict(node)
    socketio.emit('node_updated', {'node': node_data})
    return _ok(node_data)


@app.route('/api/whiteboard/nodes/<node_id>/move', methods=['POST'])
def move_node(node_id):
    """Move a node to a new canvas position."""
    data = request.get_json(silent=True) or {}
    position = data.get('position', {})
    try:
        controller.drag_node(node_id, (float(position.get('x', 0.0)), float(position.get('y', 0.0))))
    except NotFoundError as e:
        return _fail(e, 404)
    except (TypeError, ValueError, AttributeError) as e:
        return _fail(e, 400)
    socketio.emit('node_moved', {'node_id': node_id, 'position': position})
    return _ok({'moved': True})


@app.route('/api/whiteboard/nodes/<node_id>/duplicate', methods=['POST'])
def duplicate_node(node_id):
    try:
        clone = controller.duplicate(node_id)
    except NotFoundError as e:
        return _fail(e, 404)
    node_data = node_to_dict(clone)
    socketio.emit('node_added', {'node': node_data})
    return _ok(node_data, 201)


@app.route('/api/whiteboard/nodes/<node_id>', methods=['DELETE'])
def delete_node(node_id):
    """Delete a node together with its edges."""
    removed = controller.delete_node(node_id)
    if removed:
        socketio.emit('node_removed', {'node_id': node_id})
    return _ok({'removed': removed})


@app.route('/api/whiteboard/connect', methods=['POST'])
def connect_nodes():
    """Complete a connection drag from a source node onto a handle."""
    data = request.get_json(silent=True) or {}
    source = data.get('source')
    target = data.get('target')
    try:
        handle = HandleKind(data.get('targetHandle', HandleKind.TARGET.value))
    except ValueError as e:
        return _fail(e, 400)
    
    if target is not None and not store.has_node(target):
        return _fail(NotFoundError('node', str(target)), 404)
    if not controller.start_connection(source):
        return _fail(NotFoundError('node', str(source)), 404)
    controller.update_connection((0.0, 0.0), target, handle)
    edges_before = store.stats()['edges']
    edge = controller.complete_connection()
    if edge is None:
        return _ok({'edge': None})
    edge_data = edge_to_dict(edge)
    if store.stats()['edges'] > edges_before:
        socketio.emit('edge_added', {'edge': edge_data})
    return _ok({'edge': edge_data})


@app.route('/api/whiteboard/edges/<edge_id>', methods=['DELETE'])
def delete_edge(edge_id):
    removed = controller.delete_edge(edge_id)
    if removed:
        socketio.emit('edge_removed', {'edge_id': edge_id})
    return _ok({'removed': removed})


@app.route('/api/whiteboard/selection', methods=['POST'])
def set_selection():
    """Receive the selection as reported by the canvas."""
    data = request.get_json(silent=True) or {}
    controller.selection_changed(data.get('nodes', []))
    return _ok({'selection': sorted(selection.selected)})


@app.route('/api/whiteboard/keys', methods=['POST'])
def press_key():
    """Keyboard shortcuts: Delete/Backspace removes the selection."""
    data = request.get_json(silent=True) or {}
    change = controller.handle_key(data.get('key', ''))
    if change is None:
        return _ok({'deleted_nodes': [], 'deleted_edges': []})
    socketio.emit('nodes_removed', {'node_ids': sorted(change.node_ids)})
    return _ok({
        'deleted_nodes': sorted(change.node_ids),
        'deleted_edges': sorted(change.edge_ids),
    })


@app.route('/api/whiteboard/clear', methods=['POST'])
def clear_whiteboard():
    """Clear all nodes and connections from the whiteboard."""
    controller.clear_all()
    socketio.emit('whiteboard_cleared')
    return _ok({'cleared': True})


# Persistence API endpoints
@app.route('/api/whiteboard/save', methods=['POST'])
def save_whiteboard():
    data = request.get_json(silent=True) or {}
    try:
        document = controller.save(data.get('key'))
    except StorageError as e:
        logger.error("Save failed: %s", e)
        return _fail(e, 500)
    return _ok({'timestamp': document['timestamp'], 'stats': store.stats()})


@app.route('/api/whiteboard/load', methods=['POST'])
def load_whiteboard():
    data = request.get_json(silent=True) or {}
    try:
        graph = controller.load(data.get('key'))
    except MalformedDocumentError as e:
        return _fail(e, 422)
    except StorageError as e:
        logger.error("Load failed: %s", e)
        return _fail(e, 500)
    if graph is None:
        return _ok({'loaded': False})
    socketio.emit('whiteboard_loaded')
    return _ok({'loaded': True, 'warnings': gateway.last_load_warnings, 'state': _state()})


@app.route('/api/whiteboard/slots', methods=['GET'])
def list_slots():
    return _ok(gateway.list_slots())


@app.route('/api/whiteboard/export', methods=['GET'])
def export_whiteboard():
    """Download the contract structure as a JSON document."""
    body = gateway.export_json(request.args.get('contractType'), request.args.get('network'))
    return Response(
        body,
        mimetype='application/json',
        headers={'Content-Disposition': f'attachment; filename={gateway.export_filename()}'}
    )


@app.route('/api/whiteboard/validate', methods=['GET'])
def validate_whiteboard():
    errors = store.validate()
    return _ok({'valid': not errors, 'errors': [str(e) for e in errors]})


if __name__ == '__main__':
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    print("Starting Whiteboard Web Interface...")
    print(f"Access the API at: http://localhost:{settings.port}")
    
    socketio.run(
        app,
        debug=True,
        host=settings.host,
        port=settings.port,
        use_reloader=os.environ.get('WHITEBOARD_RELOADER', '0') == '1',
        allow_unsafe_werkzeug=True,
    )
