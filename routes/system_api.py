"""Server configuration and broadcaster status API routes."""
from flask import Blueprint, jsonify, request

import app_state
from app_state import server_config_lock
from utils.server_config import ConfigValueError, update_server_config

system_bp = Blueprint('system', __name__)


@system_bp.route('/api/server_config', methods=['GET'])
def get_server_config():
    """Get current server configuration."""
    with server_config_lock:
        return jsonify(app_state.server_config.copy())


@system_bp.route('/api/server_config', methods=['POST'])
def set_server_config():
    """Update server configuration."""
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'No data provided'}), 400

    changes = {key: value for key, value in data.items() if key in app_state.SERVER_CONFIG_DEFAULTS}
    try:
        updated = update_server_config(changes)
    except ConfigValueError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    return jsonify({'success': True, 'updated': updated})


@system_bp.route('/api/subscribers')
def get_subscribers():
    """Get the live subscriber count and broadcaster state."""
    broadcaster = app_state.get_broadcaster()
    return jsonify({
        'subscribers': len(app_state.subscription_registry),
        'broadcaster': broadcaster.state.value if broadcaster else 'stopped',
        'ticks': broadcaster.tick_count if broadcaster else 0,
    })
