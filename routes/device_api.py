"""Device information and control API routes."""
import logging

from flask import Blueprint, jsonify, request

import app_state
from metrics import SamplingError
from utils.device_utils import (
    DeviceActionError,
    PROFILE_FIELDS,
    reboot_device,
    set_timezone,
    update_device_profile,
)

logger = logging.getLogger(__name__)

device_bp = Blueprint('device', __name__)


def _sample_payload():
    """Take a fresh sample. Returns (payload, None) or (None, error response)."""
    try:
        return app_state.sampler.sample().to_payload(), None
    except SamplingError as e:
        logger.error(f"Failed to retrieve system info: {e}")
        return None, (jsonify({
            'success': False,
            'error': 'Failed to retrieve system info.',
            'message': str(e),
        }), 500)


@device_bp.route('/api/device')
@device_bp.route('/api/device/info')
def get_device_info():
    """Get a fresh snapshot of all device metrics."""
    payload, error = _sample_payload()
    if error:
        return error
    return jsonify({'success': True, 'data': payload})


@device_bp.route('/api/device/metrics/<name>')
def get_device_metric(name):
    """Get one section of a fresh snapshot, e.g. ram, cpu or disk."""
    payload, error = _sample_payload()
    if error:
        return error
    if name not in payload or name == 'partialFailures':
        return jsonify({'success': False, 'error': f'Unknown metric: {name}'}), 404
    return jsonify(payload[name])


@device_bp.route('/api/device/latest')
def get_latest_snapshot():
    """Get the most recent broadcast snapshot (returns cached data)."""
    snapshot = app_state.snapshot_cache.get()
    if snapshot is None:
        return jsonify({'success': False, 'error': 'No snapshot available yet'}), 404
    return jsonify({'success': True, 'data': snapshot.to_payload()})


@device_bp.route('/api/device/reboot', methods=['POST'])
def reboot():
    """Reboot the device."""
    data = request.get_json(silent=True) or {}
    device_id = data.get('deviceId')
    if not device_id:
        return jsonify({'success': False, 'error': 'Device ID is required'}), 400

    try:
        reboot_device(device_id)
    except DeviceActionError as e:
        logger.error(f"Reboot of {device_id} failed: {e}")
        return jsonify({'success': False, 'error': str(e)}), 500

    return jsonify({'success': True, 'message': f'Reboot command sent to device {device_id}'})


@device_bp.route('/api/device/timezone', methods=['POST'])
def update_timezone():
    """Update the device timezone."""
    data = request.get_json(silent=True) or {}
    device_id = data.get('deviceId')
    tz_name = data.get('timezone')
    if not device_id or not tz_name:
        return jsonify({'success': False, 'error': 'Device ID and timezone are required'}), 400

    try:
        profile = set_timezone(device_id, tz_name)
    except DeviceActionError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    return jsonify({
        'success': True,
        'message': f'Timezone updated to {tz_name}',
        'data': profile,
    })


@device_bp.route('/api/device/update', methods=['POST'])
def update_device_info():
    """Update descriptive device information."""
    data = request.get_json(silent=True) or {}
    device_id = data.get('deviceId')
    if not device_id:
        return jsonify({'success': False, 'error': 'Device ID is required'}), 400

    tags = data.get('tags')
    if tags is not None and not isinstance(tags, list):
        return jsonify({'success': False, 'error': 'tags must be a list'}), 400

    changes = {key: data.get(key) for key in PROFILE_FIELDS}
    profile = update_device_profile(device_id, changes)
    return jsonify({
        'success': True,
        'message': 'Device information updated',
        'data': profile,
    })
