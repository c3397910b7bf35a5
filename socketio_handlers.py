"""SocketIO event handlers: one snapshot subscriber per connected client."""
import logging

from flask import request
from flask_socketio import emit

import app_state
from background import create_broadcaster

logger = logging.getLogger(__name__)

SNAPSHOT_EVENT = 'system_info'


def make_sender(socketio, sid):
    """Return a send callable that pushes payloads to one client."""
    def send(payload):
        socketio.emit(SNAPSHOT_EVENT, payload, to=sid, namespace='/')
    return send


def register_socketio_handlers(socketio):
    """Register all SocketIO event handlers."""

    @socketio.on('connect')
    def handle_connect():
        """Handle client connection - subscribe it to snapshot broadcasts."""
        sid = request.sid
        create_broadcaster().subscribe(make_sender(socketio, sid), subscriber_id=sid)
        logger.info(f"Client connected: {sid} ({len(app_state.subscription_registry)} subscribers)")

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        """Handle client disconnection."""
        sid = request.sid
        create_broadcaster().unsubscribe(sid)
        logger.info(f"Client disconnected: {sid}")

    @socketio.on('request_snapshot')
    def handle_request_snapshot(*args):
        """Handle explicit request for the latest snapshot."""
        snapshot = app_state.snapshot_cache.get()
        if snapshot is not None:
            emit(SNAPSHOT_EVENT, snapshot.to_payload())
