"""
Shared application state: constants, runtime config and singletons.

This module centralizes all shared state to avoid circular imports.
Routes, socket handlers and background threads import from here.
"""
import os
import threading

from metrics import MetricSampler, SnapshotCache, SubscriptionRegistry, LocationReader
from metrics.location import DEFAULT_IPINFO_URL

# Determine async mode based on environment
DEBUG_MODE = os.environ.get('DEBUG_MODE') == '1'

# Network settings
HOST = os.environ.get('HOST', '0.0.0.0')
PORT = int(os.environ.get('PORT', '3000'))

# External geolocation service
IPINFO_URL = os.environ.get('IPINFO_URL', DEFAULT_IPINFO_URL)

# Device control
REBOOT_COMMAND = os.environ.get('REBOOT_COMMAND', 'sudo /sbin/reboot')
DRY_RUN_REBOOT = os.environ.get('DRY_RUN_REBOOT') == '1'
APPLY_TIMEZONE = os.environ.get('APPLY_TIMEZONE') == '1'

# Server configuration (mutable at runtime via API, persisted to JSON file)
SERVER_CONFIG_FILE = os.environ.get(
    'SERVER_CONFIG_FILE',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'config', 'server_config.local.json'),
)
SERVER_CONFIG_DEFAULTS = {
    'broadcast_interval': 3.0,  # seconds
    'location_timeout': 4.0,  # seconds
}
# (min, max) accepted by the config API
SERVER_CONFIG_LIMITS = {
    'broadcast_interval': (0.1, 60),
    'location_timeout': (0.5, 30),
}

# Server config will be initialized by utils/server_config.py
server_config = dict(SERVER_CONFIG_DEFAULTS)
server_config_lock = threading.Lock()

# Device profile edited through /api/device/update and /api/device/timezone
device_profile = {}
device_profile_lock = threading.Lock()

# Metrics pipeline
sampler = MetricSampler(location=LocationReader(base_url=IPINFO_URL, timeout=SERVER_CONFIG_DEFAULTS['location_timeout']))
snapshot_cache = SnapshotCache()
subscription_registry = SubscriptionRegistry()


def get_broadcast_interval():
    """Current broadcast interval in seconds."""
    with server_config_lock:
        return server_config['broadcast_interval']


# Broadcaster instance (created by background package)
_broadcaster = None

# SocketIO instance (set by main app, used by the socket transport)
_socketio = None


def set_broadcaster(broadcaster):
    global _broadcaster
    _broadcaster = broadcaster


def get_broadcaster():
    return _broadcaster


def set_socketio(sio):
    """Set the SocketIO instance for use by other modules."""
    global _socketio
    _socketio = sio


def get_socketio():
    """Get the SocketIO instance."""
    return _socketio
