"""Server configuration load/save/update utilities."""
import json
import logging
import os

import app_state
from app_state import SERVER_CONFIG_DEFAULTS, SERVER_CONFIG_LIMITS

logger = logging.getLogger(__name__)


class ConfigValueError(ValueError):
    """A config value is missing, of the wrong type or out of range."""


def load_server_config(path=None):
    """Load server config from JSON file, creating it with defaults if missing."""
    path = path or app_state.SERVER_CONFIG_FILE
    config = SERVER_CONFIG_DEFAULTS.copy()
    try:
        if os.path.exists(path):
            with open(path, 'r') as f:
                loaded = json.load(f)
            # Only use valid keys from the file
            for key in SERVER_CONFIG_DEFAULTS:
                if key in loaded:
                    config[key] = validate_value(key, loaded[key])
            logger.info(f"Loaded server config from {path}")
        else:
            save_server_config(config, path)
            logger.info(f"Created server config file with defaults at {path}")
    except (OSError, json.JSONDecodeError, ConfigValueError) as e:
        logger.warning(f"Error loading server config: {e}, using defaults")
        config = SERVER_CONFIG_DEFAULTS.copy()
    return config


def save_server_config(config, path=None):
    """Save server config to JSON file."""
    path = path or app_state.SERVER_CONFIG_FILE
    try:
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(config, f, indent=4)
        logger.info(f"Saved server config to {path}")
        return True
    except OSError as e:
        logger.error(f"Error saving server config: {e}")
        return False


def validate_value(key, value):
    """Check a single config value against its limits and return it as float."""
    if key not in SERVER_CONFIG_LIMITS:
        raise ConfigValueError(f"Unknown config key: {key}")
    low, high = SERVER_CONFIG_LIMITS[key]
    # bool is an int subclass but never a valid interval
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not low <= value <= high:
        raise ConfigValueError(f"{key} must be between {low} and {high} seconds")
    return float(value)


def apply_server_config(config):
    """Push config values into the live metrics pipeline."""
    app_state.sampler.set_location_timeout(config['location_timeout'])


def update_server_config(changes):
    """Validate and apply a partial config update, persisting it on success.

    All values are validated before any is applied, so a bad value leaves the
    config untouched.

    Returns:
        dict of the keys that were changed and their new values.

    Raises:
        ConfigValueError: if any value is invalid.
    """
    updated = {key: validate_value(key, value) for key, value in changes.items()}
    with app_state.server_config_lock:
        app_state.server_config.update(updated)
        snapshot = app_state.server_config.copy()
        if updated:
            save_server_config(snapshot)
    apply_server_config(snapshot)
    broadcaster = app_state.get_broadcaster()
    if 'broadcast_interval' in updated and broadcaster is not None:
        # Apply the new interval to the wait already in progress
        broadcaster.reschedule()
    return updated


def init_server_config():
    """Initialize server config and store in app_state."""
    config = load_server_config()
    with app_state.server_config_lock:
        app_state.server_config.clear()
        app_state.server_config.update(config)
    apply_server_config(config)
    return app_state.server_config
