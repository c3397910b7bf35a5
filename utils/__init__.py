"""Utility modules for the device monitor.

Nothing is re-exported here: server_config and device_utils depend on
app_state, which depends on metrics, which depends on subprocess_helper.
Import each module by its path.
"""
