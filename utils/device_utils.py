"""Device control actions: reboot, timezone and profile updates."""
import logging
import shlex
import zoneinfo
from datetime import datetime, timezone

import app_state
from utils.subprocess_helper import run as subprocess_run

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('name', 'description', 'location', 'model', 'tags')


class DeviceActionError(Exception):
    """A device action could not be carried out."""


def reboot_device(device_id, command=None, dry_run=None):
    """Run the configured reboot command once.

    Returns the command that was (or, on a dry run, would have been) run.
    """
    command = command or app_state.REBOOT_COMMAND
    dry_run = app_state.DRY_RUN_REBOOT if dry_run is None else dry_run
    args = shlex.split(command)
    if dry_run:
        logger.info(f"Dry run: would reboot device {device_id} with: {command}")
        return args

    logger.warning(f"Rebooting device {device_id} with: {command}")
    try:
        result = subprocess_run(args, capture_output=True, text=True, timeout=10)
    except (OSError, ValueError) as e:
        raise DeviceActionError(f"Failed to run reboot command: {e}") from e
    if result.returncode != 0:
        raise DeviceActionError(f"Reboot command exited with {result.returncode}: {result.stderr.strip()}")
    return args


def is_valid_timezone(name) -> bool:
    return isinstance(name, str) and name in zoneinfo.available_timezones()


def set_timezone(device_id, tz_name, apply=None):
    """Record the device timezone, and apply it to the host when enabled."""
    if not is_valid_timezone(tz_name):
        raise DeviceActionError(f"Unknown timezone: {tz_name}")

    apply = app_state.APPLY_TIMEZONE if apply is None else apply
    if apply:
        try:
            result = subprocess_run(['sudo', 'timedatectl', 'set-timezone', tz_name],
                                    capture_output=True, text=True, timeout=10)
        except (OSError, ValueError) as e:
            raise DeviceActionError(f"Failed to set timezone: {e}") from e
        if result.returncode != 0:
            raise DeviceActionError(f"timedatectl exited with {result.returncode}: {result.stderr.strip()}")
        logger.info(f"Applied timezone {tz_name} to host")

    return update_device_profile(device_id, {'timezone': tz_name})


def update_device_profile(device_id, changes):
    """Merge changes into the stored device profile and return a copy of it."""
    with app_state.device_profile_lock:
        profile = app_state.device_profile
        if profile.get('deviceId') != device_id:
            profile.clear()
            profile['deviceId'] = device_id
        for key, value in changes.items():
            if value is not None:
                profile[key] = list(value) if key == 'tags' else value
        profile['updatedAt'] = datetime.now(timezone.utc).isoformat()
        return dict(profile)
