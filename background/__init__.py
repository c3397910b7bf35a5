"""Background thread management."""
import logging

import app_state
from .snapshot_broadcaster import SnapshotBroadcaster, BroadcasterState

logger = logging.getLogger(__name__)


def create_broadcaster():
    """Build the shared broadcaster from the app_state singletons."""
    broadcaster = app_state.get_broadcaster()
    if broadcaster is None:
        broadcaster = SnapshotBroadcaster(
            app_state.sampler,
            app_state.snapshot_cache,
            app_state.subscription_registry,
            interval=app_state.get_broadcast_interval,
        )
        app_state.set_broadcaster(broadcaster)
    return broadcaster


def start_all_background_threads():
    """Start all background monitoring threads."""
    broadcaster = create_broadcaster()
    broadcaster.start()
    logger.info('Started background thread: Snapshot Broadcaster')
    return broadcaster


def stop_all_background_threads():
    """Stop the snapshot broadcaster if it was started."""
    broadcaster = app_state.get_broadcaster()
    if broadcaster is not None:
        broadcaster.stop()
