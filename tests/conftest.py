"""Shared pytest setup: importable flat layout, isolated config, clean app state."""
import os
import pathlib
import sys
import tempfile

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent

# Must be set before app_state / device_dashboard are imported
os.environ['DEBUG_MODE'] = '1'
os.environ['DRY_RUN_REBOOT'] = '1'
os.environ.setdefault('SERVER_CONFIG_FILE', os.path.join(tempfile.mkdtemp(), 'server_config.json'))

for path in (PROJECT_ROOT, PROJECT_ROOT / 'tests'):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

import app_state  # noqa: E402
from background import SnapshotBroadcaster  # noqa: E402
from metrics import SnapshotCache, SubscriptionRegistry  # noqa: E402

from fakes import FakeSampler  # noqa: E402


@pytest.fixture
def fake_sampler():
    return FakeSampler()


@pytest.fixture
def isolated_state(monkeypatch, fake_sampler):
    """Swap the app_state pipeline for a fake sampler and fresh cache/registry."""
    cache = SnapshotCache()
    registry = SubscriptionRegistry()
    broadcaster = SnapshotBroadcaster(fake_sampler, cache, registry, interval=60)
    monkeypatch.setattr(app_state, 'sampler', fake_sampler)
    monkeypatch.setattr(app_state, 'snapshot_cache', cache)
    monkeypatch.setattr(app_state, 'subscription_registry', registry)
    monkeypatch.setattr(app_state, '_broadcaster', broadcaster)
    monkeypatch.setattr(app_state, 'device_profile', {})
    yield app_state
    broadcaster.stop()


@pytest.fixture
def app(isolated_state, tmp_path, monkeypatch):
    from device_dashboard import create_app
    monkeypatch.setattr(app_state, 'SERVER_CONFIG_FILE', str(tmp_path / 'server_config.json'))
    monkeypatch.setattr(app_state, 'server_config', dict(app_state.SERVER_CONFIG_DEFAULTS))
    flask_app = create_app(start_background=False)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
