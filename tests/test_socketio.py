"""Tests for the Socket.IO transport."""
import app_state
from socketio_handlers import SNAPSHOT_EVENT


def _snapshot_events(received):
    return [event['args'][0] for event in received if event['name'] == SNAPSHOT_EVENT]


def test_connect_registers_subscriber(app, isolated_state):
    client = app_state.get_socketio().test_client(app)
    assert client.is_connected()
    assert len(isolated_state.subscription_registry) == 1
    # Nothing cached yet, so nothing sent
    assert _snapshot_events(client.get_received()) == []

    client.disconnect()
    assert len(isolated_state.subscription_registry) == 0


def test_connect_receives_cached_snapshot(app, isolated_state):
    isolated_state.get_broadcaster().run_cycle()

    client = app_state.get_socketio().test_client(app)
    payloads = _snapshot_events(client.get_received())

    assert len(payloads) == 1
    assert payloads[0]['hostName'] == 'testhost'
    client.disconnect()


def test_ticks_reach_every_client(app, isolated_state):
    socketio = app_state.get_socketio()
    first = socketio.test_client(app)
    second = socketio.test_client(app)

    isolated_state.get_broadcaster().run_cycle()
    isolated_state.get_broadcaster().run_cycle()

    assert len(_snapshot_events(first.get_received())) == 2
    assert len(_snapshot_events(second.get_received())) == 2

    first.disconnect()
    isolated_state.get_broadcaster().run_cycle()
    assert len(_snapshot_events(second.get_received())) == 1
    second.disconnect()


def test_error_payload_is_pushed(app, isolated_state, fake_sampler):
    client = app_state.get_socketio().test_client(app)
    fake_sampler.fail_next = 1
    isolated_state.get_broadcaster().run_cycle()

    payloads = _snapshot_events(client.get_received())
    assert payloads == [{'error': 'sampling_failed', 'message': 'No metric source could be read (cpu, disk)'}]
    client.disconnect()


def test_request_snapshot(app, isolated_state):
    client = app_state.get_socketio().test_client(app)
    isolated_state.get_broadcaster().run_cycle()
    client.get_received()

    client.emit('request_snapshot')
    assert len(_snapshot_events(client.get_received())) == 1
    client.disconnect()
