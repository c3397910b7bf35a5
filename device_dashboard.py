"""
Device monitor server.

Serves the device REST API and pushes a metrics snapshot to every connected
Socket.IO client on a fixed interval.
"""
import logging
import os

# Modifies Python's standard libraries to use non-blocking, cooperative I/O (greenthreads), allowing the application to handle many
# simultaneous connections efficiently without using traditional threads.
ASYNC_MODE = 'threading' if os.environ.get('DEBUG_MODE') == '1' else 'eventlet'
if ASYNC_MODE == 'eventlet':
    import eventlet
    eventlet.monkey_patch()

from flask import Flask
from flask_socketio import SocketIO

import app_state
from background import start_all_background_threads, stop_all_background_threads
from routes import register_blueprints
from socketio_handlers import register_socketio_handlers
from utils.server_config import init_server_config

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=logging.DEBUG if app_state.DEBUG_MODE else logging.INFO,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def create_app(start_background=True):
    """Build the Flask app and its SocketIO server.

    The SocketIO instance is stored in app_state (and app.extensions).
    """
    app = Flask(__name__)
    # Generate a random secret key on startup for Flask session management
    app.config['SECRET_KEY'] = os.environ.get('FLASK_SECRET_KEY', os.urandom(24).hex())

    # always_connect: acknowledge the connection before the handler pushes the cached snapshot
    socketio = SocketIO(app, cors_allowed_origins='*', async_mode=ASYNC_MODE, always_connect=True)
    app_state.set_socketio(socketio)

    register_blueprints(app)
    register_socketio_handlers(socketio)
    init_server_config()

    if start_background:
        start_all_background_threads()
    return app


def main():
    configure_logging()
    app = create_app()
    logger.info(f"Server is running on port {app_state.PORT}")
    try:
        app_state.get_socketio().run(
            app,
            host=app_state.HOST,
            port=app_state.PORT,
            debug=app_state.DEBUG_MODE,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
    finally:
        stop_all_background_threads()
        app_state.sampler.close()


if __name__ == '__main__':
    main()
