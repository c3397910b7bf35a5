"""Blueprint registration for all routes."""
from .pages import pages_bp
from .device_api import device_bp
from .system_api import system_bp


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    app.register_blueprint(pages_bp)
    app.register_blueprint(device_bp)
    app.register_blueprint(system_bp)
