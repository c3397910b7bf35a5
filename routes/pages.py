"""Root status route."""
from flask import Blueprint

pages_bp = Blueprint('pages', __name__)


@pages_bp.route('/')
def index():
    """Plain-text liveness message."""
    return 'Device Management API is running'
