"""Main blueprint - health check."""
from flask import Blueprint

main_bp = Blueprint('main', __name__)

from roadmap.blueprints.main import routes  # noqa: F401, E402
