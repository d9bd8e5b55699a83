"""Users blueprint - organization user management."""
from flask import Blueprint

users_bp = Blueprint('users', __name__)

from roadmap.blueprints.users import routes  # noqa: F401, E402
