"""Auth blueprint - registration, login, invitations and password resets."""
from flask import Blueprint

auth_bp = Blueprint('auth', __name__)

from roadmap.blueprints.auth import routes  # noqa: F401, E402
