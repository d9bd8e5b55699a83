"""Board blueprint - public board per organization slug, anonymous votes and commenters."""
from flask import Blueprint

board_bp = Blueprint('board', __name__)

from roadmap.blueprints.board import routes  # noqa: F401, E402
