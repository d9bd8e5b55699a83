"""Suggestions blueprint - the organization's own board."""
from flask import Blueprint

suggestions_bp = Blueprint('suggestions', __name__)

from roadmap.blueprints.suggestions import routes  # noqa: F401, E402
