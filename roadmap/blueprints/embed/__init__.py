"""Embed blueprint - embeddable widget config and its public endpoints."""
from flask import Blueprint

embed_bp = Blueprint('embed', __name__)

from roadmap.blueprints.embed import routes  # noqa: F401, E402
