"""Categories blueprint - suggestion categories per organization."""
from flask import Blueprint

categories_bp = Blueprint('categories', __name__)

from roadmap.blueprints.categories import routes  # noqa: F401, E402
