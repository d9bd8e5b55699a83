"""Platform blueprint - super admin tooling across organizations."""
from flask import Blueprint

platform_bp = Blueprint('platform', __name__)

from roadmap.blueprints.platform import routes  # noqa: F401, E402
