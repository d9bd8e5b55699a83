"""Webhooks blueprint - Stripe event intake."""
from flask import Blueprint

webhooks_bp = Blueprint('webhooks', __name__)

from roadmap.blueprints.webhooks import routes  # noqa: F401, E402
