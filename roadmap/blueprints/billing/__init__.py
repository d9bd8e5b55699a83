"""Billing blueprint - plans, Stripe checkout, plan switches and the customer portal."""
from flask import Blueprint

billing_bp = Blueprint('billing', __name__)

from roadmap.blueprints.billing import routes  # noqa: F401, E402
