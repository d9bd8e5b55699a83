"""
Stripe webhook endpoint.

Verified by signature, not by token. Failures surface as RoadmapError
statuses: 400 for a bad signature (never retried usefully), 500 for a
handler failure or missing webhook secret (Stripe redelivers), 503 when
billing is not configured.
"""
from flask import request, current_app

from roadmap.blueprints.helpers import api_success
from roadmap.blueprints.webhooks import webhooks_bp
from roadmap.extensions import limiter
from roadmap.services.subscription_service import SubscriptionService


@webhooks_bp.route('/stripe', methods=['POST'])
@limiter.limit('300 per minute')
def stripe_webhook():
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature', '')

    result = SubscriptionService.handle_webhook_event(payload, sig_header)
    current_app.logger.info(f'Webhook processed: {result["event_type"]} (handled={result["handled"]})')
    return api_success({'received': True})
