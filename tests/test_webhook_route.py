# =============================================================================
# Feature Roadmap - Stripe Webhook Endpoint Tests
# =============================================================================

import json
from unittest.mock import patch

import stripe

from roadmap.models.billing import Subscription, SubscriptionStatus
from roadmap.services.billing_mode import set_billing_mode
from roadmap.services.subscription_service import SubscriptionService


URL = '/api/webhooks/stripe'


def _post(client, payload, signature):
    return client.post(
        URL,
        data=payload,
        headers={'Stripe-Signature': signature, 'Content-Type': 'application/json'},
    )


class TestSignature:

    def test_valid_signature_unknown_event_accepted(self, client, stripe_event):
        payload, signature = stripe_event('customer.created', {'id': 'cus_1'})
        response = _post(client, payload, signature)
        assert response.status_code == 200
        assert response.get_json() == {'received': True}

    def test_bad_signature_rejected(self, client, stripe_event):
        payload, _ = stripe_event('invoice.paid', {'id': 'in_1'})
        response = _post(client, payload, 't=1,v1=deadbeef')
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'invalid_signature'

    def test_missing_signature_rejected(self, client, stripe_event):
        payload, _ = stripe_event('invoice.paid', {'id': 'in_1'})
        response = client.post(URL, data=payload, content_type='application/json')
        assert response.status_code == 400

    def test_tampered_body_rejected(self, client, stripe_event):
        payload, signature = stripe_event('invoice.paid', {'id': 'in_1', 'amount_paid': 100})
        tampered = payload.replace('100', '999')
        assert _post(client, tampered, signature).status_code == 400

    def test_signed_with_other_mode_secret_rejected(self, client, app, stripe_event):
        payload, signature = stripe_event(
            'customer.created', {}, secret=app.config['STRIPE_LIVE_WEBHOOK_SECRET'],
        )
        assert _post(client, payload, signature).status_code == 400

    def test_live_mode_verifies_with_live_secret(self, client, app, stripe_event):
        set_billing_mode('live')
        payload, signature = stripe_event(
            'customer.created', {}, secret=app.config['STRIPE_LIVE_WEBHOOK_SECRET'],
        )
        assert _post(client, payload, signature).status_code == 200

    def test_non_utf8_body_rejected(self, client):
        response = _post(client, b'\xff\xfe{}', 't=1,v1=deadbeef')
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'invalid_signature'

    def test_signed_non_json_body_rejected(self, client, sign_payload):
        payload = 'not json'
        signature = sign_payload(payload)
        response = _post(client, payload, signature)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'validation_error'


class TestConfiguration:

    def test_no_secret_key_is_503(self, client, app, stripe_event):
        payload, signature = stripe_event('customer.created', {})
        app.config['STRIPE_TEST_SECRET_KEY'] = None
        response = _post(client, payload, signature)
        assert response.status_code == 503
        assert response.get_json()['error']['code'] == 'billing_not_configured'

    def test_no_webhook_secret_is_500(self, client, app, stripe_event):
        payload, signature = stripe_event('customer.created', {})
        app.config['STRIPE_TEST_WEBHOOK_SECRET'] = None
        response = _post(client, payload, signature)
        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'webhook_secret_missing'


class TestHandling:

    def test_handler_failure_is_500_for_redelivery(self, client, stripe_event):
        payload, signature = stripe_event('customer.subscription.deleted', {'id': 'sub_1'})
        with patch.object(
            SubscriptionService, 'handle_subscription_deleted', side_effect=RuntimeError('boom'),
        ):
            response = _post(client, payload, signature)
        assert response.status_code == 500
        assert response.get_json()['error']['code'] == 'webhook_handler_error'

    def test_stripe_failure_inside_handler_is_500(self, client, org, plans, stripe_event):
        session = {
            'id': 'cs_1',
            'customer': 'cus_1',
            'subscription': 'sub_1',
            'metadata': {'organization_id': org.id, 'plan_id': plans['pro'].id},
        }
        payload, signature = stripe_event('checkout.session.completed', session)
        with patch.object(stripe.Subscription, 'retrieve', side_effect=stripe.APIConnectionError('down')):
            response = _post(client, payload, signature)
        assert response.status_code == 500
        assert Subscription.query.count() == 0

    def test_checkout_completed_end_to_end(self, client, org, plans, stripe_event):
        session = {
            'id': 'cs_1',
            'customer': 'cus_1',
            'subscription': 'sub_1',
            'metadata': {'organization_id': org.id, 'plan_id': plans['business'].id},
        }
        payload, signature = stripe_event('checkout.session.completed', session)
        stripe_sub = {
            'id': 'sub_1',
            'status': 'active',
            'current_period_start': 1767225600,
            'current_period_end': 1769904000,
            'items': {'data': [{'id': 'si_1', 'price': {'id': 'price_biz_m'}}]},
        }
        with patch.object(stripe.Subscription, 'retrieve', return_value=stripe_sub):
            response = _post(client, payload, signature)

        assert response.status_code == 200
        sub = Subscription.query.one()
        assert sub.status == SubscriptionStatus.ACTIVE
        assert org.plan == 'business'

    def test_body_is_used_verbatim(self, client, sign_payload):
        # Whitespace differs from json.dumps defaults; verification is over the raw bytes.
        payload = json.dumps({'id': 'evt_1', 'type': 'ping', 'data': {'object': {}}}, indent=2)
        signature = sign_payload(payload)
        assert _post(client, payload, signature).status_code == 200
