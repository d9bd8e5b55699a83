# =============================================================================
# Feature Roadmap - Subscription Reconciliation Tests
# =============================================================================
"""
Applies Stripe events through SubscriptionService.dispatch. Signature
verification is covered in test_webhook_route.
"""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import stripe

from roadmap.errors import ExternalProviderError
from roadmap.extensions import db
from roadmap.models.billing import (
    BillingMode,
    Payment,
    PaymentStatus,
    Subscription,
    SubscriptionStatus,
)
from roadmap.services.subscription_service import SubscriptionService, WebhookEvent

PERIOD_START = 1767225600  # 2026-01-01
PERIOD_END = 1769904000    # 2026-02-01


def _stripe_subscription(status='active', **overrides):
    data = {
        'id': 'sub_123',
        'status': status,
        'cancel_at_period_end': False,
        'current_period_start': PERIOD_START,
        'current_period_end': PERIOD_END,
        'items': {'data': [{'id': 'si_1', 'price': {'id': 'price_pro_m'}}]},
    }
    data.update(overrides)
    return data


def _event(event_type, obj, created=1767300000):
    return {'id': 'evt_1', 'type': event_type, 'created': created, 'data': {'object': obj}}


@pytest.fixture
def retrieve():
    with patch.object(stripe.Subscription, 'retrieve') as mock_retrieve:
        mock_retrieve.return_value = _stripe_subscription()
        yield mock_retrieve


@pytest.fixture
def checkout_session(org, plans):
    return {
        'id': 'cs_1',
        'customer': 'cus_1',
        'subscription': 'sub_123',
        'metadata': {'organization_id': org.id, 'plan_id': plans['pro'].id},
    }


@pytest.fixture
def subscription(org, plans):
    org.stripe_customer_id = 'cus_1'
    sub = Subscription(
        organization_id=org.id,
        plan_id=plans['pro'].id,
        stripe_subscription_id='sub_123',
        stripe_customer_id='cus_1',
        status=SubscriptionStatus.ACTIVE,
    )
    db.session.add(sub)
    db.session.commit()
    return sub


def _invoice(**overrides):
    data = {
        'id': 'in_1',
        'customer': 'cus_1',
        'subscription': 'sub_123',
        'charge': 'ch_1',
        'amount_paid': 2900,
        'amount_due': 2900,
        'currency': 'eur',
        'hosted_invoice_url': 'https://invoice.stripe.com/i/in_1',
        'lines': {'data': [{'description': '1 x Pro (at 29.00 / month)'}]},
    }
    data.update(overrides)
    return data


class TestDispatch:

    def test_unknown_event_type_is_ignored(self, app):
        result = SubscriptionService.dispatch(_event('customer.created', {}), BillingMode.TEST)
        assert result == {'event_type': 'customer.created', 'handled': False}

    def test_parse_event_types(self):
        assert WebhookEvent.parse('invoice.paid') is WebhookEvent.INVOICE_PAID
        assert WebhookEvent.parse('charge.refunded') is None


class TestCheckoutCompleted:

    def test_creates_subscription_and_moves_plan(self, org, plans, checkout_session, retrieve):
        result = SubscriptionService.dispatch(
            _event('checkout.session.completed', checkout_session), BillingMode.TEST,
        )
        assert result['handled'] is True

        sub = Subscription.query.one()
        assert sub.organization_id == org.id
        assert sub.plan_id == plans['pro'].id
        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.current_period_start == datetime(2026, 1, 1)
        assert sub.current_period_end == datetime(2026, 2, 1)
        assert org.plan == 'pro'
        assert org.stripe_customer_id == 'cus_1'

        args, kwargs = retrieve.call_args
        assert args == ('sub_123',)
        assert kwargs['api_key'] == 'sk_test_fake_key_for_testing'

    def test_redelivery_does_not_duplicate(self, checkout_session, retrieve):
        SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)
        retrieve.return_value = _stripe_subscription(
            status='past_due', current_period_start=PERIOD_END, current_period_end=1772323200,
        )
        SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)

        sub = Subscription.query.one()
        assert sub.status == SubscriptionStatus.PAST_DUE
        assert sub.current_period_start == datetime(2026, 2, 1)
        assert sub.current_period_end == datetime(2026, 3, 1)

    def test_live_mode_uses_live_key(self, checkout_session, retrieve):
        SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.LIVE)
        assert retrieve.call_args.kwargs['api_key'] == 'sk_live_fake_key_for_testing'

    def test_period_read_from_first_item(self, checkout_session, retrieve):
        retrieve.return_value = _stripe_subscription(
            current_period_start=None,
            current_period_end=None,
            items={'data': [{
                'id': 'si_1',
                'price': {'id': 'price_pro_m'},
                'current_period_start': PERIOD_START,
                'current_period_end': PERIOD_END,
            }]},
        )
        SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)
        assert Subscription.query.one().current_period_end == datetime(2026, 2, 1)

    def test_trialing_status_kept(self, checkout_session, retrieve):
        retrieve.return_value = _stripe_subscription(status='trialing')
        SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)
        assert Subscription.query.one().status == SubscriptionStatus.TRIALING

    def test_missing_metadata_ignored(self, checkout_session, retrieve):
        checkout_session['metadata'] = {}
        assert SubscriptionService.handle_checkout_completed(checkout_session) is False
        assert Subscription.query.count() == 0
        retrieve.assert_not_called()

    def test_unknown_organization_ignored(self, checkout_session, retrieve):
        checkout_session['metadata']['organization_id'] = 'no-such-org'
        assert SubscriptionService.handle_checkout_completed(checkout_session) is False
        assert Subscription.query.count() == 0

    def test_unknown_plan_falls_back_to_free_plan(self, org, plans, checkout_session, retrieve):
        checkout_session['metadata']['plan_id'] = 'deleted-plan'
        assert SubscriptionService.handle_checkout_completed(checkout_session) is True
        assert Subscription.query.one().plan_id == plans['starter'].id
        assert org.plan == 'starter'

    def test_stripe_failure_leaves_no_partial_state(self, org, checkout_session, retrieve):
        retrieve.side_effect = stripe.APIConnectionError('network down')
        with pytest.raises(ExternalProviderError):
            SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)
        db.session.rollback()
        assert Subscription.query.count() == 0
        assert org.stripe_customer_id is None


class TestInvoices:

    def test_paid_appends_payment(self, org, subscription):
        SubscriptionService.dispatch(_event('invoice.paid', _invoice()), BillingMode.LIVE)
        payment = Payment.query.one()
        assert payment.organization_id == org.id
        assert payment.status == PaymentStatus.PAID
        assert payment.amount_cents == 2900
        assert payment.currency == 'eur'
        assert payment.plan_name == '1 x Pro (at 29.00 / month)'
        assert payment.stripe_mode == BillingMode.LIVE
        assert payment.invoice_url == 'https://invoice.stripe.com/i/in_1'

    def test_failed_then_paid_keeps_two_rows(self, subscription):
        SubscriptionService.handle_invoice_payment_failed(_invoice(amount_paid=0), BillingMode.TEST)
        assert subscription.status == SubscriptionStatus.PAST_DUE

        SubscriptionService.handle_invoice_paid(_invoice(), BillingMode.TEST)
        assert subscription.status == SubscriptionStatus.ACTIVE

        statuses = sorted(p.status.value for p in Payment.query.all())
        assert statuses == ['failed', 'paid']

    def test_failed_uses_amount_due(self, subscription):
        SubscriptionService.handle_invoice_payment_failed(_invoice(amount_paid=0, amount_due=4500))
        assert Payment.query.one().amount_cents == 4500

    def test_unknown_customer_is_noop(self, subscription):
        assert SubscriptionService.handle_invoice_paid(_invoice(customer='cus_stranger')) is False
        assert Payment.query.count() == 0

    def test_subscription_reference_in_parent_details(self, subscription):
        subscription.status = SubscriptionStatus.PAST_DUE
        db.session.commit()
        invoice = _invoice(subscription=None, parent={'subscription_details': {'subscription': 'sub_123'}})
        SubscriptionService.handle_invoice_paid(invoice)
        assert subscription.status == SubscriptionStatus.ACTIVE

    def test_invoice_without_subscription_still_recorded(self, subscription):
        SubscriptionService.handle_invoice_paid(_invoice(subscription=None, lines={'data': []}))
        payment = Payment.query.one()
        assert payment.plan_name == 'Subscription'
        assert subscription.status == SubscriptionStatus.ACTIVE


class TestSubscriptionUpdated:

    def test_price_change_switches_plan(self, org, plans, subscription):
        data = _stripe_subscription(items={'data': [{'id': 'si_1', 'price': {'id': 'price_biz_y'}}]})
        assert SubscriptionService.handle_subscription_updated(data, event_created=1767300000) is True
        assert subscription.plan_id == plans['business'].id
        assert org.plan == 'business'

    def test_unknown_price_keeps_plan_but_refreshes_status(self, plans, subscription):
        data = _stripe_subscription(
            status='past_due', cancel_at_period_end=True,
            items={'data': [{'id': 'si_1', 'price': {'id': 'price_unknown'}}]},
        )
        SubscriptionService.handle_subscription_updated(data)
        assert subscription.plan_id == plans['pro'].id
        assert subscription.status == SubscriptionStatus.PAST_DUE
        assert subscription.cancel_at_period_end is True

    def test_unpaid_maps_to_past_due(self, subscription):
        SubscriptionService.handle_subscription_updated(_stripe_subscription(status='unpaid'))
        assert subscription.status == SubscriptionStatus.PAST_DUE

    def test_older_event_is_skipped(self, subscription):
        SubscriptionService.handle_subscription_updated(
            _stripe_subscription(status='past_due'), event_created=1767300100,
        )
        applied = SubscriptionService.handle_subscription_updated(
            _stripe_subscription(status='active'), event_created=1767300000,
        )
        assert applied is False
        assert subscription.status == SubscriptionStatus.PAST_DUE

    def test_same_timestamp_redelivery_applies(self, subscription):
        SubscriptionService.handle_subscription_updated(
            _stripe_subscription(status='past_due'), event_created=1767300000,
        )
        assert SubscriptionService.handle_subscription_updated(
            _stripe_subscription(status='active'), event_created=1767300000,
        ) is True
        assert subscription.status == SubscriptionStatus.ACTIVE

    def test_unknown_subscription_ignored(self, app):
        assert SubscriptionService.handle_subscription_updated(_stripe_subscription(id='sub_x')) is False


class TestSubscriptionDeleted:

    def test_cancels_and_downgrades(self, org, subscription):
        assert SubscriptionService.handle_subscription_deleted({'id': 'sub_123'}) is True
        assert subscription.status == SubscriptionStatus.CANCELED
        assert org.plan == 'starter'

    def test_redelivery_is_idempotent(self, org, subscription):
        SubscriptionService.handle_subscription_deleted({'id': 'sub_123'})
        SubscriptionService.handle_subscription_deleted({'id': 'sub_123'})
        assert subscription.status == SubscriptionStatus.CANCELED
        assert Subscription.query.count() == 1

    def test_unknown_subscription_ignored(self, org):
        assert SubscriptionService.handle_subscription_deleted({'id': 'sub_nope'}) is False
        assert org.plan == 'pro'


class TestCurrentSubscription:

    def test_latest_row_returned(self, org, subscription):
        assert SubscriptionService.current_subscription(org.id) is subscription

    def test_none_without_rows(self, org):
        assert SubscriptionService.current_subscription(org.id) is None


def test_stripe_object_results_are_converted(checkout_session, retrieve):
    stripe_obj = MagicMock()
    stripe_obj.to_dict.return_value = _stripe_subscription()
    retrieve.return_value = stripe_obj
    SubscriptionService.handle_checkout_completed(checkout_session, BillingMode.TEST)
    assert Subscription.query.one().status == SubscriptionStatus.ACTIVE
