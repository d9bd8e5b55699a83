# =============================================================================
# Feature Roadmap - Billing API Tests
# =============================================================================

from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import stripe

from roadmap.extensions import db
from roadmap.models.billing import BillingMode, Payment, PaymentStatus, Subscription, SubscriptionStatus


class TestPublicPlans:

    def test_no_auth_needed(self, client, plans):
        response = client.get('/api/billing/public-plans')
        assert response.status_code == 200
        data = response.get_json()
        assert [p['slug'] for p in data] == ['starter', 'pro', 'business']
        assert data[1]['priceMonthly'] == 2900
        assert 'stripePriceMonthlyId' not in data[1]

    def test_inactive_plans_hidden(self, client, plans):
        plans['business'].is_active = False
        db.session.commit()
        slugs = [p['slug'] for p in client.get('/api/billing/public-plans').get_json()]
        assert 'business' not in slugs


class TestAccessControl:

    def test_requires_token(self, client, plans):
        response = client.get('/api/billing/plans')
        assert response.status_code == 401
        assert response.get_json()['error']['code'] == 'missing_token'

    def test_members_forbidden(self, client, member_user, auth_headers):
        response = client.get('/api/billing/subscription', headers=auth_headers(member_user))
        assert response.status_code == 403

    def test_admin_sees_full_plans(self, client, admin_user, plans, auth_headers):
        data = client.get('/api/billing/plans', headers=auth_headers(admin_user)).get_json()
        assert data[1]['stripePriceMonthlyId'] == 'price_pro_m'


class TestSubscriptionStatus:

    def test_without_subscription(self, client, org, admin_user, auth_headers):
        org.trial_ends_at = datetime.utcnow() + timedelta(days=7)
        db.session.commit()
        data = client.get('/api/billing/subscription', headers=auth_headers(admin_user)).get_json()
        assert data['subscription'] is None
        assert data['currentPlan'] == 'pro'
        assert data['isTrialing'] is True
        assert data['hasStripeCustomer'] is False

    def test_with_subscription(self, client, org, admin_user, plans, auth_headers):
        db.session.add(Subscription(
            organization_id=org.id, plan_id=plans['pro'].id,
            stripe_subscription_id='sub_1', status=SubscriptionStatus.PAST_DUE,
        ))
        db.session.commit()
        data = client.get('/api/billing/subscription', headers=auth_headers(admin_user)).get_json()
        assert data['subscription']['status'] == 'past_due'
        assert data['subscription']['planSlug'] == 'pro'


class TestCheckoutRoutes:

    def test_checkout_returns_url(self, client, org, admin_user, plans, auth_headers):
        with patch.object(stripe.Customer, 'create', return_value=MagicMock(id='cus_1')), \
                patch.object(stripe.checkout.Session, 'create', return_value=MagicMock(url='https://pay')):
            response = client.post(
                '/api/billing/checkout',
                json={'planId': plans['pro'].id, 'interval': 'monthly'},
                headers=auth_headers(admin_user),
            )
        assert response.status_code == 200
        assert response.get_json() == {'url': 'https://pay'}
        assert org.stripe_customer_id == 'cus_1'

    def test_checkout_unknown_plan(self, client, admin_user, plans, auth_headers):
        response = client.post(
            '/api/billing/checkout', json={'planId': 'nope'}, headers=auth_headers(admin_user),
        )
        assert response.status_code == 404

    def test_checkout_without_stripe_key(self, client, app, admin_user, plans, auth_headers):
        app.config['STRIPE_TEST_SECRET_KEY'] = None
        response = client.post(
            '/api/billing/checkout', json={'planId': plans['pro'].id}, headers=auth_headers(admin_user),
        )
        assert response.status_code == 503

    def test_switch_plan_without_subscription(self, client, admin_user, plans, auth_headers):
        response = client.post(
            '/api/billing/switch-plan',
            json={'planId': plans['business'].id},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'validation_error'

    def test_portal_without_customer(self, client, admin_user, auth_headers):
        response = client.post('/api/billing/portal', headers=auth_headers(admin_user))
        assert response.status_code == 400

    def test_portal(self, client, org, admin_user, auth_headers):
        org.stripe_customer_id = 'cus_1'
        db.session.commit()
        with patch.object(stripe.billing_portal.Session, 'create', return_value=MagicMock(url='https://portal')):
            response = client.post('/api/billing/portal', headers=auth_headers(admin_user))
        assert response.get_json() == {'url': 'https://portal'}


class TestInvoices:

    def test_lists_own_payments_newest_first(self, client, org, other_org, admin_user, auth_headers):
        now = datetime.utcnow()
        db.session.add_all([
            Payment(organization_id=org.id, stripe_invoice_id='in_old', amount_cents=100,
                    status=PaymentStatus.FAILED, stripe_mode=BillingMode.TEST,
                    created_at=now - timedelta(days=2)),
            Payment(organization_id=org.id, stripe_invoice_id='in_new', amount_cents=100,
                    status=PaymentStatus.PAID, stripe_mode=BillingMode.TEST, created_at=now),
            Payment(organization_id=other_org.id, stripe_invoice_id='in_other', amount_cents=100,
                    status=PaymentStatus.PAID, stripe_mode=BillingMode.TEST),
        ])
        db.session.commit()

        data = client.get('/api/billing/invoices', headers=auth_headers(admin_user)).get_json()
        assert [p['stripeInvoiceId'] for p in data] == ['in_new', 'in_old']
        assert data[0]['status'] == 'paid'
        assert data[0]['stripeMode'] == 'test'
