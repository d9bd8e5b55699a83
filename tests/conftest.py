# =============================================================================
# Feature Roadmap - Pytest Fixtures Configuration
# =============================================================================

import hashlib
import hmac
import json
import time

import pytest

from roadmap import create_app
from roadmap.decorators import create_access_token
from roadmap.extensions import db
from roadmap.models.billing import Plan
from roadmap.models.organization import Organization
from roadmap.models.suggestion import Category, Suggestion
from roadmap.models.user import User, UserRole
from roadmap.services.billing_mode import billing_mode_cache


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture(scope='function')
def app():
    """Create and configure test application with SQLite in-memory database."""
    application = create_app('testing')

    with application.app_context():
        db.create_all()
        billing_mode_cache.invalidate()
        yield application
        billing_mode_cache.invalidate()
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client for HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def runner(app):
    """CLI test runner."""
    return app.test_cli_runner()


@pytest.fixture
def auth_headers(app):
    """Build an Authorization header for a user."""
    def _headers(user):
        return {'Authorization': f'Bearer {create_access_token(user)}'}
    return _headers


# =============================================================================
# Organization & User Fixtures
# =============================================================================

def _make_user(org, email, name, role=UserRole.USER, password='Password123', **extra):
    user = User(organization_id=org.id, email=email, name=name, role=role, **extra)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def org(app):
    """Active organization 'acme'."""
    organization = Organization(name='Acme', slug='acme', plan='pro')
    db.session.add(organization)
    db.session.commit()
    return organization


@pytest.fixture
def other_org(app):
    """A second tenant, for isolation checks."""
    organization = Organization(name='Globex', slug='globex', plan='pro')
    db.session.add(organization)
    db.session.commit()
    return organization


@pytest.fixture
def admin_user(org):
    return _make_user(org, 'admin@acme.test', 'Ada Admin', role=UserRole.ADMIN)


@pytest.fixture
def member_user(org):
    return _make_user(org, 'member@acme.test', 'Max Member', customer_value=1500)


@pytest.fixture
def other_admin(other_org):
    return _make_user(other_org, 'admin@globex.test', 'Gus Globex', role=UserRole.ADMIN)


@pytest.fixture
def super_admin(org):
    return _make_user(org, 'root@acme.test', 'Root', role=UserRole.ADMIN, is_super_admin=True)


# =============================================================================
# Board Fixtures
# =============================================================================

@pytest.fixture
def category(org):
    cat = Category(organization_id=org.id, name='UI', color='#ff0000', sort_order=1)
    db.session.add(cat)
    db.session.commit()
    return cat


@pytest.fixture
def suggestion(org, member_user, category):
    item = Suggestion(
        organization_id=org.id,
        category_id=category.id,
        created_by=member_user.id,
        title='Dark mode',
        description='Please add a dark theme.',
    )
    db.session.add(item)
    db.session.commit()
    return item


@pytest.fixture
def other_suggestion(other_org, other_admin):
    item = Suggestion(organization_id=other_org.id, created_by=other_admin.id, title='Globex idea')
    db.session.add(item)
    db.session.commit()
    return item


# =============================================================================
# Billing Fixtures
# =============================================================================

@pytest.fixture
def plans(app):
    """Starter (free), Pro and Business plans keyed by slug."""
    created = {
        'starter': Plan(name='Starter', slug='starter', price_monthly=0, price_yearly=0, sort_order=1),
        'pro': Plan(
            name='Pro', slug='pro', price_monthly=2900, price_yearly=29000, sort_order=2,
            stripe_price_monthly_id='price_pro_m', stripe_price_yearly_id='price_pro_y',
        ),
        'business': Plan(
            name='Business', slug='business', price_monthly=9900, price_yearly=99000, sort_order=3,
            stripe_price_monthly_id='price_biz_m', stripe_price_yearly_id='price_biz_y',
        ),
    }
    db.session.add_all(created.values())
    db.session.commit()
    return created


def sign_stripe_payload(payload, secret, timestamp=None):
    """Stripe-Signature header value for a payload, as Stripe computes it."""
    timestamp = timestamp or int(time.time())
    signed = f'{timestamp}.{payload}'.encode('utf-8')
    signature = hmac.new(secret.encode('utf-8'), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={signature}'


@pytest.fixture
def sign_payload(app):
    """Sign an arbitrary raw body with the test webhook secret."""
    def _sign(payload, secret=None):
        return sign_stripe_payload(payload, secret or app.config['STRIPE_TEST_WEBHOOK_SECRET'])
    return _sign


@pytest.fixture
def stripe_event(app):
    """Build a (payload, signature) pair for a webhook event signed with the test secret."""
    def _event(event_type, obj, created=None, secret=None):
        payload = json.dumps({
            'id': 'evt_test',
            'type': event_type,
            'created': created or int(time.time()),
            'data': {'object': obj},
        })
        secret = secret or app.config['STRIPE_TEST_WEBHOOK_SECRET']
        return payload, sign_stripe_payload(payload, secret)
    return _event
