"""
Billing models: plans, the local mirror of Stripe subscriptions,
and the append-only payment ledger.
"""
import enum
from datetime import datetime
from uuid import uuid4

from roadmap.extensions import db


class BillingInterval(str, enum.Enum):
    MONTHLY = 'monthly'
    YEARLY = 'yearly'


class BillingMode(str, enum.Enum):
    """Which Stripe credential set is in use."""
    TEST = 'test'
    LIVE = 'live'


class SubscriptionStatus(str, enum.Enum):
    """Stripe-aligned subscription statuses."""
    INCOMPLETE = 'incomplete'
    ACTIVE = 'active'
    PAST_DUE = 'past_due'
    CANCELED = 'canceled'
    TRIALING = 'trialing'


class PaymentStatus(str, enum.Enum):
    PAID = 'paid'
    FAILED = 'failed'


class Plan(db.Model):
    """Billing tier. Prices are integer minor units (cents)."""

    __tablename__ = 'plans'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(50), unique=True, nullable=False, index=True)
    description = db.Column(db.Text)

    price_monthly = db.Column(db.Integer, nullable=False, default=0)
    price_yearly = db.Column(db.Integer, nullable=False, default=0)
    features = db.Column(db.JSON, nullable=False, default=list)

    stripe_product_id = db.Column(db.String(255))
    stripe_price_monthly_id = db.Column(db.String(255), index=True)
    stripe_price_yearly_id = db.Column(db.String(255), index=True)

    # Entitlements
    allow_theme = db.Column(db.Boolean, nullable=False, default=False)
    allow_integrations = db.Column(db.Boolean, nullable=False, default=False)
    allow_embed = db.Column(db.Boolean, nullable=False, default=False)
    max_users = db.Column(db.Integer, nullable=True)  # None = unlimited

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Plan {self.slug}>'

    def price_for(self, interval):
        if BillingInterval(interval) == BillingInterval.YEARLY:
            return self.price_yearly
        return self.price_monthly

    def stripe_price_id_for(self, interval):
        """Stripe price id for the interval, or None if not configured."""
        if BillingInterval(interval) == BillingInterval.YEARLY:
            return self.stripe_price_yearly_id
        return self.stripe_price_monthly_id

    @classmethod
    def find_by_price_id(cls, price_id):
        if not price_id:
            return None
        return cls.query.filter(
            db.or_(cls.stripe_price_monthly_id == price_id, cls.stripe_price_yearly_id == price_id)
        ).first()


class Subscription(db.Model):
    """Local mirror of one Stripe subscription.

    stripe_subscription_id is the idempotency key for webhook upserts.
    Historical rows may remain; the most recent active one drives entitlements.
    """

    __tablename__ = 'subscriptions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    plan_id = db.Column(db.String(36), db.ForeignKey('plans.id'), nullable=False)

    stripe_subscription_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    stripe_customer_id = db.Column(db.String(255), nullable=True)

    status = db.Column(
        db.Enum(SubscriptionStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=SubscriptionStatus.INCOMPLETE,
    )

    # Billing period
    current_period_start = db.Column(db.DateTime, nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)

    # Stripe `created` of the last applied customer.subscription.updated event
    last_event_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    organization = db.relationship('Organization')
    plan = db.relationship('Plan')

    def __repr__(self):
        return f'<Subscription {self.stripe_subscription_id} {self.status.value}>'

    @classmethod
    def find_by_stripe_id(cls, stripe_subscription_id):
        if not stripe_subscription_id:
            return None
        return cls.query.filter_by(stripe_subscription_id=stripe_subscription_id).first()

    @classmethod
    def active_for(cls, organization_id):
        return cls.query.filter_by(
            organization_id=organization_id, status=SubscriptionStatus.ACTIVE,
        ).order_by(cls.created_at.desc()).first()

    @classmethod
    def latest_for(cls, organization_id):
        return cls.query.filter_by(
            organization_id=organization_id,
        ).order_by(cls.created_at.desc()).first()


class Payment(db.Model):
    """Append-only ledger of invoice events.

    A failed attempt followed by a successful retry yields two rows.
    """

    __tablename__ = 'payments'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    stripe_invoice_id = db.Column(db.String(255), index=True)
    stripe_charge_id = db.Column(db.String(255))
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    currency = db.Column(db.String(10), nullable=False, default='usd')
    status = db.Column(
        db.Enum(PaymentStatus, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
    )
    plan_name = db.Column(db.String(255))
    invoice_url = db.Column(db.String(1000))
    stripe_mode = db.Column(
        db.Enum(BillingMode, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=BillingMode.TEST,
    )
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    organization = db.relationship('Organization')

    def __repr__(self):
        return f'<Payment {self.stripe_invoice_id} {self.status.value}>'
