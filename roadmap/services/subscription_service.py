"""
Subscription service for Feature Roadmap SaaS billing.
Keeps the local Subscription/Payment tables in step with Stripe by
applying webhook events.

Stripe delivers events at least once and not necessarily in order, so
every handler is an idempotent upsert or overwrite. Events referencing
customers or subscriptions this system never recorded are ignored.
"""
import enum
import json
from typing import Optional

import stripe
from flask import current_app

from roadmap.errors import (
    BillingNotConfigured,
    ExternalProviderError,
    SignatureVerificationFailed,
    ValidationError,
)
from roadmap.extensions import db
from roadmap.models.billing import (
    BillingMode,
    Payment,
    PaymentStatus,
    Plan,
    Subscription,
    SubscriptionStatus,
)
from roadmap.models.organization import Organization
from roadmap.services import stripe_api
from roadmap.services.billing_mode import get_billing_mode, stripe_credentials


class WebhookEvent(str, enum.Enum):
    """Stripe event types this service applies. Anything else is ignored."""
    CHECKOUT_COMPLETED = 'checkout.session.completed'
    INVOICE_PAID = 'invoice.paid'
    INVOICE_PAYMENT_FAILED = 'invoice.payment_failed'
    SUBSCRIPTION_UPDATED = 'customer.subscription.updated'
    SUBSCRIPTION_DELETED = 'customer.subscription.deleted'

    @classmethod
    def parse(cls, event_type) -> Optional['WebhookEvent']:
        try:
            return cls(event_type)
        except ValueError:
            return None


# Stripe statuses without a local counterpart
_STATUS_ALIASES = {
    'incomplete_expired': SubscriptionStatus.CANCELED,
    'unpaid': SubscriptionStatus.PAST_DUE,
}


def _status_from_stripe(value, default=None):
    try:
        return SubscriptionStatus(value)
    except ValueError:
        return _STATUS_ALIASES.get(value, default)


def _first_item(sub_data: dict) -> dict:
    items = (sub_data.get('items') or {}).get('data') or []
    return items[0] if items else {}


def _period_bounds(sub_data: dict):
    """Current period (start, end) from the subscription or its first item.

    Newer API versions moved the period fields onto subscription items.
    """
    item = _first_item(sub_data)
    start = sub_data.get('current_period_start') or item.get('current_period_start')
    end = sub_data.get('current_period_end') or item.get('current_period_end')
    return stripe_api.from_epoch(start), stripe_api.from_epoch(end)


def _invoice_subscription_id(invoice: dict) -> Optional[str]:
    if invoice.get('subscription'):
        return invoice['subscription']
    details = ((invoice.get('parent') or {}).get('subscription_details') or {})
    return details.get('subscription')


def _invoice_description(invoice: dict) -> str:
    lines = (invoice.get('lines') or {}).get('data') or []
    return (lines[0].get('description') if lines else None) or 'Subscription'


class SubscriptionService:
    """Applies Stripe webhook events to local billing state."""

    @staticmethod
    def handle_webhook_event(payload: bytes, sig_header: str, mode: Optional[BillingMode] = None) -> dict:
        """Verify and apply an incoming Stripe webhook.

        Args:
            payload: Raw request body, exactly as received
            sig_header: Stripe-Signature header value
            mode: Billing mode whose webhook secret applies (default: active mode)

        Returns:
            Dict with event type and whether a handler applied it

        Raises:
            BillingNotConfigured: No secret key for the mode
            ExternalProviderError: Webhook secret missing (500), or a handler failed (500)
            SignatureVerificationFailed: Signature did not verify (400)
            ValidationError: Body is not a JSON event
        """
        mode = BillingMode(mode) if mode is not None else get_billing_mode()
        secret_key, webhook_secret = stripe_credentials(mode)

        if not secret_key:
            raise BillingNotConfigured('Stripe is not configured.')
        if not webhook_secret:
            current_app.logger.error(f'Stripe webhook secret not set for mode: {mode.value}')
            raise ExternalProviderError(
                'Webhook secret not configured.', code='webhook_secret_missing', status=500,
            )

        try:
            body = payload.decode('utf-8') if isinstance(payload, bytes) else payload
        except UnicodeDecodeError as e:
            current_app.logger.warning(f'Webhook body is not UTF-8: {e}')
            raise SignatureVerificationFailed('Invalid webhook signature.') from e

        try:
            stripe.WebhookSignature.verify_header(body, sig_header or '', webhook_secret)
        except stripe.SignatureVerificationError as e:
            current_app.logger.warning(f'Webhook signature verification failed: {e}')
            raise SignatureVerificationFailed('Invalid webhook signature.') from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError('Invalid webhook payload.') from e

        try:
            return SubscriptionService.dispatch(event, mode)
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"Error handling webhook {event.get('type')} ({event.get('id')}): {e}",
                exc_info=True,
            )
            raise ExternalProviderError(
                'Webhook handler error.', code='webhook_handler_error', status=500,
            ) from e

    @staticmethod
    def dispatch(event: dict, mode: BillingMode) -> dict:
        """Route a verified event to its handler."""
        event_type = event.get('type')
        kind = WebhookEvent.parse(event_type)
        result = {'event_type': event_type, 'handled': False}

        if kind is None:
            current_app.logger.info(f'Unhandled webhook event: {event_type}')
            return result

        data = stripe_api.as_dict((event.get('data') or {}).get('object'))

        if kind is WebhookEvent.CHECKOUT_COMPLETED:
            result['handled'] = SubscriptionService.handle_checkout_completed(data, mode)
        elif kind is WebhookEvent.INVOICE_PAID:
            result['handled'] = SubscriptionService.handle_invoice_paid(data, mode)
        elif kind is WebhookEvent.INVOICE_PAYMENT_FAILED:
            result['handled'] = SubscriptionService.handle_invoice_payment_failed(data, mode)
        elif kind is WebhookEvent.SUBSCRIPTION_UPDATED:
            result['handled'] = SubscriptionService.handle_subscription_updated(
                data, event_created=event.get('created'),
            )
        elif kind is WebhookEvent.SUBSCRIPTION_DELETED:
            result['handled'] = SubscriptionService.handle_subscription_deleted(data)

        return result

    @staticmethod
    def handle_checkout_completed(session_data: dict, mode: Optional[BillingMode] = None) -> bool:
        """Process checkout.session.completed.

        Creates or refreshes the Subscription row for the session's Stripe
        subscription and moves the organization onto the purchased plan.
        All writes are committed together after the Stripe read, so a
        failed delivery leaves nothing half-applied and a retry converges.

        Returns:
            True if applied, False if ignored for missing metadata/organization
        """
        metadata = session_data.get('metadata') or {}
        org_id = metadata.get('organization_id')
        plan_id = metadata.get('plan_id')
        customer_id = session_data.get('customer')
        stripe_sub_id = session_data.get('subscription')

        if not (org_id and plan_id and customer_id and stripe_sub_id):
            current_app.logger.warning(
                f"Checkout {session_data.get('id')} completed without organization/plan metadata"
            )
            return False

        org = db.session.get(Organization, org_id)
        if org is None:
            current_app.logger.warning(f'Checkout completed for unknown organization {org_id}')
            return False

        stripe_sub = stripe_api.as_dict(
            stripe_api.call(stripe.Subscription.retrieve, stripe_sub_id, billing_mode=mode)
        )

        plan = db.session.get(Plan, plan_id)
        if plan is None:
            free_slug = current_app.config['FREE_PLAN_SLUG']
            current_app.logger.warning(f'Checkout plan {plan_id} not found, falling back to {free_slug}')
            plan = Plan.query.filter_by(slug=free_slug).first()

        org.stripe_customer_id = customer_id
        if plan is None:
            db.session.commit()
            current_app.logger.error(f'No plan to attach subscription {stripe_sub_id} to')
            return False

        period_start, period_end = _period_bounds(stripe_sub)

        subscription = Subscription.find_by_stripe_id(stripe_sub_id)
        if subscription is None:
            subscription = Subscription(
                organization_id=org.id,
                stripe_subscription_id=stripe_sub_id,
            )
            db.session.add(subscription)

        subscription.plan_id = plan.id
        subscription.stripe_customer_id = customer_id
        subscription.status = _status_from_stripe(
            stripe_sub.get('status'), subscription.status or SubscriptionStatus.INCOMPLETE,
        )
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.cancel_at_period_end = bool(stripe_sub.get('cancel_at_period_end', False))

        org.plan = plan.slug
        db.session.commit()

        current_app.logger.info(
            f'Checkout completed: org {org.slug} on plan {plan.slug} ({subscription.status.value})'
        )
        return True

    @staticmethod
    def handle_invoice_paid(invoice_data: dict, mode: Optional[BillingMode] = None) -> bool:
        """Process invoice.paid: ledger row plus reactivation."""
        return SubscriptionService._record_invoice(
            invoice_data, mode, PaymentStatus.PAID, SubscriptionStatus.ACTIVE,
        )

    @staticmethod
    def handle_invoice_payment_failed(invoice_data: dict, mode: Optional[BillingMode] = None) -> bool:
        """Process invoice.payment_failed: ledger row plus past_due."""
        return SubscriptionService._record_invoice(
            invoice_data, mode, PaymentStatus.FAILED, SubscriptionStatus.PAST_DUE,
        )

    @staticmethod
    def _record_invoice(invoice_data, mode, payment_status, subscription_status) -> bool:
        customer_id = invoice_data.get('customer')
        org = None
        if customer_id:
            org = Organization.query.filter_by(stripe_customer_id=customer_id).first()
        if org is None:
            current_app.logger.info(
                f"Invoice {invoice_data.get('id')} for unknown customer {customer_id}, ignored"
            )
            return False

        if payment_status == PaymentStatus.PAID:
            amount = invoice_data.get('amount_paid')
        else:
            amount = invoice_data.get('amount_due')

        db.session.add(Payment(
            organization_id=org.id,
            stripe_invoice_id=invoice_data.get('id'),
            stripe_charge_id=invoice_data.get('charge'),
            amount_cents=amount or 0,
            currency=invoice_data.get('currency') or 'usd',
            status=payment_status,
            plan_name=_invoice_description(invoice_data),
            invoice_url=invoice_data.get('hosted_invoice_url'),
            stripe_mode=BillingMode(mode) if mode is not None else BillingMode.TEST,
        ))

        subscription = Subscription.find_by_stripe_id(_invoice_subscription_id(invoice_data))
        if subscription is not None:
            subscription.status = subscription_status

        db.session.commit()

        log = current_app.logger.info if payment_status == PaymentStatus.PAID else current_app.logger.warning
        log(f'Invoice {invoice_data.get("id")} {payment_status.value} for org {org.slug}')
        return True

    @staticmethod
    def handle_subscription_updated(sub_data: dict, event_created: Optional[int] = None) -> bool:
        """Process customer.subscription.updated.

        Switches the plan when the subscription's price matches a known
        plan, and always refreshes status, period and cancel flag. An event
        older than the last one applied to the row is skipped; a redelivery
        with the same timestamp is applied again.
        """
        subscription = Subscription.find_by_stripe_id(sub_data.get('id'))
        if subscription is None:
            return False

        event_at = stripe_api.from_epoch(event_created)
        if event_at and subscription.last_event_at and event_at < subscription.last_event_at:
            current_app.logger.info(
                f'Stale subscription update for {subscription.stripe_subscription_id} skipped'
            )
            return False

        price_id = (_first_item(sub_data).get('price') or {}).get('id')
        plan = Plan.find_by_price_id(price_id)
        if plan is not None:
            subscription.plan_id = plan.id
            subscription.organization.plan = plan.slug

        subscription.status = _status_from_stripe(sub_data.get('status'), subscription.status)
        period_start, period_end = _period_bounds(sub_data)
        if period_start:
            subscription.current_period_start = period_start
        if period_end:
            subscription.current_period_end = period_end
        subscription.cancel_at_period_end = bool(sub_data.get('cancel_at_period_end', False))
        if event_at:
            subscription.last_event_at = event_at

        db.session.commit()
        return True

    @staticmethod
    def handle_subscription_deleted(sub_data: dict) -> bool:
        """Process customer.subscription.deleted: cancel and drop to the free tier."""
        subscription = Subscription.find_by_stripe_id(sub_data.get('id'))
        if subscription is None:
            return False

        subscription.status = SubscriptionStatus.CANCELED
        subscription.organization.plan = current_app.config['FREE_PLAN_SLUG']
        db.session.commit()

        current_app.logger.info(
            f'Subscription {subscription.stripe_subscription_id} canceled, '
            f'org {subscription.organization.slug} downgraded'
        )
        return True

    @staticmethod
    def current_subscription(organization_id: str) -> Optional[Subscription]:
        """Most recent subscription row for the organization, any status."""
        return Subscription.latest_for(organization_id)
