"""
Checkout service: bridges admin billing actions to Stripe.
Creates customers, checkout and portal sessions, and switches plans.
"""
from typing import Optional

import stripe
from flask import current_app

from roadmap.errors import NotFoundError, ValidationError
from roadmap.extensions import db
from roadmap.models.billing import BillingInterval, Plan, Subscription, SubscriptionStatus
from roadmap.models.organization import Organization
from roadmap.services import stripe_api


def _parse_interval(interval) -> BillingInterval:
    try:
        return BillingInterval(interval or BillingInterval.MONTHLY.value)
    except ValueError:
        raise ValidationError("Interval must be 'monthly' or 'yearly'.")


def _billing_url(suffix=''):
    return f"{current_app.config['FRONTEND_URL'].rstrip('/')}/admin/billing{suffix}"


class CheckoutService:
    """Service for Stripe checkout, plan switching and the billing portal."""

    @staticmethod
    def get_or_create_customer(org: Organization, email: Optional[str] = None) -> str:
        """Get or create the organization's Stripe customer.

        Created once; the id is stored on the organization so later calls
        reuse it.

        Args:
            org: Organization to bill
            email: Billing contact (the requesting admin)

        Returns:
            Stripe customer ID
        """
        if org.stripe_customer_id:
            return org.stripe_customer_id

        customer = stripe_api.call(
            stripe.Customer.create,
            name=org.name,
            email=email,
            metadata={'organization_id': str(org.id)},
        )

        org.stripe_customer_id = customer.id
        db.session.commit()
        current_app.logger.info(f'Stripe customer {customer.id} created for org {org.slug}')
        return org.stripe_customer_id

    @staticmethod
    def start_checkout(org: Organization, plan_id: str, interval='monthly', email: Optional[str] = None) -> str:
        """Create a Stripe Checkout Session for a plan.

        The session carries organization_id and plan_id in its metadata;
        the checkout.session.completed webhook relies on them.

        Args:
            org: Organization subscribing
            plan_id: Plan to subscribe to
            interval: 'monthly' or 'yearly'
            email: Billing contact for a newly created customer

        Returns:
            Checkout session URL to redirect to

        Raises:
            NotFoundError: Unknown plan
            ValidationError: Plan has no Stripe price for the interval
        """
        interval = _parse_interval(interval)
        plan = db.session.get(Plan, plan_id) if plan_id else None
        if plan is None:
            raise NotFoundError('Plan not found.')

        price_id = plan.stripe_price_id_for(interval)
        if not price_id:
            raise ValidationError('Plan does not have a Stripe price configured for this interval.')

        customer_id = CheckoutService.get_or_create_customer(org, email)

        session = stripe_api.call(
            stripe.checkout.Session.create,
            customer=customer_id,
            mode='subscription',
            line_items=[{'price': price_id, 'quantity': 1}],
            success_url=_billing_url('?success=true'),
            cancel_url=_billing_url('?canceled=true'),
            metadata={
                'organization_id': str(org.id),
                'plan_id': str(plan.id),
            },
        )
        current_app.logger.info(f'Checkout started: org {org.slug} -> {plan.slug} ({interval.value})')
        return session.url

    @staticmethod
    def switch_plan(org: Organization, target_plan_id: str, interval='monthly') -> Subscription:
        """Move an active subscription to another plan.

        Upgrades are prorated and invoiced immediately; downgrades take
        effect without proration or refund. The local plan is updated
        right away and the following customer.subscription.updated
        webhook confirms or corrects it.

        Returns:
            The updated Subscription

        Raises:
            ValidationError: No active subscription, or no price for the interval
            NotFoundError: Unknown target plan
        """
        interval = _parse_interval(interval)

        row = db.session.query(Subscription, Plan).join(
            Plan, Subscription.plan_id == Plan.id,
        ).filter(
            Subscription.organization_id == org.id,
            Subscription.status == SubscriptionStatus.ACTIVE,
        ).order_by(Subscription.created_at.desc()).first()
        if row is None:
            raise ValidationError('No active subscription. Use checkout to subscribe first.')
        subscription, current_plan = row

        target = db.session.get(Plan, target_plan_id) if target_plan_id else None
        if target is None:
            raise NotFoundError('Plan not found.')
        if target.id == current_plan.id:
            raise ValidationError('Already subscribed to this plan.')

        price_id = target.stripe_price_id_for(interval)
        if not price_id:
            raise ValidationError('Plan does not have a Stripe price configured for this interval.')

        is_upgrade = target.price_for(interval) > current_plan.price_for(interval)

        stripe_sub = stripe_api.as_dict(stripe_api.call(
            stripe.Subscription.retrieve, subscription.stripe_subscription_id,
        ))
        items = (stripe_sub.get('items') or {}).get('data') or []
        if not items:
            raise ValidationError('Subscription has no billable item to change.')

        stripe_api.call(
            stripe.Subscription.modify,
            subscription.stripe_subscription_id,
            items=[{'id': items[0]['id'], 'price': price_id}],
            proration_behavior='always_invoice' if is_upgrade else 'none',
            metadata={'organization_id': str(org.id), 'plan_id': str(target.id)},
        )

        # Provisional until the webhook reconfirms it
        subscription.plan_id = target.id
        org.plan = target.slug
        db.session.commit()

        current_app.logger.info(
            f"Plan {'upgrade' if is_upgrade else 'downgrade'}: org {org.slug} "
            f"{current_plan.slug} -> {target.slug}"
        )
        return subscription

    @staticmethod
    def open_portal(org: Organization) -> str:
        """Create a Stripe Billing Portal session.

        Raises:
            ValidationError: The organization has never checked out
        """
        if not org.stripe_customer_id:
            raise ValidationError('No billing account found. Please subscribe to a plan first.')

        session = stripe_api.call(
            stripe.billing_portal.Session.create,
            customer=org.stripe_customer_id,
            return_url=_billing_url(),
        )
        return session.url
