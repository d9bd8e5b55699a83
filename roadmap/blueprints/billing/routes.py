"""
Billing routes - public pricing, subscription status, Stripe checkout,
plan switches, the customer portal and payment history.
"""
from flask import request

from roadmap.blueprints.billing import billing_bp
from roadmap.blueprints.helpers import api_success, json_body
from roadmap.blueprints.schemas import PaymentSchema, PlanSchema, PublicPlanSchema, SubscriptionSchema
from roadmap.decorators import admin_required
from roadmap.extensions import limiter
from roadmap.models.billing import Payment
from roadmap.services.checkout_service import CheckoutService
from roadmap.services.plan_service import PlanService
from roadmap.services.subscription_service import SubscriptionService


@billing_bp.route('/public-plans', methods=['GET'])
def public_plans():
    """Active plans for the pricing page (no auth)."""
    return api_success(PlanService.public_plans(PublicPlanSchema(many=True).dump))


@billing_bp.route('/plans', methods=['GET'])
@admin_required
def plans():
    return api_success(PlanSchema(many=True).dump(PlanService.list_active()))


@billing_bp.route('/subscription', methods=['GET'])
@admin_required
def subscription():
    """Latest subscription plus the organization's plan and trial state."""
    org = request.api_user.organization
    sub = SubscriptionService.current_subscription(org.id)
    return api_success({
        'subscription': SubscriptionSchema().dump(sub) if sub else None,
        'currentPlan': org.plan,
        'trialEndsAt': org.trial_ends_at.isoformat() if org.trial_ends_at else None,
        'isTrialing': org.is_trialing,
        'hasStripeCustomer': bool(org.stripe_customer_id),
    })


@billing_bp.route('/checkout', methods=['POST'])
@admin_required
@limiter.limit('5 per hour')
def checkout():
    """Start a Stripe Checkout session.

    Request body:
        {"planId": "...", "interval": "monthly" | "yearly"}

    Returns:
        {"url": "https://checkout.stripe.com/..."}
    """
    data = json_body()
    user = request.api_user
    url = CheckoutService.start_checkout(
        user.organization,
        data.get('planId'),
        interval=data.get('interval') or 'monthly',
        email=user.email,
    )
    return api_success({'url': url})


@billing_bp.route('/switch-plan', methods=['POST'])
@admin_required
@limiter.limit('10 per hour')
def switch_plan():
    data = json_body()
    sub = CheckoutService.switch_plan(
        request.api_user.organization,
        data.get('planId'),
        interval=data.get('interval') or 'monthly',
    )
    return api_success({'subscription': SubscriptionSchema().dump(sub)})


@billing_bp.route('/portal', methods=['POST'])
@admin_required
@limiter.limit('10 per hour')
def portal():
    url = CheckoutService.open_portal(request.api_user.organization)
    return api_success({'url': url})


@billing_bp.route('/invoices', methods=['GET'])
@admin_required
def invoices():
    """The organization's 50 most recent payments."""
    payments = Payment.query.filter_by(
        organization_id=request.api_user.organization_id,
    ).order_by(Payment.created_at.desc()).limit(50).all()
    return api_success(PaymentSchema(many=True).dump(payments))
