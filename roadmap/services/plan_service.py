"""
Plan service: the plan catalogue, its cached public listing, and the
default plans seeded by `flask seed-plans`.
"""
from dataclasses import dataclass, field, asdict
from typing import List, Optional

from flask import current_app

from roadmap.errors import NotFoundError, ValidationError
from roadmap.extensions import cache, db
from roadmap.models.billing import Plan

PUBLIC_PLANS_CACHE_KEY = 'billing:public_plans'


@dataclass(frozen=True)
class PlanDefinition:
    """Immutable default plan definition."""
    name: str
    slug: str
    price_monthly: int  # cents
    price_yearly: int
    sort_order: int
    description: str = ''
    max_users: Optional[int] = None  # None = unlimited
    allow_theme: bool = False
    allow_integrations: bool = False
    allow_embed: bool = False
    features: List[str] = field(default_factory=list)


DEFAULT_PLANS = (
    PlanDefinition(
        name='Starter', slug='starter', price_monthly=0, price_yearly=0, sort_order=1,
        description='For small teams getting started.',
        max_users=3,
        features=['Public board', 'Anonymous voting', 'Up to 3 users'],
    ),
    PlanDefinition(
        name='Pro', slug='pro', price_monthly=2900, price_yearly=29000, sort_order=2,
        description='For growing products.',
        max_users=25,
        allow_theme=True, allow_embed=True,
        features=['Everything in Starter', 'Embeddable widget', 'Custom theme', 'Up to 25 users'],
    ),
    PlanDefinition(
        name='Business', slug='business', price_monthly=9900, price_yearly=99000, sort_order=3,
        description='For teams running feedback at scale.',
        allow_theme=True, allow_integrations=True, allow_embed=True,
        features=['Everything in Pro', 'Integrations', 'Unlimited users'],
    ),
)

# Request keys accepted when creating or updating a plan
PLAN_FIELDS = {
    'name': 'name',
    'slug': 'slug',
    'description': 'description',
    'priceMonthly': 'price_monthly',
    'priceYearly': 'price_yearly',
    'features': 'features',
    'stripeProductId': 'stripe_product_id',
    'stripePriceMonthlyId': 'stripe_price_monthly_id',
    'stripePriceYearlyId': 'stripe_price_yearly_id',
    'allowTheme': 'allow_theme',
    'allowIntegrations': 'allow_integrations',
    'allowEmbed': 'allow_embed',
    'maxUsers': 'max_users',
    'isActive': 'is_active',
    'sortOrder': 'sort_order',
}
_INT_FIELDS = ('price_monthly', 'price_yearly', 'sort_order')


def _apply(plan: Plan, data: dict):
    for key, attr in PLAN_FIELDS.items():
        if key not in data:
            continue
        value = data[key]
        if attr in _INT_FIELDS or (attr == 'max_users' and value is not None):
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValidationError(f'{key} must be an integer.')
            if value < 0:
                raise ValidationError(f'{key} cannot be negative.')
        elif attr == 'features' and not isinstance(value, list):
            raise ValidationError('features must be a list.')
        setattr(plan, attr, value)


class PlanService:
    """Service for billing plans."""

    @staticmethod
    def list_active():
        return Plan.query.filter_by(is_active=True).order_by(Plan.sort_order).all()

    @staticmethod
    def list_all():
        return Plan.query.order_by(Plan.sort_order).all()

    @staticmethod
    def public_plans(serialize):
        """Active plans for the pricing page, cached until a plan changes.

        Args:
            serialize: Callable turning the plan list into JSON-safe data
        """
        data = cache.get(PUBLIC_PLANS_CACHE_KEY)
        if data is None:
            data = serialize(PlanService.list_active())
            cache.set(PUBLIC_PLANS_CACHE_KEY, data)
        return data

    @staticmethod
    def invalidate_public_plans():
        cache.delete(PUBLIC_PLANS_CACHE_KEY)

    @staticmethod
    def create_plan(data: dict) -> Plan:
        name = (data.get('name') or '').strip()
        slug = (data.get('slug') or '').strip()
        if not name or not slug:
            raise ValidationError('Plan name and slug are required.')
        if Plan.query.filter_by(slug=slug).first():
            raise ValidationError('A plan with this slug already exists.')

        plan = Plan(features=[])
        _apply(plan, {**data, 'name': name, 'slug': slug})
        db.session.add(plan)
        db.session.commit()
        PlanService.invalidate_public_plans()
        current_app.logger.info(f'Plan created: {plan.slug}')
        return plan

    @staticmethod
    def update_plan(plan_id, data: dict) -> Plan:
        plan = db.session.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError('Plan not found.')
        if not any(key in data for key in PLAN_FIELDS):
            raise ValidationError('No valid updates provided.')
        if 'slug' in data and data['slug'] != plan.slug:
            if not data['slug'] or Plan.query.filter_by(slug=data['slug']).first():
                raise ValidationError('A plan with this slug already exists.')

        _apply(plan, data)
        db.session.commit()
        PlanService.invalidate_public_plans()
        current_app.logger.info(f'Plan updated: {plan.slug}')
        return plan

    @staticmethod
    def seed_default_plans():
        """Insert the default plans that do not exist yet. Returns the count added."""
        added = 0
        for definition in DEFAULT_PLANS:
            if Plan.query.filter_by(slug=definition.slug).first():
                continue
            db.session.add(Plan(**asdict(definition)))
            added += 1
        db.session.commit()
        if added:
            PlanService.invalidate_public_plans()
        return added
