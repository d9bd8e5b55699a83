"""
Marshmallow schemas for API serialization.
Converts SQLAlchemy models to JSON-safe dictionaries with camelCase keys.
"""
from marshmallow import Schema, fields


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""
    class Meta:
        ordered = True


def _enum_value(value):
    return value.value if hasattr(value, 'value') else value


# ── Users & organizations ───────────────────────────────────

class UserMinimalSchema(BaseSchema):
    """Minimal user representation (comment authors, board sessions)."""
    id = fields.Str(dump_only=True)
    name = fields.Str()
    avatar_url = fields.Str(data_key='avatarUrl', allow_none=True)


class BoardUserSchema(UserMinimalSchema):
    email = fields.Email()


class UserSchema(BaseSchema):
    """Full user representation (for /me and user management)."""
    id = fields.Str(dump_only=True)
    name = fields.Str()
    email = fields.Email()
    role = fields.Method('get_role')
    is_super_admin = fields.Bool(data_key='isSuperAdmin')
    customer_value = fields.Float(data_key='customerValue')
    company = fields.Str(allow_none=True)
    crm_id = fields.Str(data_key='crmId', allow_none=True)
    avatar_url = fields.Str(data_key='avatarUrl', allow_none=True)
    organization_id = fields.Str(data_key='organizationId')
    organization_name = fields.Function(
        lambda obj: obj.organization.name if obj.organization else None, data_key='organizationName',
    )
    organization_slug = fields.Function(
        lambda obj: obj.organization.slug if obj.organization else None, data_key='organizationSlug',
    )
    created_at = fields.DateTime(format='iso', data_key='createdAt')
    last_login_at = fields.DateTime(format='iso', data_key='lastLoginAt', allow_none=True)

    def get_role(self, obj):
        return _enum_value(obj.role)


class PlatformUserSchema(UserSchema):
    """User row in the platform admin listing."""
    pass


class OrganizationSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str()
    slug = fields.Str()
    is_active = fields.Bool(data_key='isActive')
    plan = fields.Str()
    trial_ends_at = fields.DateTime(format='iso', data_key='trialEndsAt', allow_none=True)
    has_stripe_customer = fields.Function(
        lambda obj: bool(obj.stripe_customer_id), data_key='hasStripeCustomer',
    )
    created_at = fields.DateTime(format='iso', data_key='createdAt')


# ── Board ───────────────────────────────────────────────────

class CategorySchema(BaseSchema):
    id = fields.Str(dump_only=True)
    name = fields.Str()
    color = fields.Str()
    sort_order = fields.Int(data_key='sortOrder')


class SuggestionSchema(BaseSchema):
    """Suggestion fields; vote statistics are merged in by the caller."""
    id = fields.Str(dump_only=True)
    title = fields.Str()
    description = fields.Function(lambda obj: obj.description or '')
    status = fields.Str()
    sprint = fields.Str(allow_none=True)
    category = fields.Function(lambda obj: obj.category.name if obj.category else '')
    category_id = fields.Str(data_key='categoryId', allow_none=True)
    category_color = fields.Function(
        lambda obj: obj.category.color if obj.category else None, data_key='categoryColor',
    )
    requirements = fields.Str(allow_none=True)
    external_id = fields.Str(data_key='externalId', allow_none=True)
    external_url = fields.Str(data_key='externalUrl', allow_none=True)
    created_by = fields.Str(data_key='createdBy', allow_none=True)
    created_by_name = fields.Function(
        lambda obj: obj.author.name if obj.author else None, data_key='createdByName',
    )
    created_at = fields.DateTime(format='iso', data_key='createdAt')


class PublicSuggestionSchema(BaseSchema):
    """Suggestion as shown on public boards and embeds."""
    id = fields.Str(dump_only=True)
    title = fields.Str()
    description = fields.Function(lambda obj: obj.description or '')
    status = fields.Str()
    sprint = fields.Str(allow_none=True)
    category = fields.Function(lambda obj: obj.category.name if obj.category else '')
    category_id = fields.Str(data_key='categoryId', allow_none=True)
    created_at = fields.DateTime(format='iso', data_key='createdAt')


class CommentSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    content = fields.Str()
    created_at = fields.DateTime(format='iso', data_key='createdAt')
    updated_at = fields.DateTime(format='iso', data_key='updatedAt', allow_none=True)
    user = fields.Nested(UserMinimalSchema, dump_only=True)


# ── Billing ─────────────────────────────────────────────────

class PublicPlanSchema(BaseSchema):
    """Plan as shown on the public pricing page."""
    id = fields.Str(dump_only=True)
    name = fields.Str()
    slug = fields.Str()
    description = fields.Str(allow_none=True)
    price_monthly = fields.Int(data_key='priceMonthly')
    price_yearly = fields.Int(data_key='priceYearly')
    features = fields.Raw()
    sort_order = fields.Int(data_key='sortOrder')


class PlanSchema(PublicPlanSchema):
    """Full plan, including Stripe ids and entitlements."""
    stripe_product_id = fields.Str(data_key='stripeProductId', allow_none=True)
    stripe_price_monthly_id = fields.Str(data_key='stripePriceMonthlyId', allow_none=True)
    stripe_price_yearly_id = fields.Str(data_key='stripePriceYearlyId', allow_none=True)
    allow_theme = fields.Bool(data_key='allowTheme')
    allow_integrations = fields.Bool(data_key='allowIntegrations')
    allow_embed = fields.Bool(data_key='allowEmbed')
    max_users = fields.Int(data_key='maxUsers', allow_none=True)
    is_active = fields.Bool(data_key='isActive')


class SubscriptionSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    plan_id = fields.Str(data_key='planId')
    plan_name = fields.Function(lambda obj: obj.plan.name if obj.plan else None, data_key='planName')
    plan_slug = fields.Function(lambda obj: obj.plan.slug if obj.plan else None, data_key='planSlug')
    features = fields.Function(lambda obj: obj.plan.features if obj.plan else [])
    price_monthly = fields.Function(
        lambda obj: obj.plan.price_monthly if obj.plan else None, data_key='priceMonthly',
    )
    price_yearly = fields.Function(
        lambda obj: obj.plan.price_yearly if obj.plan else None, data_key='priceYearly',
    )
    status = fields.Method('get_status')
    stripe_subscription_id = fields.Str(data_key='stripeSubscriptionId')
    current_period_start = fields.DateTime(format='iso', data_key='currentPeriodStart', allow_none=True)
    current_period_end = fields.DateTime(format='iso', data_key='currentPeriodEnd', allow_none=True)
    cancel_at_period_end = fields.Bool(data_key='cancelAtPeriodEnd')
    created_at = fields.DateTime(format='iso', data_key='createdAt')

    def get_status(self, obj):
        return _enum_value(obj.status)


class PaymentSchema(BaseSchema):
    id = fields.Str(dump_only=True)
    organization_id = fields.Str(data_key='organizationId')
    stripe_invoice_id = fields.Str(data_key='stripeInvoiceId', allow_none=True)
    amount_cents = fields.Int(data_key='amountCents')
    currency = fields.Str()
    status = fields.Method('get_status')
    plan_name = fields.Str(data_key='planName', allow_none=True)
    invoice_url = fields.Str(data_key='invoiceUrl', allow_none=True)
    stripe_mode = fields.Method('get_mode', data_key='stripeMode')
    created_at = fields.DateTime(format='iso', data_key='createdAt')

    def get_status(self, obj):
        return _enum_value(obj.status)

    def get_mode(self, obj):
        return _enum_value(obj.stripe_mode)


# ── Platform ────────────────────────────────────────────────

class PlatformSettingSchema(BaseSchema):
    key = fields.Str()
    value = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)
    updated_at = fields.DateTime(format='iso', data_key='updatedAt', allow_none=True)


class EmailTemplateSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    name = fields.Str()
    subject = fields.Str()
    html_body = fields.Str(data_key='htmlBody')
    is_active = fields.Bool(data_key='isActive')
    updated_at = fields.DateTime(format='iso', data_key='updatedAt', allow_none=True)
