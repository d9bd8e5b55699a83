"""
Platform routes - super admin only.
Organizations, users, settings, Stripe mode, plans, payments, email
templates and analytics across every tenant.
"""
from flask import request

from roadmap.blueprints.helpers import api_error, api_success, json_body
from roadmap.blueprints.platform import platform_bp
from roadmap.blueprints.schemas import (
    EmailTemplateSchema, OrganizationSchema, PaymentSchema, PlanSchema,
    PlatformSettingSchema, PlatformUserSchema, UserMinimalSchema,
)
from roadmap.decorators import super_admin_required
from roadmap.services.plan_service import PlanService
from roadmap.services.platform_service import PlatformService
from roadmap.utils.email import mail_enabled, send_test_email


# ── Organizations ───────────────────────────────────────────

@platform_bp.route('/organizations', methods=['GET'])
@super_admin_required
def list_organizations():
    schema = OrganizationSchema()
    return api_success([
        {**schema.dump(org), 'userCount': users, 'suggestionCount': suggestions}
        for org, users, suggestions in PlatformService.list_organizations()
    ])


@platform_bp.route('/organizations/<org_id>', methods=['PATCH'])
@super_admin_required
def update_organization(org_id):
    org = PlatformService.update_organization(org_id, json_body())
    return api_success(OrganizationSchema().dump(org))


# ── Users ───────────────────────────────────────────────────

@platform_bp.route('/users', methods=['GET'])
@super_admin_required
def list_users():
    return api_success(PlatformUserSchema(many=True).dump(PlatformService.list_users()))


@platform_bp.route('/users/<user_id>', methods=['PATCH'])
@super_admin_required
def update_user(user_id):
    user = PlatformService.update_user(user_id, json_body())
    return api_success(PlatformUserSchema().dump(user))


@platform_bp.route('/users/<user_id>', methods=['DELETE'])
@super_admin_required
def delete_user(user_id):
    PlatformService.delete_user(request.api_user, user_id)
    return '', 204


# ── Settings & Stripe mode ──────────────────────────────────

@platform_bp.route('/settings', methods=['GET'])
@super_admin_required
def list_settings():
    return api_success(PlatformSettingSchema(many=True).dump(PlatformService.list_settings()))


@platform_bp.route('/settings/<key>', methods=['PUT'])
@super_admin_required
def put_setting(key):
    data = json_body()
    setting = PlatformService.put_setting(key, data.get('value'), data.get('description'))
    return api_success(PlatformSettingSchema().dump(setting))


@platform_bp.route('/stripe-mode', methods=['GET'])
@super_admin_required
def get_stripe_mode():
    return api_success(PlatformService.stripe_mode_status())


@platform_bp.route('/stripe-mode', methods=['PUT'])
@super_admin_required
def put_stripe_mode():
    """Switch between test and live Stripe credentials.

    Request body:
        {"mode": "test" | "live"}
    """
    PlatformService.set_stripe_mode(json_body().get('mode'))
    return api_success(PlatformService.stripe_mode_status())


# ── Plans & payments ────────────────────────────────────────

@platform_bp.route('/plans', methods=['GET'])
@super_admin_required
def list_plans():
    return api_success(PlanSchema(many=True).dump(PlanService.list_all()))


@platform_bp.route('/plans', methods=['POST'])
@super_admin_required
def create_plan():
    plan = PlanService.create_plan(json_body())
    return api_success(PlanSchema().dump(plan), 201)


@platform_bp.route('/plans/<plan_id>', methods=['PATCH'])
@super_admin_required
def update_plan(plan_id):
    plan = PlanService.update_plan(plan_id, json_body())
    return api_success(PlanSchema().dump(plan))


@platform_bp.route('/payments', methods=['GET'])
@super_admin_required
def list_payments():
    """Payments for the active Stripe mode, or ?mode=test|live."""
    mode = request.args.get('mode')
    if mode and mode not in ('test', 'live'):
        return api_error('invalid_filter', f'Invalid mode: {mode}', 400)
    return api_success(PaymentSchema(many=True).dump(PlatformService.list_payments(mode)))


# ── Email templates ─────────────────────────────────────────

@platform_bp.route('/email-templates', methods=['GET'])
@super_admin_required
def list_email_templates():
    return api_success(EmailTemplateSchema(many=True).dump(PlatformService.list_email_templates()))


@platform_bp.route('/email-templates/<int:template_id>', methods=['PATCH'])
@super_admin_required
def update_email_template(template_id):
    template = PlatformService.update_email_template(template_id, json_body())
    return api_success(EmailTemplateSchema().dump(template))


@platform_bp.route('/email-templates/<int:template_id>/test', methods=['POST'])
@super_admin_required
def test_email_template(template_id):
    """Send the raw template to the calling super admin."""
    template = PlatformService.get_email_template(template_id)
    if not mail_enabled():
        return api_error('mail_not_configured', 'Email delivery is not configured.', 400)
    recipient = request.api_user.email
    if not send_test_email(template, recipient):
        return api_error('mail_failed', 'Failed to send test email.', 502)
    return api_success({'message': f'Test email sent to {recipient}'})


# ── Analytics ───────────────────────────────────────────────

@platform_bp.route('/analytics', methods=['GET'])
@super_admin_required
def analytics():
    stats = PlatformService.analytics()
    return api_success({
        'totalOrganizations': stats['total_organizations'],
        'totalUsers': stats['total_users'],
        'totalSuggestions': stats['total_suggestions'],
        'totalVotes': stats['total_votes'],
        'recentSuggestions': [
            {
                'id': s.id,
                'title': s.title,
                'status': s.status,
                'createdAt': s.created_at.isoformat() if s.created_at else None,
                'organizationName': s.organization.name if s.organization else None,
            }
            for s in stats['recent_suggestions']
        ],
        'recentUsers': [
            {
                **UserMinimalSchema().dump(u),
                'email': u.email,
                'createdAt': u.created_at.isoformat() if u.created_at else None,
                'organizationName': u.organization.name if u.organization else None,
            }
            for u in stats['recent_users']
        ],
    })
