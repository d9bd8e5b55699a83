"""
Platform service: super-admin operations across all organizations.
"""
from flask import current_app
from jinja2 import TemplateSyntaxError
from sqlalchemy import func

from roadmap.errors import NotFoundError, ValidationError
from roadmap.extensions import db
from roadmap.models.billing import BillingMode, Payment
from roadmap.models.organization import Organization
from roadmap.models.platform import EmailTemplate, PlatformSetting
from roadmap.models.suggestion import Suggestion, Vote
from roadmap.models.user import User, UserRole
from roadmap.services.account_service import AccountService
from roadmap.services.billing_mode import (
    STRIPE_MODE_KEY, get_billing_mode, set_billing_mode, stripe_credentials,
)
from roadmap.utils.email import validate_template


def _count_by_org(column):
    return dict(db.session.query(column, func.count()).group_by(column).all())


class PlatformService:
    """Service for platform administration."""

    # ── Organizations ───────────────────────────────────────

    @staticmethod
    def list_organizations():
        """All organizations, newest first, as (Organization, user_count, suggestion_count)."""
        users = _count_by_org(User.organization_id)
        suggestions = _count_by_org(Suggestion.organization_id)
        orgs = Organization.query.order_by(Organization.created_at.desc()).all()
        return [(org, users.get(org.id, 0), suggestions.get(org.id, 0)) for org in orgs]

    @staticmethod
    def update_organization(org_id, changes: dict) -> Organization:
        org = db.session.get(Organization, org_id)
        if org is None:
            raise NotFoundError('Organization not found.')
        fields = {'name', 'plan', 'isActive', 'is_active'} & set(changes)
        if not fields:
            raise ValidationError('No fields to update.')

        if 'name' in changes:
            name = (changes['name'] or '').strip()
            if not name:
                raise ValidationError('Organization name cannot be empty.')
            org.name = name
        if 'plan' in changes:
            if not changes['plan']:
                raise ValidationError('Plan cannot be empty.')
            org.plan = changes['plan']
        for key in ('isActive', 'is_active'):
            if key in changes:
                org.is_active = bool(changes[key])

        db.session.commit()
        current_app.logger.info(f'Platform: organization {org.slug} updated ({", ".join(sorted(fields))})')
        return org

    # ── Users ───────────────────────────────────────────────

    @staticmethod
    def list_users():
        return User.query.order_by(User.created_at.desc()).all()

    @staticmethod
    def update_user(user_id, changes: dict) -> User:
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError('User not found.')
        if not {'role', 'isSuperAdmin', 'is_super_admin'} & set(changes):
            raise ValidationError('No fields to update.')

        if 'role' in changes:
            try:
                user.role = UserRole(changes['role'])
            except ValueError:
                raise ValidationError('Invalid role.')
        for key in ('isSuperAdmin', 'is_super_admin'):
            if key in changes:
                user.is_super_admin = bool(changes[key])

        db.session.commit()
        return user

    @staticmethod
    def delete_user(actor: User, user_id):
        if user_id == actor.id:
            raise ValidationError('Cannot delete your own account.')
        user = db.session.get(User, user_id)
        if user is None:
            raise NotFoundError('User not found.')
        email = user.email
        AccountService.purge_user(user)
        current_app.logger.info(f'Platform: user {email} deleted by {actor.email}')

    # ── Settings & billing mode ─────────────────────────────

    @staticmethod
    def list_settings():
        return PlatformSetting.query.order_by(PlatformSetting.key).all()

    @staticmethod
    def put_setting(key, value, description=None) -> PlatformSetting:
        """Upsert a setting. The billing mode key goes through set_stripe_mode."""
        if value is None:
            raise ValidationError('Value is required.')
        if key == STRIPE_MODE_KEY:
            PlatformService.set_stripe_mode(value)
            return db.session.get(PlatformSetting, key)

        setting = PlatformSetting.set(key, str(value), description)
        db.session.commit()
        return setting

    @staticmethod
    def stripe_mode_status() -> dict:
        """Active mode and which credentials are present (never the values)."""
        test_key, test_webhook = stripe_credentials(BillingMode.TEST)
        live_key, live_webhook = stripe_credentials(BillingMode.LIVE)
        return {
            'mode': get_billing_mode().value,
            'testKeyConfigured': bool(test_key),
            'testWebhookConfigured': bool(test_webhook),
            'liveKeyConfigured': bool(live_key),
            'liveWebhookConfigured': bool(live_webhook),
        }

    @staticmethod
    def set_stripe_mode(mode) -> BillingMode:
        """Switch the active credential set.

        Raises:
            ValidationError: Unknown mode, or live mode without a live secret key
        """
        try:
            mode = BillingMode(str(mode or '').strip().lower())
        except ValueError:
            raise ValidationError("Mode must be 'test' or 'live'.")
        if mode == BillingMode.LIVE and not stripe_credentials(BillingMode.LIVE)[0]:
            raise ValidationError('Live Stripe key is not configured.', code='live_key_missing')
        return set_billing_mode(mode)

    @staticmethod
    def list_payments(mode=None):
        """Payments recorded under a billing mode (default: the active one), newest first."""
        mode = BillingMode(mode) if mode else get_billing_mode()
        return Payment.query.filter_by(stripe_mode=mode).order_by(Payment.created_at.desc()).limit(200).all()

    # ── Email templates ─────────────────────────────────────

    @staticmethod
    def list_email_templates():
        return EmailTemplate.query.order_by(EmailTemplate.name).all()

    @staticmethod
    def get_email_template(template_id) -> EmailTemplate:
        template = db.session.get(EmailTemplate, template_id)
        if template is None:
            raise NotFoundError('Email template not found.')
        return template

    @staticmethod
    def update_email_template(template_id, changes: dict) -> EmailTemplate:
        template = PlatformService.get_email_template(template_id)
        fields = {'subject': 'subject', 'htmlBody': 'html_body', 'isActive': 'is_active'}
        updates = {attr: changes[key] for key, attr in fields.items() if key in changes}
        if not updates:
            raise ValidationError('No fields to update.')
        for attr in ('subject', 'html_body'):
            if attr not in updates:
                continue
            if not isinstance(updates[attr], str) or not updates[attr]:
                raise ValidationError(f'{attr} cannot be empty.')
            try:
                validate_template(updates[attr])
            except TemplateSyntaxError as e:
                raise ValidationError(f'{attr} is not a valid template: {e.message}')

        for attr, value in updates.items():
            setattr(template, attr, bool(value) if attr == 'is_active' else value)
        db.session.commit()
        return template

    # ── Analytics ───────────────────────────────────────────

    @staticmethod
    def analytics() -> dict:
        return {
            'total_organizations': Organization.query.count(),
            'total_users': User.query.count(),
            'total_suggestions': Suggestion.query.count(),
            'total_votes': Vote.query.count(),
            'recent_suggestions': Suggestion.query.order_by(Suggestion.created_at.desc()).limit(10).all(),
            'recent_users': User.query.order_by(User.created_at.desc()).limit(10).all(),
        }
