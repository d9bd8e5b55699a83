"""
Account service: organization registration, login, invitations,
password resets, board commenters and user management.
"""
import secrets
from datetime import datetime
from decimal import Decimal, InvalidOperation

from flask import current_app

from roadmap.errors import AuthError, ForbiddenError, NotFoundError, RoadmapError, ValidationError
from roadmap.extensions import atomic, db
from roadmap.models.organization import Organization
from roadmap.models.suggestion import Category, Comment, DEFAULT_CATEGORIES, Suggestion, Vote
from roadmap.models.user import ANONYMOUS_EMAIL, PasswordResetToken, User, UserRole
from roadmap.utils.email import send_password_reset_email

MIN_PASSWORD_LENGTH = 8
MIN_BOARD_PASSWORD_LENGTH = 6

# Fields an admin may change on a user, by request key
USER_UPDATE_FIELDS = {
    'name': 'name',
    'role': 'role',
    'customerValue': 'customer_value',
    'company': 'company',
    'crmId': 'crm_id',
    'avatarUrl': 'avatar_url',
}


def normalize_email(email):
    return (email or '').strip().lower()


def validate_password(password):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')


class AccountService:
    """Service for organization and user accounts."""

    @staticmethod
    def register(organization_name, name, email, password):
        """Create an organization with its first admin and default categories.

        Runs in one transaction: a failure after the organization insert
        (e.g. the email is already taken) rolls everything back.

        Returns:
            (Organization, User)

        Raises:
            ValidationError: Missing fields, short password, taken slug or email
        """
        organization_name = (organization_name or '').strip()
        name = (name or '').strip()
        email = normalize_email(email)

        if not organization_name or not name or not email or not password:
            raise ValidationError('All fields are required.')
        validate_password(password)

        slug = Organization.slugify(organization_name)
        if not slug:
            raise ValidationError('Organization name must contain letters or digits.')
        if Organization.query.filter_by(slug=slug).first():
            raise ValidationError('An organization with this name already exists.')

        with atomic() as session:
            org = Organization(name=organization_name, slug=slug, plan='pro')
            org.start_trial(current_app.config['TRIAL_DAYS'])
            session.add(org)
            session.flush()

            if User.query.filter_by(email=email).first():
                raise ValidationError('Email already in use.')

            user = User(
                organization_id=org.id,
                email=email,
                name=name,
                role=UserRole.ADMIN,
            )
            user.set_password(password)
            session.add(user)

            for position, category_name in enumerate(DEFAULT_CATEGORIES, start=1):
                session.add(Category(
                    organization_id=org.id, name=category_name, sort_order=position,
                ))

        current_app.logger.info(f'Organization registered: {org.slug} (admin {user.email})')
        return org, user

    @staticmethod
    def authenticate(email, password, organization_id=None):
        """Check credentials against users of active organizations.

        Args:
            organization_id: Restrict to one organization (board logins)

        Returns:
            The authenticated User, with last_login_at updated

        Raises:
            ValidationError: Missing email or password
            AuthError: No match
        """
        email = normalize_email(email)
        if not email or not password:
            raise ValidationError('Email and password are required.')

        query = User.query.join(Organization).filter(
            User.email == email, Organization.is_active.is_(True),
        )
        if organization_id is not None:
            query = query.filter(User.organization_id == organization_id)

        for user in query.order_by(User.created_at).all():
            if user.check_password(password):
                user.last_login_at = datetime.utcnow()
                db.session.commit()
                return user

        raise AuthError('Invalid email or password.', code='invalid_credentials')

    @staticmethod
    def invite(admin, email, name, role=UserRole.USER.value):
        """Create a user in the admin's organization with a temporary password.

        Returns:
            (User, temporary_password)
        """
        if not admin.is_admin:
            raise ForbiddenError('Admin access required.')

        email = normalize_email(email)
        name = (name or '').strip()
        if not email or not name:
            raise ValidationError('Email and name are required.')
        try:
            role = UserRole(role or UserRole.USER.value)
        except ValueError:
            raise ValidationError('Invalid role.')

        if User.query.filter_by(email=email, organization_id=admin.organization_id).first():
            raise ValidationError('User already exists in this organization.')

        temp_password = secrets.token_urlsafe(9)
        user = User(
            organization_id=admin.organization_id, email=email, name=name, role=role,
        )
        user.set_password(temp_password)
        db.session.add(user)
        db.session.commit()

        current_app.logger.info(f'User {email} invited to org {admin.organization_id}')
        return user, temp_password

    @staticmethod
    def request_password_reset(email):
        """Issue a reset token and email it, if the account exists.

        Never reveals whether the email is registered.
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError('Email is required.')

        user = User.query.filter_by(email=email).order_by(User.created_at).first()
        if user is None:
            return None

        reset = PasswordResetToken.issue(user)
        db.session.add(reset)
        db.session.commit()

        frontend = current_app.config['FRONTEND_URL'].rstrip('/')
        send_password_reset_email(user, f'{frontend}/reset-password?token={reset.token}')
        return reset

    @staticmethod
    def reset_password(token, password):
        if not token or not password:
            raise ValidationError('Token and password are required.')
        validate_password(password)

        reset = PasswordResetToken.query.filter_by(token=token).first()
        if reset is None or not reset.is_valid:
            raise ValidationError('Invalid or expired reset token.')

        reset.user.set_password(password)
        reset.used = True
        db.session.commit()
        current_app.logger.info(f'Password reset for user {reset.user_id}')
        return reset.user

    # ── Board commenters ────────────────────────────────────

    @staticmethod
    def board_signup(org: Organization, name, email, password):
        """Create a commenter account on an organization's public board.

        Raises:
            ValidationError: Missing fields or password under 6 characters
            RoadmapError: 409 when the email is already registered in the org
        """
        name = (name or '').strip()
        email = normalize_email(email)
        if not name or not email or not password:
            raise ValidationError('Name, email and password are required.')
        if len(password) < MIN_BOARD_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {MIN_BOARD_PASSWORD_LENGTH} characters.'
            )
        if User.query.filter_by(organization_id=org.id, email=email).first():
            raise RoadmapError('An account with this email already exists.', code='email_taken', status=409)

        user = User(organization_id=org.id, email=email, name=name, role=UserRole.COMMENTER)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        current_app.logger.info(f'Board commenter signed up on {org.slug}: {email}')
        return user

    @staticmethod
    def anonymous_user(organization_id):
        """The organization's system user for anonymous submissions, created on first use."""
        user = User.query.filter_by(organization_id=organization_id, email=ANONYMOUS_EMAIL).first()
        if user is None:
            user = User(
                organization_id=organization_id,
                email=ANONYMOUS_EMAIL,
                name='Anonymous',
                role=UserRole.USER,
            )
            user.set_password(secrets.token_urlsafe(32))
            db.session.add(user)
            db.session.commit()
        return user

    # ── User management ─────────────────────────────────────

    @staticmethod
    def list_users(organization_id):
        """Real users of an organization, oldest first."""
        return User.query.filter(
            User.organization_id == organization_id, User.email != ANONYMOUS_EMAIL,
        ).order_by(User.created_at).all()

    @staticmethod
    def get_user(organization_id, user_id) -> User:
        user = db.session.get(User, user_id)
        if user is None or user.organization_id != organization_id or user.is_system:
            raise NotFoundError('User not found.')
        return user

    @staticmethod
    def update_user(admin: User, user_id, changes: dict) -> User:
        """Apply an admin's partial update, keyed by request field names."""
        user = AccountService.get_user(admin.organization_id, user_id)
        updates = {attr: changes[key] for key, attr in USER_UPDATE_FIELDS.items() if key in changes}
        if not updates:
            raise ValidationError('No valid updates provided.')

        if 'name' in updates:
            name = (updates['name'] or '').strip()
            if not name:
                raise ValidationError('Name cannot be empty.')
            user.name = name
        if 'role' in updates:
            try:
                role = UserRole(updates['role'])
            except ValueError:
                raise ValidationError('Invalid role.')
            if user.id == admin.id and role != UserRole.ADMIN:
                raise ValidationError('You cannot remove your own admin role.')
            user.role = role
        if 'customer_value' in updates:
            try:
                value = Decimal(str(updates['customer_value'] or 0))
            except InvalidOperation:
                raise ValidationError('customerValue must be a number.')
            if not value.is_finite() or value < 0:
                raise ValidationError('customerValue must be a non-negative number.')
            user.customer_value = value
        for attr in ('company', 'crm_id', 'avatar_url'):
            if attr in updates:
                setattr(user, attr, updates[attr] or None)

        db.session.commit()
        return user

    @staticmethod
    def delete_user(admin: User, user_id):
        """Remove a user; their suggestions stay, without an author.

        Raises:
            ValidationError: Deleting yourself or the last admin
        """
        user = AccountService.get_user(admin.organization_id, user_id)
        if user.id == admin.id:
            raise ValidationError('You cannot delete your own account.')
        if user.is_admin:
            admins = User.query.filter_by(
                organization_id=admin.organization_id, role=UserRole.ADMIN,
            ).count()
            if admins <= 1:
                raise ValidationError('Cannot delete the only admin.')

        email = user.email
        AccountService.purge_user(user)
        current_app.logger.info(f'User {email} removed from org {admin.organization_id}')

    @staticmethod
    def purge_user(user: User):
        """Delete a user with their votes, comments and reset tokens; authored suggestions are kept."""
        Vote.query.filter_by(user_id=user.id).delete(synchronize_session=False)
        Comment.query.filter_by(user_id=user.id).delete(synchronize_session=False)
        PasswordResetToken.query.filter_by(user_id=user.id).delete(synchronize_session=False)
        Suggestion.query.filter_by(created_by=user.id).update(
            {Suggestion.created_by: None}, synchronize_session=False,
        )
        db.session.delete(user)
        db.session.commit()
