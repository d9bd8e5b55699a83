"""
User model with organization-scoped roles.
Includes the password reset token table.
"""
import secrets
from enum import Enum
from datetime import datetime, timedelta
from uuid import uuid4

import bcrypt

from roadmap.extensions import db


# Per-organization author of anonymous embed submissions
ANONYMOUS_EMAIL = 'anonymous@system.internal'


class UserRole(str, Enum):
    """Role within the user's organization."""
    ADMIN = 'admin'           # Manages roadmap, categories, users, billing
    USER = 'user'             # Submits and votes on suggestions
    COMMENTER = 'commenter'   # Signed up on the public board to comment


class User(db.Model):
    """Organization member. Super admins additionally manage the platform."""

    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    organization_id = db.Column(
        db.String(36),
        db.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )
    email = db.Column(db.String(255), nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(
        db.Enum(UserRole, values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.USER,
    )
    is_super_admin = db.Column(db.Boolean, nullable=False, default=False)

    # Impact weighting for roadmap prioritisation
    customer_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    company = db.Column(db.String(200))
    crm_id = db.Column(db.String(100))
    avatar_url = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('organization_id', 'email', name='uq_user_org_email'),
    )

    organization = db.relationship('Organization', back_populates='users')

    def __repr__(self):
        return f'<User {self.email}>'

    def set_password(self, password):
        """Hash and set user password (bcrypt)."""
        self.password_hash = bcrypt.hashpw(
            password.encode('utf-8'), bcrypt.gensalt()
        ).decode('utf-8')

    def check_password(self, password):
        """Verify password against hash."""
        if not password or not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    @property
    def is_system(self):
        return self.email == ANONYMOUS_EMAIL

    @property
    def is_admin(self):
        return self.role == UserRole.ADMIN


class PasswordResetToken(db.Model):
    """Single-use password reset token, valid for one hour."""

    __tablename__ = 'password_reset_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    used = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User')

    @classmethod
    def issue(cls, user, lifetime=timedelta(hours=1)):
        return cls(
            user_id=user.id,
            token=secrets.token_hex(32),
            expires_at=datetime.utcnow() + lifetime,
        )

    @property
    def is_valid(self):
        return not self.used and self.expires_at > datetime.utcnow()
