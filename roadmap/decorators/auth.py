"""
JWT authentication decorators for the REST API.
"""
from functools import wraps
from datetime import datetime, timedelta, timezone

import jwt
from flask import request, current_app

from roadmap.blueprints.helpers import api_error
from roadmap.extensions import db
from roadmap.models.organization import Organization
from roadmap.models.user import User


def _secret():
    return current_app.config.get('JWT_SECRET_KEY') or current_app.config['SECRET_KEY']


def create_access_token(user, expires_hours=None):
    """Create a JWT access token scoped to the user's organization."""
    if expires_hours is None:
        expires_hours = current_app.config.get('SESSION_EXPIRY_HOURS', 24)
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user.id),
        'org': str(user.organization_id),
        'type': 'access',
        'iat': now,
        'exp': now + timedelta(hours=expires_hours),
    }
    return jwt.encode(payload, _secret(), algorithm='HS256')


def decode_token(token):
    """Decode and validate a JWT token. Returns payload or None."""
    try:
        return jwt.decode(token, _secret(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def _bearer_token():
    auth_header = request.headers.get('Authorization', '')
    if not auth_header.startswith('Bearer '):
        return None
    return auth_header[7:]


def get_current_api_user():
    """Extract user from Authorization header. Returns (user, error_response)."""
    token = _bearer_token()
    if token is None:
        return None, api_error('missing_token', 'Authorization header with Bearer token required.', 401)

    payload = decode_token(token)
    if payload is None:
        return None, api_error('invalid_token', 'Token is invalid or expired.', 401)

    if payload.get('type') != 'access':
        return None, api_error('wrong_token_type', 'Access token required.', 401)

    user = db.session.get(User, str(payload.get('sub')))
    if user is None or str(user.organization_id) != str(payload.get('org')):
        return None, api_error('user_not_found', 'User not found.', 401)

    org = db.session.get(Organization, user.organization_id)
    if org is None or not org.is_active:
        return None, api_error('organization_inactive', 'Organization is deactivated.', 403)

    return user, None


def get_board_user(org):
    """User from a board token, or None.

    Board tokens are ordinary access tokens; they only count on the board
    of the organization they were issued for.
    """
    token = _bearer_token()
    payload = decode_token(token) if token else None
    if not payload or payload.get('type') != 'access' or payload.get('org') != str(org.id):
        return None
    user = db.session.get(User, str(payload.get('sub')))
    if user is None or user.organization_id != org.id:
        return None
    return user


def jwt_required(f):
    """Decorator: require valid JWT access token."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator: require an organization admin."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        if not user.is_admin:
            return api_error('forbidden', 'Admin access required.', 403)
        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def super_admin_required(f):
    """Decorator: require a platform super admin."""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = get_current_api_user()
        if error:
            return error
        if not user.is_super_admin:
            return api_error('forbidden', 'Super admin access required.', 403)
        request.api_user = user
        return f(*args, **kwargs)
    return decorated
