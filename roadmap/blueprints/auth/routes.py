"""
Auth routes - JWT registration, login, current user, invitations and
password resets.
"""
from flask import request, current_app

from roadmap.blueprints.auth import auth_bp
from roadmap.blueprints.helpers import api_success, json_body
from roadmap.blueprints.schemas import OrganizationSchema, UserSchema
from roadmap.decorators import admin_required, create_access_token, jwt_required
from roadmap.extensions import limiter
from roadmap.services.account_service import AccountService


@auth_bp.route('/register', methods=['POST'])
@limiter.limit('5 per hour')
def register():
    """Create an organization with its first admin.

    Request body:
        {"organizationName": "...", "name": "...", "email": "...", "password": "..."}

    Returns:
        201 {"token": "...", "user": {...}, "organization": {...}}
    """
    data = json_body()
    org, user = AccountService.register(
        data.get('organizationName') or data.get('organization_name'),
        data.get('name'),
        data.get('email'),
        data.get('password'),
    )
    return api_success({
        'token': create_access_token(user),
        'user': UserSchema().dump(user),
        'organization': OrganizationSchema().dump(org),
    }, 201)


@auth_bp.route('/login', methods=['POST'])
@limiter.limit('10 per minute')
def login():
    data = json_body()
    user = AccountService.authenticate(data.get('email'), data.get('password'))
    current_app.logger.info(f'User logged in: {user.email}')
    return api_success({
        'token': create_access_token(user),
        'user': UserSchema().dump(user),
    })


@auth_bp.route('/me', methods=['GET'])
@jwt_required
def me():
    """Current user with their organization."""
    user = request.api_user
    return api_success({
        'user': UserSchema().dump(user),
        'organization': OrganizationSchema().dump(user.organization),
    })


@auth_bp.route('/invite', methods=['POST'])
@admin_required
@limiter.limit('30 per hour')
def invite():
    """Invite a user into the admin's organization.

    The temporary password is only echoed back outside production.
    """
    data = json_body()
    user, temp_password = AccountService.invite(
        request.api_user, data.get('email'), data.get('name'), data.get('role'),
    )
    body = {'user': UserSchema().dump(user)}
    if not current_app.config.get('IS_PRODUCTION'):
        body['tempPassword'] = temp_password
    return api_success(body, 201)


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit('5 per hour')
def forgot_password():
    data = json_body()
    AccountService.request_password_reset(data.get('email'))
    return api_success({'message': 'If an account exists for this email, a reset link has been sent.'})


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit('10 per hour')
def reset_password():
    data = json_body()
    AccountService.reset_password(data.get('token'), data.get('password'))
    return api_success({'message': 'Password has been reset.'})
