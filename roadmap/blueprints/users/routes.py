"""
User management routes, scoped to the caller's organization.
"""
from flask import request

from roadmap.blueprints.helpers import api_success, json_body
from roadmap.blueprints.schemas import UserSchema
from roadmap.blueprints.users import users_bp
from roadmap.decorators import admin_required, jwt_required
from roadmap.services.account_service import AccountService


@users_bp.route('', methods=['GET'])
@jwt_required
def list_users():
    users = AccountService.list_users(request.api_user.organization_id)
    return api_success(UserSchema(many=True).dump(users))


@users_bp.route('/<user_id>', methods=['GET'])
@jwt_required
def get_user(user_id):
    user = AccountService.get_user(request.api_user.organization_id, user_id)
    return api_success(UserSchema().dump(user))


@users_bp.route('/<user_id>', methods=['PATCH'])
@admin_required
def update_user(user_id):
    """Update name, role, customerValue, company, crmId or avatarUrl."""
    user = AccountService.update_user(request.api_user, user_id, json_body())
    return api_success(UserSchema().dump(user))


@users_bp.route('/<user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    AccountService.delete_user(request.api_user, user_id)
    return api_success({'deleted': True})
