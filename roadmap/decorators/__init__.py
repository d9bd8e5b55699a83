"""
Decorators package.
JWT access checks for organization users, admins and super admins.
"""
from roadmap.decorators.auth import (
    create_access_token,
    decode_token,
    get_board_user,
    jwt_required,
    admin_required,
    super_admin_required,
)

__all__ = [
    'create_access_token',
    'decode_token',
    'get_board_user',
    'jwt_required',
    'admin_required',
    'super_admin_required',
]
