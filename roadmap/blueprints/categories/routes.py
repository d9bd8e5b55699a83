"""
Category routes.
"""
from flask import request

from roadmap.blueprints.categories import categories_bp
from roadmap.blueprints.helpers import api_success, json_body
from roadmap.blueprints.schemas import CategorySchema
from roadmap.decorators import admin_required, jwt_required
from roadmap.services.suggestion_service import SuggestionService


@categories_bp.route('', methods=['GET'])
@jwt_required
def list_categories():
    """Categories in display order, each with its suggestion count."""
    rows = SuggestionService.list_categories(request.api_user.organization_id)
    schema = CategorySchema()
    return api_success([
        {**schema.dump(category), 'suggestionCount': count} for category, count in rows
    ])


@categories_bp.route('', methods=['POST'])
@admin_required
def create_category():
    data = json_body()
    category = SuggestionService.create_category(
        request.api_user.organization_id, data.get('name'), data.get('color'),
    )
    return api_success(CategorySchema().dump(category), 201)


@categories_bp.route('/<category_id>', methods=['PATCH'])
@admin_required
def update_category(category_id):
    data = json_body()
    changes = {key: data[key] for key in ('name', 'color') if key in data}
    if 'sortOrder' in data:
        changes['sort_order'] = data['sortOrder']
    category = SuggestionService.update_category(
        request.api_user.organization_id, category_id, changes,
    )
    return api_success(CategorySchema().dump(category))


@categories_bp.route('/<category_id>', methods=['DELETE'])
@admin_required
def delete_category(category_id):
    SuggestionService.delete_category(request.api_user.organization_id, category_id)
    return api_success({'deleted': True})
