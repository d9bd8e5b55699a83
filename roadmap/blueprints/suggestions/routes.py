"""
Suggestion routes - list, create, update, delete and vote on the
organization's own board.
"""
from flask import request

from roadmap.blueprints.helpers import api_success, json_body
from roadmap.blueprints.schemas import SuggestionSchema
from roadmap.blueprints.suggestions import suggestions_bp
from roadmap.decorators import admin_required, jwt_required
from roadmap.extensions import limiter
from roadmap.services.suggestion_service import SuggestionService
from roadmap.services.vote_service import VoteService

# Request keys accepted on update, mapped to model attributes
_UPDATE_FIELDS = {
    'title': 'title',
    'description': 'description',
    'categoryId': 'category_id',
    'status': 'status',
    'sprint': 'sprint',
    'requirements': 'requirements',
}


def _dump_with_stats(suggestion, stats):
    item = SuggestionSchema().dump(suggestion)
    item.update({
        'votes': stats['vote_count'],
        'impactScore': stats['impact_score'],
        'userHasVoted': stats['user_has_voted'],
        'votedBy': stats['voted_by'],
    })
    return item


@suggestions_bp.route('', methods=['GET'])
@jwt_required
def list_suggestions():
    """List suggestions, newest first.

    Query params:
        status (str): Filter by status ('all' for none)
        categoryId (str): Filter by category ('all' for none)
    """
    user = request.api_user
    rows = SuggestionService.list_suggestions(
        user.organization_id,
        viewer_id=user.id,
        status=request.args.get('status'),
        category_id=request.args.get('categoryId'),
    )
    return api_success([_dump_with_stats(s, stats) for s, stats in rows])


@suggestions_bp.route('/<suggestion_id>', methods=['GET'])
@jwt_required
def get_suggestion(suggestion_id):
    user = request.api_user
    suggestion = SuggestionService.get_suggestion(user.organization_id, suggestion_id)
    return api_success(SuggestionSchema().dump(suggestion))


@suggestions_bp.route('', methods=['POST'])
@jwt_required
@limiter.limit('30 per hour')
def create_suggestion():
    data = json_body()
    suggestion = SuggestionService.create_suggestion(
        request.api_user,
        data.get('title'),
        description=data.get('description'),
        category_id=data.get('categoryId'),
    )
    return api_success(SuggestionSchema().dump(suggestion), 201)


@suggestions_bp.route('/<suggestion_id>', methods=['PATCH'])
@jwt_required
def update_suggestion(suggestion_id):
    data = json_body()
    changes = {attr: data[key] for key, attr in _UPDATE_FIELDS.items() if key in data}
    suggestion = SuggestionService.update_suggestion(request.api_user, suggestion_id, changes)
    return api_success(SuggestionSchema().dump(suggestion))


@suggestions_bp.route('/<suggestion_id>', methods=['DELETE'])
@admin_required
def delete_suggestion(suggestion_id):
    SuggestionService.delete_suggestion(request.api_user, suggestion_id)
    return api_success({'deleted': True})


@suggestions_bp.route('/<suggestion_id>/vote', methods=['POST'])
@jwt_required
@limiter.limit('60 per minute')
def toggle_vote(suggestion_id):
    """Add or remove the current user's vote."""
    user = request.api_user
    result = VoteService.toggle_vote(suggestion_id, user.organization_id, user.id)
    result['votes'] = VoteService.count_votes(suggestion_id)
    return api_success(result)
