"""
Public board routes, addressed by organization slug.

Anyone may read and vote (one anonymous vote per browser fingerprint).
Commenting needs a lightweight commenter account scoped to the board.
"""
from flask import request

from roadmap.blueprints.board import board_bp
from roadmap.blueprints.helpers import api_error, api_success, client_ip, json_body
from roadmap.blueprints.schemas import (
    BoardUserSchema, CategorySchema, CommentSchema, PublicSuggestionSchema,
)
from roadmap.decorators import create_access_token, get_board_user
from roadmap.extensions import limiter
from roadmap.services.account_service import AccountService
from roadmap.services.board_service import BoardService
from roadmap.services.vote_service import VoteService


def dump_public_suggestion(suggestion, stats, with_comments=True):
    item = PublicSuggestionSchema().dump(suggestion)
    item['votes'] = stats['votes']
    if with_comments:
        item['commentCount'] = stats['comment_count']
    item['hasVoted'] = stats['has_voted']
    return item


# ── Commenter auth ──────────────────────────────────────────

@board_bp.route('/<slug>/auth/signup', methods=['POST'])
@limiter.limit('10 per hour')
def signup(slug):
    org = BoardService.get_organization(slug)
    data = json_body()
    user = AccountService.board_signup(org, data.get('name'), data.get('email'), data.get('password'))
    return api_success({
        'token': create_access_token(user),
        'user': BoardUserSchema().dump(user),
    }, 201)


@board_bp.route('/<slug>/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def login(slug):
    org = BoardService.get_organization(slug)
    data = json_body()
    user = AccountService.authenticate(data.get('email'), data.get('password'), organization_id=org.id)
    return api_success({
        'token': create_access_token(user),
        'user': BoardUserSchema().dump(user),
    })


@board_bp.route('/<slug>/auth/me', methods=['GET'])
def me(slug):
    org = BoardService.get_organization(slug)
    user = get_board_user(org)
    if user is None:
        return api_error('unauthorized', 'Not authenticated.', 401)
    return api_success({'user': BoardUserSchema().dump(user)})


# ── Comments ────────────────────────────────────────────────

@board_bp.route('/<slug>/suggestions/<suggestion_id>/comments', methods=['GET'])
def list_comments(slug, suggestion_id):
    org = BoardService.get_organization(slug)
    comments = BoardService.list_comments(org, suggestion_id)
    return api_success(CommentSchema(many=True).dump(comments))


@board_bp.route('/<slug>/suggestions/<suggestion_id>/comments', methods=['POST'])
@limiter.limit('30 per hour')
def post_comment(slug, suggestion_id):
    org = BoardService.get_organization(slug)
    user = get_board_user(org)
    if user is None:
        return api_error('unauthorized', 'Authentication required to comment.', 401)
    comment = BoardService.add_comment(org, user, suggestion_id, json_body().get('content'))
    return api_success(CommentSchema().dump(comment), 201)


# ── Suggestions & votes ─────────────────────────────────────

@board_bp.route('/<slug>/suggestions', methods=['GET'])
def list_suggestions(slug):
    """Suggestions by combined vote count.

    Query params:
        fingerprint (str): Marks suggestions this browser voted on
    """
    org = BoardService.get_organization(slug)
    rows = BoardService.public_suggestions(org, request.args.get('fingerprint'))
    return api_success([dump_public_suggestion(s, stats) for s, stats in rows])


@board_bp.route('/<slug>/categories', methods=['GET'])
def list_categories(slug):
    org = BoardService.get_organization(slug)
    return api_success(CategorySchema(many=True).dump(BoardService.public_categories(org)))


@board_bp.route('/<slug>/suggestions/<suggestion_id>/vote', methods=['POST'])
@limiter.limit('60 per minute')
def vote(slug, suggestion_id):
    """Toggle this browser's anonymous vote.

    Request body:
        {"fingerprint": "..."} or {"signals": {"userAgent": ..., ...}}

    Returns:
        {"voted": true|false}
    """
    org = BoardService.get_organization(slug)
    fingerprint = BoardService.fingerprint_from_body(json_body())
    result = VoteService.toggle_anonymous_vote(suggestion_id, org.id, fingerprint, ip=client_ip())
    return api_success(result)
