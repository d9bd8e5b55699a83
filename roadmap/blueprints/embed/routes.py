"""
Embed routes.

Admin endpoints (/config) are registered before the /<slug> ones so that
"config" is never taken for a slug.
"""
from flask import request

from roadmap.blueprints.board.routes import dump_public_suggestion
from roadmap.blueprints.embed import embed_bp
from roadmap.blueprints.helpers import api_success, client_ip, json_body, origin_allowed
from roadmap.blueprints.schemas import CategorySchema
from roadmap.decorators import admin_required, jwt_required
from roadmap.extensions import limiter
from roadmap.services.board_service import BoardService
from roadmap.services.vote_service import VoteService


def _embed_org(slug, feature=None):
    org = BoardService.get_organization(slug)
    config = org.effective_embed_config
    BoardService.check_embed(org, origin_allowed(config.get('allowedDomains')), feature)
    return org


# ── Admin ───────────────────────────────────────────────────

@embed_bp.route('/config', methods=['GET'])
@jwt_required
def get_config():
    org = request.api_user.organization
    return api_success({'config': org.effective_embed_config, 'slug': org.slug})


@embed_bp.route('/config', methods=['PATCH'])
@admin_required
def update_config():
    org = request.api_user.organization
    config = BoardService.update_embed_config(org, json_body())
    return api_success({'config': config, 'slug': org.slug})


# ── Public ──────────────────────────────────────────────────

@embed_bp.route('/<slug>/config', methods=['GET'])
def public_config(slug):
    org = _embed_org(slug)
    return api_success(org.effective_embed_config)


@embed_bp.route('/<slug>/suggestions', methods=['GET'])
def list_suggestions(slug):
    org = _embed_org(slug)
    rows = BoardService.public_suggestions(org, request.args.get('fingerprint'))
    return api_success([dump_public_suggestion(s, stats, with_comments=False) for s, stats in rows])


@embed_bp.route('/<slug>/categories', methods=['GET'])
def list_categories(slug):
    org = _embed_org(slug)
    return api_success(CategorySchema(many=True).dump(BoardService.public_categories(org)))


@embed_bp.route('/<slug>/suggestions/<suggestion_id>/vote', methods=['POST'])
@limiter.limit('60 per minute')
def vote(slug, suggestion_id):
    org = _embed_org(slug, feature='showVoting')
    fingerprint = BoardService.fingerprint_from_body(json_body())
    result = VoteService.toggle_anonymous_vote(suggestion_id, org.id, fingerprint, ip=client_ip())
    return api_success(result)


@embed_bp.route('/<slug>/suggestions', methods=['POST'])
@limiter.limit('10 per hour')
def submit_suggestion(slug):
    """Anonymous submission, when the organization allows it."""
    org = _embed_org(slug, feature='allowSubmissions')
    data = json_body()
    suggestion = BoardService.submit_anonymous_suggestion(
        org, data.get('title'), data.get('description'), data.get('categoryId'),
    )
    stats = {'votes': 0, 'comment_count': 0, 'has_voted': False}
    return api_success(dump_public_suggestion(suggestion, stats, with_comments=False), 201)
