"""
Board service: the public board and the embeddable widget.

Both show an organization's suggestions to anonymous visitors, with
authenticated and anonymous votes combined.
"""
from typing import Optional

from flask import current_app
from sqlalchemy import func

from roadmap.errors import ForbiddenError, NotFoundError, ValidationError
from roadmap.extensions import db
from roadmap.models.organization import DEFAULT_EMBED_CONFIG, Organization
from roadmap.models.suggestion import (
    AnonymousVote, Category, Comment, MAX_COMMENT_LENGTH, Suggestion, Vote,
)
from roadmap.models.user import User
from roadmap.services.account_service import AccountService
from roadmap.services.suggestion_service import SuggestionService
from roadmap.utils.fingerprint import BrowserSignals, generate_fingerprint


def _counts_by_suggestion(column, organization_id):
    return dict(
        db.session.query(column, func.count()).join(
            Suggestion, Suggestion.id == column,
        ).filter(Suggestion.organization_id == organization_id).group_by(column).all()
    )


class BoardService:
    """Service for public boards and embeds."""

    @staticmethod
    def get_organization(slug) -> Organization:
        """Active organization for a board slug."""
        org = Organization.get_active_by_slug(slug)
        if org is None:
            raise NotFoundError('Organization not found.')
        return org

    @staticmethod
    def fingerprint_from_body(data: dict) -> Optional[str]:
        """Fingerprint sent by the client, or derived from its browser signals."""
        fingerprint = data.get('fingerprint')
        if fingerprint:
            return fingerprint
        signals = data.get('signals')
        if isinstance(signals, dict):
            return generate_fingerprint(BrowserSignals.from_mapping(signals))
        return None

    @staticmethod
    def public_suggestions(org: Organization, fingerprint: Optional[str] = None):
        """Suggestions ordered by combined votes, then newest first.

        Returns:
            List of (Suggestion, stats) where stats holds votes (members
            plus anonymous), comment_count and has_voted for the fingerprint.
        """
        suggestions = Suggestion.query.filter_by(organization_id=org.id).all()

        member_votes = _counts_by_suggestion(Vote.suggestion_id, org.id)
        anonymous_votes = _counts_by_suggestion(AnonymousVote.suggestion_id, org.id)
        comments = _counts_by_suggestion(Comment.suggestion_id, org.id)

        voted = set()
        if fingerprint:
            voted = {
                suggestion_id for (suggestion_id,) in db.session.query(AnonymousVote.suggestion_id).filter(
                    AnonymousVote.organization_id == org.id,
                    AnonymousVote.fingerprint == fingerprint,
                )
            }

        results = [
            (s, {
                'votes': member_votes.get(s.id, 0) + anonymous_votes.get(s.id, 0),
                'comment_count': comments.get(s.id, 0),
                'has_voted': s.id in voted,
            })
            for s in suggestions
        ]
        results.sort(key=lambda row: (row[1]['votes'], row[0].created_at), reverse=True)
        return results

    @staticmethod
    def public_categories(org: Organization):
        return Category.query.filter_by(organization_id=org.id).order_by(
            Category.sort_order, Category.name,
        ).all()

    # ── Comments ────────────────────────────────────────────

    @staticmethod
    def list_comments(org: Organization, suggestion_id):
        """Comments on a suggestion, oldest first."""
        suggestion = SuggestionService.get_suggestion(org.id, suggestion_id)
        return list(suggestion.comments)

    @staticmethod
    def add_comment(org: Organization, user: User, suggestion_id, content) -> Comment:
        content = (content or '').strip() if isinstance(content, str) else ''
        if not content:
            raise ValidationError('Comment content is required.')
        if len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError(f'Comment must be {MAX_COMMENT_LENGTH} characters or less.')

        suggestion = SuggestionService.get_suggestion(org.id, suggestion_id)
        comment = Comment(suggestion_id=suggestion.id, user_id=user.id, content=content)
        db.session.add(comment)
        db.session.commit()
        return comment

    # ── Embed ───────────────────────────────────────────────

    @staticmethod
    def update_embed_config(org: Organization, changes: dict) -> dict:
        """Merge known keys into the stored embed config.

        Returns:
            The effective config (stored values over defaults)
        """
        unknown = sorted(set(changes) - set(DEFAULT_EMBED_CONFIG))
        if unknown:
            raise ValidationError(f"Unknown embed settings: {', '.join(unknown)}.")
        if 'allowedDomains' in changes:
            domains = changes['allowedDomains']
            if not isinstance(domains, list):
                raise ValidationError('allowedDomains must be a list.')
            if not all(isinstance(d, str) and d.strip() for d in domains):
                raise ValidationError('allowedDomains entries must be non-empty domain names.')
            changes = {**changes, 'allowedDomains': [d.strip().lower() for d in domains]}

        org.embed_config = {**org.effective_embed_config, **changes}
        db.session.commit()
        current_app.logger.info(f'Embed config updated for {org.slug}')
        return org.effective_embed_config

    @staticmethod
    def check_embed(org: Organization, origin_ok: bool, feature: Optional[str] = None) -> dict:
        """Gate an embed request.

        Args:
            origin_ok: Whether the request origin passed the allow-list
            feature: Config flag that must also be on ('showVoting',
                'allowSubmissions')

        Raises:
            ForbiddenError: Embed disabled, domain not allowed, or feature off
        """
        config = org.effective_embed_config
        if not config.get('enabled'):
            raise ForbiddenError('Embed is not enabled for this organization.', code='embed_disabled')
        if not origin_ok:
            raise ForbiddenError('Domain not allowed.', code='domain_not_allowed')
        if feature == 'showVoting' and not config.get('showVoting'):
            raise ForbiddenError('Voting is disabled.', code='voting_disabled')
        if feature == 'allowSubmissions' and not config.get('allowSubmissions'):
            raise ForbiddenError('Submissions are disabled.', code='submissions_disabled')
        return config

    @staticmethod
    def submit_anonymous_suggestion(org: Organization, title, description=None, category_id=None):
        """Create a suggestion from the embed, authored by the org's system user."""
        if not isinstance(title, str) or not title.strip():
            raise ValidationError('Title is required.')
        author = AccountService.anonymous_user(org.id)
        return SuggestionService.create_suggestion(
            author,
            title,
            description=(description or '').strip(),
            category_id=category_id,
        )
