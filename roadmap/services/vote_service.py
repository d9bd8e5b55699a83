"""
Vote ledgers: anonymous (fingerprint-keyed) and authenticated votes.

Both are toggles. A second vote from the same voter removes the first.
Toggling is read-then-write; two simultaneous submissions from one
fingerprint may both pass the read, and the unique constraint on
(suggestion, fingerprint) then makes one of them fail. Exactly-once
toggling under that race is not promised.
"""
from typing import Optional

from roadmap.errors import NotFoundError, ValidationError
from roadmap.extensions import db
from roadmap.models.suggestion import (
    AnonymousVote,
    Suggestion,
    Vote,
    MAX_FINGERPRINT_LENGTH,
)


class VoteService:
    """Service for casting and counting votes."""

    @staticmethod
    def _get_suggestion_in_org(suggestion_id: str, organization_id: str) -> Suggestion:
        suggestion = db.session.get(Suggestion, suggestion_id)
        if suggestion is None or suggestion.organization_id != organization_id:
            raise NotFoundError('Suggestion not found.')
        return suggestion

    @staticmethod
    def validate_fingerprint(fingerprint) -> str:
        if not isinstance(fingerprint, str) or not fingerprint:
            raise ValidationError('Fingerprint is required.')
        if len(fingerprint) > MAX_FINGERPRINT_LENGTH:
            raise ValidationError(
                f'Fingerprint must be at most {MAX_FINGERPRINT_LENGTH} characters.'
            )
        return fingerprint

    @staticmethod
    def toggle_anonymous_vote(suggestion_id: str, organization_id: str,
                              fingerprint: str, ip: Optional[str] = None) -> dict:
        """Add or remove the anonymous vote for (suggestion, fingerprint).

        Args:
            suggestion_id: Suggestion voted on
            organization_id: Board's organization; the suggestion must belong to it
            fingerprint: Browser fingerprint, 1-64 chars
            ip: Client address, stored for information only

        Returns:
            {'voted': True} after adding, {'voted': False} after removing

        Raises:
            ValidationError: Bad fingerprint
            NotFoundError: Suggestion missing or in another organization
        """
        VoteService.validate_fingerprint(fingerprint)
        VoteService._get_suggestion_in_org(suggestion_id, organization_id)

        existing = AnonymousVote.query.filter_by(
            suggestion_id=suggestion_id, fingerprint=fingerprint,
        ).first()

        if existing:
            db.session.delete(existing)
            db.session.commit()
            return {'voted': False}

        db.session.add(AnonymousVote(
            suggestion_id=suggestion_id,
            organization_id=organization_id,
            fingerprint=fingerprint,
            ip_address=(ip or '')[:45] or None,
        ))
        db.session.commit()
        return {'voted': True}

    @staticmethod
    def count_anonymous_votes(suggestion_id: str) -> int:
        return AnonymousVote.query.filter_by(suggestion_id=suggestion_id).count()

    @staticmethod
    def has_anonymous_vote(suggestion_id: str, fingerprint: Optional[str]) -> bool:
        if not fingerprint:
            return False
        return AnonymousVote.query.filter_by(
            suggestion_id=suggestion_id, fingerprint=fingerprint,
        ).first() is not None

    @staticmethod
    def toggle_vote(suggestion_id: str, organization_id: str, user_id: str) -> dict:
        """Authenticated counterpart of toggle_anonymous_vote."""
        VoteService._get_suggestion_in_org(suggestion_id, organization_id)

        existing = Vote.query.filter_by(suggestion_id=suggestion_id, user_id=user_id).first()
        if existing:
            db.session.delete(existing)
            db.session.commit()
            return {'voted': False}

        db.session.add(Vote(suggestion_id=suggestion_id, user_id=user_id))
        db.session.commit()
        return {'voted': True}

    @staticmethod
    def count_votes(suggestion_id: str) -> int:
        return Vote.query.filter_by(suggestion_id=suggestion_id).count()

    @staticmethod
    def total_votes(suggestion_id: str) -> int:
        """Authenticated plus anonymous votes, as displayed on boards."""
        return VoteService.count_votes(suggestion_id) + VoteService.count_anonymous_votes(suggestion_id)
