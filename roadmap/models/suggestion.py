"""
Suggestion board models: categories, suggestions, votes and comments.
"""
from datetime import datetime
from uuid import uuid4

from roadmap.extensions import db


# Seeded for every new organization, in this order
DEFAULT_CATEGORIES = ['UI', 'Performance', 'Mobile', 'Dashboard', 'API', 'Security']

# Board statuses; stored as plain strings so admins can adopt new ones freely
SUGGESTION_STATUSES = ('submitted', 'under_review', 'planned', 'in_progress', 'done', 'declined')

MAX_FINGERPRINT_LENGTH = 64
MAX_COMMENT_LENGTH = 2000


def _uuid():
    return str(uuid4())


class Category(db.Model):
    """Per-organization suggestion category."""

    __tablename__ = 'categories'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    organization_id = db.Column(
        db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(20), nullable=False, default='#6b7280')
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    organization = db.relationship('Organization', back_populates='categories')
    suggestions = db.relationship('Suggestion', back_populates='category', passive_deletes=True)

    def __repr__(self):
        return f'<Category {self.name}>'


class Suggestion(db.Model):
    """A feature suggestion on an organization's board."""

    __tablename__ = 'suggestions'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    organization_id = db.Column(
        db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    category_id = db.Column(
        db.String(36), db.ForeignKey('categories.id', ondelete='SET NULL'), nullable=True, index=True,
    )
    created_by = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True,
    )

    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(50), nullable=False, default='submitted', index=True)
    sprint = db.Column(db.String(100))
    requirements = db.Column(db.Text)

    # Set when pushed to an external tracker
    external_id = db.Column(db.String(255))
    external_url = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    organization = db.relationship('Organization')
    category = db.relationship('Category', back_populates='suggestions')
    author = db.relationship('User', foreign_keys=[created_by])
    votes = db.relationship('Vote', back_populates='suggestion', cascade='all, delete-orphan')
    anonymous_votes = db.relationship(
        'AnonymousVote', back_populates='suggestion', cascade='all, delete-orphan',
    )
    comments = db.relationship(
        'Comment', back_populates='suggestion', cascade='all, delete-orphan',
        order_by='Comment.created_at',
    )

    def __repr__(self):
        return f'<Suggestion {self.title[:30]}>'


class Vote(db.Model):
    """Authenticated vote, one per (suggestion, user)."""

    __tablename__ = 'votes'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    suggestion_id = db.Column(
        db.String(36), db.ForeignKey('suggestions.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('suggestion_id', 'user_id', name='uq_vote_suggestion_user'),
    )

    suggestion = db.relationship('Suggestion', back_populates='votes')
    user = db.relationship('User')


class AnonymousVote(db.Model):
    """Vote cast from a public board or embed, keyed by browser fingerprint."""

    __tablename__ = 'anonymous_votes'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    suggestion_id = db.Column(
        db.String(36), db.ForeignKey('suggestions.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    organization_id = db.Column(
        db.String(36), db.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    fingerprint = db.Column(db.String(MAX_FINGERPRINT_LENGTH), nullable=False)
    ip_address = db.Column(db.String(45))  # informational only
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('suggestion_id', 'fingerprint', name='uq_anon_vote_suggestion_fingerprint'),
    )

    suggestion = db.relationship('Suggestion', back_populates='anonymous_votes')

    def __repr__(self):
        return f'<AnonymousVote {self.suggestion_id} {self.fingerprint[:8]}>'


class Comment(db.Model):
    """Comment on a suggestion."""

    __tablename__ = 'comments'

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    suggestion_id = db.Column(
        db.String(36), db.ForeignKey('suggestions.id', ondelete='CASCADE'), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False,
    )
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=datetime.utcnow)

    suggestion = db.relationship('Suggestion', back_populates='comments')
    user = db.relationship('User')
