"""
Organization model - the tenant boundary for multi-tenancy.
Each organization has its own users, categories, suggestions and billing.
"""
import re
import unicodedata
from datetime import datetime, timedelta
from uuid import uuid4

from roadmap.extensions import db


# Embed widget defaults; stored config is merged over these
DEFAULT_EMBED_CONFIG = {
    'enabled': False,
    'allowedViews': ['suggestions', 'roadmap'],
    'defaultView': 'suggestions',
    'showHeader': True,
    'showVoting': True,
    'showFilters': True,
    'allowSubmissions': False,
    'customCss': '',
    'allowedDomains': [],
    'height': '600px',
    'width': '100%',
}


class Organization(db.Model):
    """Organization (tenant) - the root isolation unit."""

    __tablename__ = 'organizations'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid4()))
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Billing: plan mirrors Plan.slug, set by webhooks or platform admins
    plan = db.Column(db.String(50), nullable=False, default='pro')
    trial_ends_at = db.Column(db.DateTime, nullable=True)
    stripe_customer_id = db.Column(db.String(255), nullable=True, index=True)

    embed_config = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    users = db.relationship('User', back_populates='organization', cascade='all, delete-orphan')
    categories = db.relationship('Category', back_populates='organization', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Organization {self.slug}>'

    @property
    def is_trialing(self):
        """True while the registration trial has not expired."""
        return self.trial_ends_at is not None and self.trial_ends_at > datetime.utcnow()

    @property
    def effective_embed_config(self):
        """Stored embed config merged over the defaults."""
        return {**DEFAULT_EMBED_CONFIG, **(self.embed_config or {})}

    def start_trial(self, days):
        self.trial_ends_at = datetime.utcnow() + timedelta(days=days)

    @staticmethod
    def slugify(name):
        """Generate a URL-safe slug from a name.

        Transliterates accents, lowercases, collapses everything that is not
        [a-z0-9] into single hyphens. No deduplication: a slug collision is a
        registration error, not something to paper over with a suffix.
        """
        normalized = unicodedata.normalize('NFKD', name or '')
        ascii_name = normalized.encode('ascii', 'ignore').decode('ascii')
        slug = re.sub(r'[^a-z0-9]+', '-', ascii_name.lower()).strip('-')
        return slug[:100]

    @classmethod
    def get_active_by_slug(cls, slug):
        return cls.query.filter_by(slug=slug, is_active=True).first()
