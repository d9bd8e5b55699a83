"""
SQLAlchemy models for Feature Roadmap.
All models are imported here for easy access.
"""
from roadmap.models.organization import Organization, DEFAULT_EMBED_CONFIG
from roadmap.models.user import User, UserRole, PasswordResetToken, ANONYMOUS_EMAIL
from roadmap.models.suggestion import (
    Category,
    Suggestion,
    Vote,
    AnonymousVote,
    Comment,
    DEFAULT_CATEGORIES,
    SUGGESTION_STATUSES,
    MAX_FINGERPRINT_LENGTH,
    MAX_COMMENT_LENGTH,
)
from roadmap.models.billing import (
    Plan,
    Subscription,
    Payment,
    BillingInterval,
    BillingMode,
    SubscriptionStatus,
    PaymentStatus,
)
from roadmap.models.platform import PlatformSetting, EmailTemplate

__all__ = [
    'Organization', 'DEFAULT_EMBED_CONFIG',
    'User', 'UserRole', 'PasswordResetToken', 'ANONYMOUS_EMAIL',
    'Category', 'Suggestion', 'Vote', 'AnonymousVote', 'Comment',
    'DEFAULT_CATEGORIES', 'SUGGESTION_STATUSES', 'MAX_FINGERPRINT_LENGTH', 'MAX_COMMENT_LENGTH',
    'Plan', 'Subscription', 'Payment',
    'BillingInterval', 'BillingMode', 'SubscriptionStatus', 'PaymentStatus',
    'PlatformSetting', 'EmailTemplate',
]
