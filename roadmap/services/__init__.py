"""
Services package for Feature Roadmap.
Contains business logic separated from routes.
"""
from roadmap.services.billing_mode import (
    BillingModeCache,
    billing_mode_cache,
    get_billing_mode,
    set_billing_mode,
    stripe_credentials,
)
from roadmap.services.vote_service import VoteService
from roadmap.services.subscription_service import SubscriptionService, WebhookEvent
from roadmap.services.checkout_service import CheckoutService
from roadmap.services.account_service import AccountService
from roadmap.services.suggestion_service import SuggestionService
from roadmap.services.board_service import BoardService
from roadmap.services.plan_service import PlanService
from roadmap.services.platform_service import PlatformService

__all__ = [
    'BillingModeCache',
    'billing_mode_cache',
    'get_billing_mode',
    'set_billing_mode',
    'stripe_credentials',
    'VoteService',
    'SubscriptionService',
    'WebhookEvent',
    'CheckoutService',
    'AccountService',
    'SuggestionService',
    'BoardService',
    'PlanService',
    'PlatformService',
]
