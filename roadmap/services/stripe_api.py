"""
Thin helpers around the Stripe SDK.

Every call passes the active mode's secret key and the pinned API version
explicitly; the module-level stripe.api_key is never set, so test and live
credentials cannot leak into each other.
"""
from datetime import datetime, timezone

import stripe
from flask import current_app

from roadmap.errors import ExternalProviderError
from roadmap.services.billing_mode import stripe_api_key


def request_options(mode=None) -> dict:
    """Per-call options for the given (or active) billing mode."""
    return {
        'api_key': stripe_api_key(mode),
        'stripe_version': current_app.config.get('STRIPE_API_VERSION'),
    }


def call(operation, *args, billing_mode=None, **params):
    """Invoke a Stripe SDK operation, converting SDK errors.

    Usage:
        call(stripe.Customer.create, email=..., billing_mode=BillingMode.TEST)

    `billing_mode` picks the credential set; every other keyword,
    including Stripe's own `mode`, goes to the operation.

    Raises:
        BillingNotConfigured: The mode has no secret key
        ExternalProviderError: Stripe rejected the call or was unreachable
    """
    options = request_options(billing_mode)
    try:
        return operation(*args, **params, **options)
    except stripe.StripeError as e:
        message = getattr(e, 'user_message', None) or str(e) or 'Stripe request failed.'
        current_app.logger.error(
            f'Stripe {getattr(operation, "__qualname__", operation)} failed: {e}'
        )
        raise ExternalProviderError(message) from e


def as_dict(obj):
    """Plain dict view of a Stripe object (or a dict passed through)."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


def from_epoch(value):
    """Stripe epoch seconds -> naive UTC datetime (None stays None)."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)
