"""
Exception taxonomy for Feature Roadmap.

Services raise these; the app factory renders them as
{"error": {"code": ..., "message": ...}} with the matching HTTP status.
"""


class RoadmapError(Exception):
    """Base class for errors surfaced to API callers."""

    status = 400
    code = 'error'

    def __init__(self, message, code=None, status=None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self):
        return {'error': {'code': self.code, 'message': self.message}}


class ValidationError(RoadmapError):
    """Malformed or missing input. Never retried automatically."""

    status = 400
    code = 'validation_error'


class AuthError(RoadmapError):
    """Missing, invalid or expired credentials."""

    status = 401
    code = 'unauthorized'


class ForbiddenError(RoadmapError):
    """Authenticated but not allowed."""

    status = 403
    code = 'forbidden'


class NotFoundError(RoadmapError):
    """Entity does not exist or is outside the caller's tenant."""

    status = 404
    code = 'not_found'


class ExternalProviderError(RoadmapError):
    """The payment provider failed or returned a non-success response.

    Inside webhook handlers this surfaces as a 500 so the provider
    redelivers the event.
    """

    status = 502
    code = 'provider_error'


class SignatureVerificationFailed(ExternalProviderError):
    """Webhook signature did not verify. Terminal for that request."""

    status = 400
    code = 'invalid_signature'


class BillingNotConfigured(ExternalProviderError):
    """No Stripe credentials for the active billing mode."""

    status = 503
    code = 'billing_not_configured'
