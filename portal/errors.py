"""Domain errors raised by the portal services.

Every error carries a short caller-safe message, a machine-checkable ``kind``
and the HTTP status it maps to. Route handlers never build error responses
themselves; ``main.py`` registers a single handler for ``PortalError``.
"""


class PortalError(Exception):
    """Base class for all caller-visible portal errors."""

    kind = "portal_error"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Missing or malformed input."""

    kind = "validation_error"
    status_code = 400


class AuthenticationError(PortalError):
    """Bad credentials or no valid session."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(PortalError):
    """Authenticated, but lacking the admin privilege."""

    kind = "authorization_error"
    status_code = 403


class EmailNotVerifiedError(PortalError):
    kind = "email_not_verified"
    status_code = 403


class InvalidTokenError(PortalError):
    """Verification or reset token is absent, expired or already used."""

    kind = "invalid_token"
    status_code = 400


class NotFoundError(PortalError):
    kind = "not_found"
    status_code = 404


class ConflictError(PortalError):
    kind = "conflict"
    status_code = 409


class RateLimitExceededError(PortalError):
    kind = "rate_limit_exceeded"
    status_code = 429


class StoreError(PortalError):
    """Storage-layer failure. The message never includes driver detail."""

    kind = "store_error"
    status_code = 500
