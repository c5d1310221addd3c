"""
Client Files Portal - Service Errors

Business-rule failures raised by the service layer.
Each class carries the HTTP status and stable error code it maps to;
portal.api.error_handling turns them into JSON responses.
"""

from __future__ import annotations

from typing import Optional


class ServiceError(Exception):
    """Base class for service-layer exceptions mapped to HTTP responses."""

    status_code: int = 400
    error_code: str = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[dict | list] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail


class ValidationError(ServiceError):
    """Malformed or missing input (400)."""
    status_code = 400
    error_code = "validation_error"


class ConflictError(ServiceError):
    """Duplicate email on create or update (400)."""
    status_code = 400
    error_code = "conflict"


class PasswordReuseError(ValidationError):
    """New password matches one of the recent password hashes (400)."""
    error_code = "password_reuse"


class TokenInvalidError(ServiceError):
    """Reset, verification or refresh token unknown or expired.

    400 for the reset/verification flows; refresh raises it with 401.
    """
    status_code = 400
    error_code = "invalid_token"


class AuthenticationError(ServiceError):
    """Missing, invalid or expired access token (401)."""
    status_code = 401
    error_code = "unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Email/password pair did not match (401)."""
    error_code = "invalid_credentials"


class AccountLockedError(AuthenticationError):
    """Login refused while the account lock is in force (401)."""
    error_code = "account_locked"


class AccountDeactivatedError(AuthenticationError):
    """Login refused for a soft-deleted account (401)."""
    error_code = "account_deactivated"


class ForbiddenError(ServiceError):
    """Authenticated but insufficient role or ownership (403)."""
    status_code = 403
    error_code = "forbidden"


class NotFoundError(ServiceError):
    """Unknown user, session or token (404)."""
    status_code = 404
    error_code = "not_found"


class RateLimitedError(ServiceError):
    """Fixed-window request budget exhausted (429)."""
    status_code = 429
    error_code = "rate_limited"

    def __init__(self, message: str, *, retry_after: int, headers: Optional[dict] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after
        self.headers = headers or {}


class InternalError(ServiceError):
    """Unexpected store or email failure (500)."""
    status_code = 500
    error_code = "server_error"
