# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Error taxonomy for the auth layer.

Service code raises these; ``main.py`` registers a single exception handler
that turns any :class:`AuthError` into ``{"detail": message}`` with the
attached HTTP status.  Nothing here is retried – every error is terminal for
the request that raised it.
"""

from fastapi import status


class AuthError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(AuthError):
    """Malformed input (email format, password policy, missing field)."""

    default_detail = "Invalid request"


class DuplicateEmail(AuthError):
    default_detail = "Email already registered"


class AuthenticationFailed(AuthError):
    """
    Bad credentials *or* inactive account.  The two are deliberately
    indistinguishable to the caller.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid email or password"


class AuthenticationRequired(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"


class Forbidden(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Admin access required"


class NotFound(AuthError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "User not found"


class IncorrectCurrentPassword(AuthError):
    default_detail = "Current password is incorrect"
