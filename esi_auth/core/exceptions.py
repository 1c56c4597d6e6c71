"""
Domain exceptions for the ESI authentication flow.

Provider and transport errors are captured by the strategy during the
callback phase and reported through the failure channel. Only
InvalidStateError escapes to the caller, and the centralized exception
handler in main.py turns it into a 500.
"""

from esi_auth.core.models import FailureError


class AuthError(Exception):
    """Base exception for ESI authentication errors."""

    message_key = "auth_error"

    def to_failure_error(self) -> FailureError:
        """Convert to the serializable error entry reported to the host."""
        return FailureError(message_key=self.message_key, message=str(self))


class MissingCodeError(AuthError):
    """Raised when the callback arrives without an authorization code."""

    message_key = "missing_code"

    def __init__(self, message: str = "No code received"):
        super().__init__(message)


class ProviderRejectedError(AuthError):
    """
    Raised when the token endpoint answers with an OAuth2 error payload.

    The message key is the provider's own error code (e.g. invalid_grant).
    """

    def __init__(self, code: str, description: str | None = None):
        self.code = code
        self.description = description
        super().__init__(description or code)

    @property
    def message_key(self) -> str:  # type: ignore[override]
        return self.code


class UnauthorizedError(AuthError):
    """Raised when the verify endpoint rejects the access token (401)."""

    message_key = "token"

    def __init__(self, message: str = "unauthorized"):
        super().__init__(message)


class ProviderError(AuthError):
    """Raised when the provider answers with an unexpected HTTP status."""

    message_key = "OAuth2"

    def __init__(self, status: int, detail: str | None = None):
        self.status = status
        self.detail = detail
        super().__init__(detail or str(status))


class TransportError(AuthError):
    """Raised for network failures, timeouts and cancelled requests."""

    message_key = "OAuth2"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class InvalidStateError(AuthError):
    """
    Raised when output views are read before a successful callback.

    This indicates host misuse, not a provider failure.
    """

    message_key = "invalid_state"
