"""
Port definitions (interfaces) for the core domain.

Ports define the contracts between the strategy and the systems around it:
the host middleware that drives the lifecycle, the OAuth2 token client,
and the host's failure channel. Infrastructure adapters implement these
ports.
"""

from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

from esi_auth.core.exceptions import AuthError
from esi_auth.core.models import Auth, Credentials, Extra, Failure, Info, Token
from esi_auth.oauth.config import ClientOverride


class TokenClient(Protocol):
    """
    Port (interface) for the provider's OAuth2 endpoints.

    Implemented by ESIOAuthClient. Failures are raised as AuthError
    subclasses.
    """

    def build_authorize_url(
        self,
        scope: str | Sequence[str],
        state: str | None = None,
        redirect_uri: str | None = None,
        client_override: ClientOverride | None = None,
    ) -> str:
        """Build the authorization endpoint URL. No network call."""
        ...

    async def exchange_code_for_token(
        self,
        code: str,
        redirect_uri: str | None = None,
        client_override: ClientOverride | None = None,
    ) -> Token:
        """Exchange an authorization code for a token."""
        ...

    async def fetch_identity(
        self, token: Token, verify_url: str | None = None
    ) -> dict[str, Any]:
        """Fetch the authenticated character's identity."""
        ...


class FailureSink(Protocol):
    """
    Port (interface) for the host's failure-reporting channel.

    Called once per failed callback with every error collected.
    """

    def __call__(self, errors: list[AuthError]) -> None:
        ...


@runtime_checkable
class AuthStrategy(Protocol):
    """
    The plugin contract the host middleware drives.

    Call order: begin, then handle_callback on the provider's redirect,
    then any of uid/credentials/info/extra (or the auth/failure
    aggregates), then cleanup.
    """

    def begin(
        self,
        scope: str | None = None,
        state: str | None = None,
        redirect_uri: str | None = None,
    ) -> str:
        ...

    async def handle_callback(
        self, params: Mapping[str, str], redirect_uri: str | None = None
    ) -> Any:
        ...

    def uid(self) -> str | None:
        ...

    def credentials(self) -> Credentials:
        ...

    def info(self) -> Info:
        ...

    def extra(self) -> Extra:
        ...

    def auth(self) -> Auth:
        ...

    def failure(self) -> Failure:
        ...

    def cleanup(self) -> None:
        ...
