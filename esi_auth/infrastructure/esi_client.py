"""
OAuth2 client for EVE Online's SSO.

Wraps authlib's httpx integration for the three provider interactions:
building the authorize URL, exchanging an authorization code for a token,
and calling the verify endpoint with that token.
"""

import logging
from typing import Any, Sequence

import httpx
from authlib.common.urls import add_params_to_uri
from authlib.integrations.httpx_client import AsyncOAuth2Client, OAuthError

from esi_auth.core.exceptions import (
    ProviderError,
    ProviderRejectedError,
    TransportError,
    UnauthorizedError,
)
from esi_auth.core.models import Token
from esi_auth.oauth.config import ClientOverride, ESIConfig, PROVIDER_NAME


logger = logging.getLogger(__name__)


class ESIOAuthClient:
    """
    Client for the ESI authorize, token and verify endpoints.

    Holds only the read-only configuration; every network call opens its
    own AsyncOAuth2Client.
    """

    def __init__(self, config: ESIConfig):
        self._config = config

    def _new_client(
        self,
        client_override: ClientOverride | None = None,
        token: Token | None = None,
        redirect_uri: str | None = None,
    ) -> AsyncOAuth2Client:
        client_id, client_secret = self._config.resolve_client(client_override)
        return AsyncOAuth2Client(
            client_id=client_id,
            client_secret=client_secret,
            token_endpoint_auth_method="client_secret_basic",
            token=token.to_authlib_token() if token else None,
            token_placement=self._config.token_placement,
            redirect_uri=redirect_uri,
            timeout=self._config.timeout,
        )

    def build_authorize_url(
        self,
        scope: str | Sequence[str],
        state: str | None = None,
        redirect_uri: str | None = None,
        client_override: ClientOverride | None = None,
    ) -> str:
        """
        Build the URL the user-agent is redirected to.

        The scope parameter is always present, even when empty. A sequence
        of scopes is joined with the configured delimiter.

        Args:
            scope: Scope string, or a sequence of scopes
            state: Opaque value ESI returns on the callback
            redirect_uri: Callback URL registered with the application
            client_override: Per-request client credentials

        Returns:
            Authorization URL
        """
        if not isinstance(scope, str):
            scope = self._config.scope_delimiter.join(scope)

        client_id, _ = self._config.resolve_client(client_override)

        params: list[tuple[str, str]] = [("client_id", client_id or "")]
        if redirect_uri and self._config.send_redirect_uri:
            params.append(("redirect_uri", redirect_uri))
        params.append(("scope", scope))
        params.append(("response_type", "code"))
        if state is not None:
            params.append(("state", state))

        return add_params_to_uri(self._config.authorize_url, params)

    async def exchange_code_for_token(
        self,
        code: str,
        redirect_uri: str | None = None,
        client_override: ClientOverride | None = None,
    ) -> Token:
        """
        Exchange an authorization code for an access token.

        Uses HTTP Basic client authentication against the token endpoint.
        authlib sends Accept: application/json and a form-encoded body.

        Args:
            code: Authorization code from the callback
            redirect_uri: Redirect URI sent with the authorize request
            client_override: Per-request client credentials

        Returns:
            Token with an absolute expiry

        Raises:
            ProviderRejectedError: ESI returned an OAuth2 error payload
            ProviderError: ESI returned a server error
            TransportError: Network failure or timeout
        """
        send_redirect = redirect_uri if self._config.send_redirect_uri else None

        try:
            async with self._new_client(
                client_override, redirect_uri=send_redirect
            ) as client:
                token_data = await client.fetch_token(
                    self._config.token_url,
                    grant_type="authorization_code",
                    code=code,
                )
        except OAuthError as e:
            logger.warning(
                f"ESI rejected authorization code: {e.error}",
                extra={"provider": PROVIDER_NAME, "error": e.error},
            )
            raise ProviderRejectedError(e.error, e.description) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                f"ESI token endpoint error: {e.response.status_code}",
                extra={"provider": PROVIDER_NAME, "status": e.response.status_code},
            )
            raise ProviderError(e.response.status_code) from e
        except httpx.RequestError as e:
            logger.error(f"Network error exchanging code: {e}")
            raise TransportError(str(e) or type(e).__name__) from e
        except ValueError as e:
            # Body was not JSON
            raise ProviderRejectedError(
                "invalid_token_response", "Token endpoint returned a non-JSON body"
            ) from e

        if not token_data.get("access_token"):
            raise ProviderRejectedError(
                "invalid_token_response", "Token response did not include an access token"
            )

        return Token.from_oauth_response(dict(token_data), self._config.scope_delimiter)

    async def fetch_identity(
        self, token: Token, verify_url: str | None = None
    ) -> dict[str, Any]:
        """
        Fetch the character identity for an access token.

        Args:
            token: Token from exchange_code_for_token
            verify_url: Verify endpoint (defaults to the configured one)

        Returns:
            Identity as returned by ESI

        Raises:
            UnauthorizedError: ESI rejected the token (401)
            ProviderError: Any other non-2xx status, or a non-object body
            TransportError: Network failure or timeout
        """
        url = verify_url or self._config.verify_url

        try:
            async with self._new_client(token=token) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.RequestError as e:
            logger.error(f"Network error fetching identity: {e}")
            raise TransportError(str(e) or type(e).__name__) from e

        if response.status_code == 401:
            logger.warning("ESI verify endpoint returned 401", extra={"provider": PROVIDER_NAME})
            raise UnauthorizedError()
        if not 200 <= response.status_code < 300:
            logger.error(
                f"ESI verify endpoint error: {response.status_code}",
                extra={"provider": PROVIDER_NAME, "status": response.status_code},
            )
            raise ProviderError(response.status_code)

        try:
            identity = response.json()
        except ValueError as e:
            raise ProviderError(
                response.status_code, "Identity response was not valid JSON"
            ) from e

        if not isinstance(identity, dict):
            raise ProviderError(
                response.status_code, "Identity response was not a JSON object"
            )

        return identity
