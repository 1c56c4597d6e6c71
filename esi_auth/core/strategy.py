"""
ESI authentication strategy.

Drives one request/callback cycle: builds the authorize redirect, turns the
provider's callback into a token and an identity, and maps both into the
Credentials, Info and Extra views the host reads afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from esi_auth.core.exceptions import (
    AuthError,
    InvalidStateError,
    MissingCodeError,
    TransportError,
)
from esi_auth.core.models import Auth, Credentials, Extra, Failure, Info, Token
from esi_auth.core.ports import FailureSink, TokenClient
from esi_auth.oauth.config import ClientOverride, ESIConfig, PROVIDER_NAME


logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    """Lifecycle state of one authentication attempt."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RequestSession:
    """State owned by a single request/callback cycle."""

    state: FlowState = FlowState.IDLE
    pending_scope: str | None = None
    pending_state: str | None = None
    token: Token | None = None
    identity: dict[str, Any] | None = None
    errors: list[AuthError] = field(default_factory=list)

    def clear(self) -> None:
        self.state = FlowState.IDLE
        self.pending_scope = None
        self.pending_state = None
        self.token = None
        self.identity = None
        self.errors = []


@dataclass(frozen=True)
class CallbackOutcome:
    """Result of handle_callback."""

    state: FlowState
    errors: tuple[AuthError, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.state is FlowState.COMPLETED


class ESIStrategy:
    """
    Authentication strategy for EVE Online's SSO.

    One instance per request. The configuration and token client may be
    shared; the session may not.
    """

    def __init__(
        self,
        config: ESIConfig,
        client: TokenClient,
        session: RequestSession | None = None,
        client_override: ClientOverride | None = None,
        failure_sink: FailureSink | None = None,
    ):
        self._config = config
        self._client = client
        self._session = session if session is not None else RequestSession()
        self._client_override = client_override
        self._failure_sink = failure_sink

    @property
    def session(self) -> RequestSession:
        return self._session

    @property
    def state(self) -> FlowState:
        return self._session.state

    # =========================================================================
    # Request phase
    # =========================================================================

    def begin(
        self,
        scope: str | None = None,
        state: str | None = None,
        redirect_uri: str | None = None,
    ) -> str:
        """
        Start the flow and return the URL to redirect the user-agent to.

        Args:
            scope: Requested scopes; falls back to the configured default
            state: Opaque value ESI echoes back on the callback
            redirect_uri: Callback URL for this request

        Returns:
            ESI authorization URL
        """
        effective_scope = scope if scope is not None else self._config.default_scope

        url = self._client.build_authorize_url(
            effective_scope,
            state=state,
            redirect_uri=redirect_uri,
            client_override=self._client_override,
        )

        self._session.pending_scope = effective_scope
        self._session.pending_state = state
        self._session.state = FlowState.AWAITING_CALLBACK

        logger.info(
            "Redirecting to ESI authorization page",
            extra={"provider": PROVIDER_NAME, "scope": effective_scope},
        )
        return url

    # =========================================================================
    # Callback phase
    # =========================================================================

    async def handle_callback(
        self, params: Mapping[str, str], redirect_uri: str | None = None
    ) -> CallbackOutcome:
        """
        Exchange the callback's code for a token and fetch the identity.

        Provider and transport failures are collected, reported to the
        failure sink and returned in the outcome; they are not raised.
        Session state is only written once both calls have finished.

        Args:
            params: Query parameters of the callback request
            redirect_uri: Callback URL used in the request phase

        Returns:
            CallbackOutcome with the final state and any errors
        """
        if "code" not in params:
            return self._fail(MissingCodeError())

        try:
            token = await self._client.exchange_code_for_token(
                params["code"],
                redirect_uri=redirect_uri,
                client_override=self._client_override,
            )
            identity = await self._client.fetch_identity(
                token, self._config.verify_url
            )
        except AuthError as e:
            return self._fail(e)
        except asyncio.CancelledError:
            self._fail(TransportError("request cancelled"))
            raise

        self._session.token = token
        self._session.identity = identity
        self._session.errors = []
        self._session.state = FlowState.COMPLETED

        logger.info(
            "ESI authentication completed",
            extra={"provider": PROVIDER_NAME, "uid": self.uid()},
        )
        return CallbackOutcome(state=FlowState.COMPLETED)

    def _fail(self, error: AuthError) -> CallbackOutcome:
        self._session.token = None
        self._session.identity = None
        self._session.errors.append(error)
        self._session.state = FlowState.FAILED

        logger.warning(
            f"ESI authentication failed: {error.message_key}: {error}",
            extra={"provider": PROVIDER_NAME, "error": error.message_key},
        )

        if self._failure_sink is not None:
            self._failure_sink(list(self._session.errors))

        return CallbackOutcome(
            state=FlowState.FAILED, errors=tuple(self._session.errors)
        )

    # =========================================================================
    # Output views
    # =========================================================================

    def _completed(self) -> tuple[Token, dict[str, Any]]:
        session = self._session
        if (
            session.state is not FlowState.COMPLETED
            or session.token is None
            or session.identity is None
        ):
            raise InvalidStateError(
                f"Authentication result is not available in state '{session.state.value}'"
            )
        return session.token, session.identity

    def uid(self) -> str | None:
        """
        Value of the configured uid field, as a string.

        Returns None when the identity does not carry the field.
        """
        _, identity = self._completed()
        value = identity.get(str(self._config.uid_field))
        return None if value is None else str(value)

    def credentials(self) -> Credentials:
        """Credentials view built from the token and the identity's Scopes."""
        token, identity = self._completed()
        # "" splits to [""]; kept as is
        scope_string = identity.get("Scopes") or ""

        return Credentials(
            token=token.access_token,
            refresh_token=token.refresh_token,
            token_type=token.token_type,
            expires=token.expires_at is not None,
            expires_at=token.expires_at,
            scopes=scope_string.split(self._config.scope_delimiter),
        )

    def info(self) -> Info:
        """Display fields of the character."""
        _, identity = self._completed()

        urls = {}
        if identity.get("html_url"):
            urls["profile"] = identity["html_url"]

        return Info(
            name=identity.get("CharacterName"),
            email=identity.get("email"),
            location=identity.get("location"),
            image=identity.get("avatar_url"),
            urls=urls,
        )

    def extra(self) -> Extra:
        """Raw token and identity."""
        token, identity = self._completed()
        return Extra(raw_info={"token": token.raw, "user": identity})

    def auth(self) -> Auth:
        """All views of a completed authentication."""
        return Auth(
            provider=PROVIDER_NAME,
            strategy=type(self).__name__,
            uid=self.uid(),
            credentials=self.credentials(),
            info=self.info(),
            extra=self.extra(),
        )

    def failure(self) -> Failure:
        """Errors collected by the last callback."""
        return Failure(
            provider=PROVIDER_NAME,
            strategy=type(self).__name__,
            errors=[e.to_failure_error() for e in self._session.errors],
        )

    # =========================================================================
    # Cleanup phase
    # =========================================================================

    def cleanup(self) -> None:
        """Drop the token and identity. Safe to call more than once."""
        self._session.clear()
