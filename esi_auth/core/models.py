"""
Token and normalized output models.

Token is what the code exchange produces. Credentials, Info and Extra are
the three views the host reads after a successful callback; Auth and
Failure aggregate them for the HTTP layer.
"""

from datetime import datetime, UTC
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Token(BaseModel):
    """
    OAuth2 token issued by the ESI token endpoint.

    Never persisted. The raw provider response is kept verbatim so the
    extra() view can expose fields this model does not cover.
    """

    access_token: str = Field(description="OAuth2 access token")
    refresh_token: str | None = Field(
        default=None, description="OAuth2 refresh token for token renewal"
    )
    token_type: str = Field(default="Bearer", description="Token type")
    expires_at: int | None = Field(
        default=None, description="Token expiration timestamp (Unix epoch)"
    )
    scopes: list[str] = Field(
        default_factory=list, description="Scopes granted with the token"
    )
    raw: dict[str, Any] = Field(
        default_factory=dict, description="Token response as returned by ESI"
    )

    @classmethod
    def from_oauth_response(
        cls, token_data: dict[str, Any], scope_delimiter: str = ","
    ) -> "Token":
        """
        Create Token from an authlib token response.

        authlib already turns expires_in into an absolute expires_at; plain
        dicts get the same treatment here.

        Args:
            token_data: Raw token dict from authlib
            scope_delimiter: Delimiter used by the provider in the scope field

        Returns:
            Token instance
        """
        expires_at = token_data.get("expires_at")
        if expires_at is None and token_data.get("expires_in") is not None:
            expires_at = int(datetime.now(UTC).timestamp()) + int(
                token_data["expires_in"]
            )

        scope = token_data.get("scope") or ""
        scopes = [s for s in scope.split(scope_delimiter) if s]

        return cls(
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token"),
            token_type=token_data.get("token_type") or "Bearer",
            expires_at=int(expires_at) if expires_at is not None else None,
            scopes=scopes,
            raw=dict(token_data),
        )

    def to_authlib_token(self) -> dict[str, Any]:
        """
        Convert to the dict format expected by authlib clients.

        Expiry is left out so authlib never rejects a short-lived token
        locally; ESI decides whether it is still valid.

        Returns:
            Dict compatible with authlib OAuth client
        """
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
        }


class Credentials(BaseModel):
    """Credentials view of a completed authentication."""

    token: str
    refresh_token: str | None = None
    token_type: str | None = None
    expires: bool = False
    expires_at: int | None = None
    scopes: list[str] = Field(default_factory=list)
    other: dict[str, Any] = Field(default_factory=dict)


class Info(BaseModel):
    """
    Display fields of the authenticated character.

    ESI's verify endpoint only returns the character name. The remaining
    fields are filled when a deployment's identity endpoint provides them.
    """

    name: str | None = None
    email: str | None = None
    location: str | None = None
    image: str | None = None
    urls: dict[str, str] = Field(default_factory=dict)


class Extra(BaseModel):
    """Raw token and identity, unredacted."""

    raw_info: dict[str, Any] = Field(default_factory=dict)


class Auth(BaseModel):
    """Result of a successful callback, as handed to the host application."""

    provider: str = Field(description="Provider name (esi)")
    strategy: str = Field(description="Strategy class that produced the result")
    uid: str | None = Field(description="Value of the configured uid field")
    credentials: Credentials
    info: Info
    extra: Extra


class FailureError(BaseModel):
    """One error reported through the failure channel."""

    message_key: str
    message: str

    model_config = ConfigDict(frozen=True)


class Failure(BaseModel):
    """Errors collected during a failed callback."""

    provider: str
    strategy: str
    errors: list[FailureError] = Field(default_factory=list)
