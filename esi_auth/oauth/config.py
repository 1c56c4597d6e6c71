"""
ESI OAuth2 configuration.

Loaded once from environment variables and shared read-only by every
request. Endpoint URLs default to EVE Online's SSO.
"""

import os
import logging
from dataclasses import dataclass, field
from functools import lru_cache


logger = logging.getLogger(__name__)

PROVIDER_NAME = "esi"

ESI_SITE = "https://login.eveonline.com"

TOKEN_PLACEMENTS = ("header", "uri")


@dataclass(frozen=True)
class ClientOverride:
    """Per-request client credentials that replace the configured ones."""

    client_id: str | None = None
    client_secret: str | None = None

    def is_complete(self) -> bool:
        """An override only applies when both values are present."""
        return bool(self.client_id and self.client_secret)


@dataclass(frozen=True)
class ESIConfig:
    """
    ESI provider configuration.

    The scope delimiter is used both to join a list of scopes for the
    authorize URL and to split the Scopes string returned by the verify
    endpoint.
    """

    client_id: str | None = None
    client_secret: str | None = None
    site: str = ESI_SITE
    authorize_url: str = field(default="")
    token_url: str = field(default="")
    verify_url: str = field(default="")
    base_url: str = ""
    uid_field: str = "CharacterID"
    default_scope: str = ""
    send_redirect_uri: bool = True
    scope_delimiter: str = ","
    token_placement: str = "header"
    timeout: float = 10.0

    def __post_init__(self):
        # Endpoints derive from the site unless set explicitly
        site = self.site.rstrip("/")
        if not self.authorize_url:
            object.__setattr__(self, "authorize_url", f"{site}/oauth/authorize")
        if not self.token_url:
            object.__setattr__(self, "token_url", f"{site}/oauth/token")
        if not self.verify_url:
            object.__setattr__(self, "verify_url", f"{site}/oauth/verify")
        if self.token_placement not in TOKEN_PLACEMENTS:
            raise ValueError(
                f"token_placement must be one of {TOKEN_PLACEMENTS}, "
                f"got {self.token_placement!r}"
            )
        if not self.scope_delimiter:
            raise ValueError("scope_delimiter must not be empty")

    @classmethod
    def from_env(cls) -> "ESIConfig":
        """Load configuration from environment variables."""
        return cls(
            client_id=os.getenv("ESI_CLIENT_ID"),
            client_secret=os.getenv("ESI_CLIENT_SECRET"),
            site=os.getenv("ESI_SITE", ESI_SITE),
            authorize_url=os.getenv("ESI_AUTHORIZE_URL", ""),
            token_url=os.getenv("ESI_TOKEN_URL", ""),
            verify_url=os.getenv("ESI_VERIFY_URL", ""),
            base_url=os.getenv("BASE_URL", ""),
            uid_field=os.getenv("ESI_UID_FIELD", "CharacterID"),
            default_scope=os.getenv("ESI_DEFAULT_SCOPE", ""),
            send_redirect_uri=os.getenv("ESI_SEND_REDIRECT_URI", "true").lower()
            == "true",
            scope_delimiter=os.getenv("ESI_SCOPE_DELIMITER", ","),
            token_placement=os.getenv("ESI_TOKEN_PLACEMENT", "header"),
            timeout=float(os.getenv("ESI_TIMEOUT", "10")),
        )

    def get_callback_url(self) -> str:
        """Generate the callback URL from the public base URL."""
        return f"{self.base_url.rstrip('/')}/auth/{PROVIDER_NAME}/callback"

    def is_configured(self) -> bool:
        """Check if client credentials are configured."""
        return bool(self.client_id and self.client_secret)

    def resolve_client(
        self, override: ClientOverride | None = None
    ) -> tuple[str | None, str | None]:
        """Return the client id and secret to use for one request."""
        if override is not None and override.is_complete():
            return override.client_id, override.client_secret
        return self.client_id, self.client_secret


@lru_cache()
def get_esi_config() -> ESIConfig:
    """Get ESI configuration singleton."""
    config = ESIConfig.from_env()
    if config.is_configured():
        logger.info("Loaded ESI OAuth configuration")
    else:
        logger.warning("ESI OAuth not configured (missing credentials)")
    return config
