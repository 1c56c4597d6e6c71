"""
FastAPI dependencies for the ESI auth endpoints.

Provides dependency injection for the configuration, the token client and
the per-request strategy.
"""

import logging
from collections.abc import Iterator
from typing import Annotated

from fastapi import Depends, HTTPException, status

from esi_auth.core.ports import AuthStrategy
from esi_auth.core.strategy import ESIStrategy
from esi_auth.infrastructure.esi_client import ESIOAuthClient
from esi_auth.oauth.config import ESIConfig, get_esi_config


logger = logging.getLogger(__name__)


def get_configured_esi(
    config: Annotated[ESIConfig, Depends(get_esi_config)],
) -> ESIConfig:
    """
    Validate that ESI client credentials are configured.

    Raises:
        HTTPException: 503 if client_id or client_secret is missing
    """
    if not config.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Provider 'esi' is not configured",
        )
    return config


def get_token_client(
    config: Annotated[ESIConfig, Depends(get_configured_esi)],
) -> ESIOAuthClient:
    """Provide the ESI token client."""
    return ESIOAuthClient(config)


def get_strategy(
    config: Annotated[ESIConfig, Depends(get_configured_esi)],
    client: Annotated[ESIOAuthClient, Depends(get_token_client)],
) -> Iterator[AuthStrategy]:
    """
    Provide a fresh strategy for the current request.

    The cleanup phase runs once the response has been produced.
    """
    strategy = ESIStrategy(config, client)
    try:
        yield strategy
    finally:
        strategy.cleanup()


# Type aliases for cleaner dependency injection
ConfiguredESI = Annotated[ESIConfig, Depends(get_configured_esi)]
Strategy = Annotated[AuthStrategy, Depends(get_strategy)]
