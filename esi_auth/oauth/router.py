"""
ESI authentication endpoints.

Acts as the host middleware for the ESI strategy:
- GET /auth/esi - Start the flow (request phase)
- GET /auth/esi/callback - Handle the provider's redirect (callback phase)

The cleanup phase runs from the strategy dependency after each response.
"""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from esi_auth.oauth.config import ESIConfig, PROVIDER_NAME
from esi_auth.oauth.dependencies import ConfiguredESI, Strategy


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def get_redirect_uri(request: Request, config: ESIConfig) -> str:
    """
    Build the callback URL for the current request.

    BASE_URL wins when set, for deployments behind a proxy that rewrites
    the host.
    """
    if config.base_url:
        return config.get_callback_url()
    return str(request.url_for("esi_callback"))


@router.get(f"/{PROVIDER_NAME}")
async def request_phase(
    request: Request,
    config: ConfiguredESI,
    strategy: Strategy,
    scope: str | None = None,
    state: str | None = None,
):
    """
    Start the ESI authorization flow.

    Redirects the user to ESI's authorization page.

    Args:
        request: Starlette request (for the callback URL)
        config: ESI configuration
        strategy: Strategy for this request
        scope: Requested scopes (defaults to the configured default scope)
        state: Opaque value ESI returns on the callback

    Returns:
        Redirect to ESI's authorization page
    """
    url = strategy.begin(
        scope=scope,
        state=state,
        redirect_uri=get_redirect_uri(request, config),
    )
    return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)


@router.get(f"/{PROVIDER_NAME}/callback", name="esi_callback")
async def callback_phase(
    request: Request,
    config: ConfiguredESI,
    strategy: Strategy,
):
    """
    Handle the callback from ESI.

    Exchanges the authorization code for a token and fetches the
    character identity.

    Args:
        request: Starlette request (contains the code)
        config: ESI configuration
        strategy: Strategy for this request

    Returns:
        The normalized auth result, or the collected failure with a 401
    """
    outcome = await strategy.handle_callback(
        dict(request.query_params),
        redirect_uri=get_redirect_uri(request, config),
    )

    if not outcome.succeeded:
        failure = strategy.failure()
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"status": "error", "failure": failure.model_dump()},
        )

    auth = strategy.auth()
    logger.info(
        "ESI login succeeded",
        extra={"provider": PROVIDER_NAME, "uid": auth.uid},
    )
    return {"status": "success", "auth": auth.model_dump()}
