"""
FastAPI application hosting the ESI authentication strategy.

This module wires dependencies and configures the application.
The strategy lives in esi_auth/core, the ESI client in esi_auth/infrastructure.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import UTC, datetime

# Configure logging FIRST, before other local imports
from esi_auth.logging_config import setup_global_logging

setup_global_logging()

# Now import other modules (they will use the configured logging)
from fastapi import FastAPI, Request, status  # noqa: E402
from fastapi.responses import JSONResponse  # noqa: E402

from esi_auth.core.exceptions import InvalidStateError  # noqa: E402
from esi_auth.oauth import router as auth_router  # noqa: E402
from esi_auth.oauth.config import get_esi_config  # noqa: E402

logger = logging.getLogger(__name__)


# ============================================================================
# Application Lifecycle
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Loads the ESI configuration at startup so missing credentials show up
    in the logs immediately.
    """
    logger.info("Application starting up...")
    get_esi_config()
    yield
    logger.info("Shutting down application...")


app = FastAPI(
    title="ESI Auth",
    description="EVE Online SSO authentication strategy",
    version="0.1.0",
    lifespan=lifespan,
)


# ============================================================================
# Centralized Exception Handlers
# ============================================================================


@app.exception_handler(InvalidStateError)
async def invalid_state_error_handler(request: Request, exc: InvalidStateError):
    """
    Handle reads of auth results outside a completed callback.

    This is a programming error in the host, so it is a 500.
    """
    logger.error(f"Invalid strategy state: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "message": "Authentication result not available",
        },
    )


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "esi-auth",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/health")
async def health():
    """Health check endpoint for Cloud Run."""
    return {"status": "healthy"}


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(auth_router.router)


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
