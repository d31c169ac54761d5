"""FastAPI application factory for the contentgraph server."""

import secrets
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from starlette import status

from contentgraph import __version__
from contentgraph.backend.config import SecurityMode, get_config
from contentgraph.backend.services import shutdown_services
from contentgraph.log_config import get_logger

log = get_logger("backend.app")

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_api_key(api_key: str | None = Security(api_key_header)) -> str | None:
    """Verify API key if authentication is required.

    Returns the API key if valid, raises 401 if invalid when auth is required.
    """
    config = get_config()

    if not config.require_auth:
        return None

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    # Constant-time comparison
    if not config.api_key or not secrets.compare_digest(api_key, config.api_key):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    return api_key


def _log_security_mode() -> None:
    config = get_config()
    if config.mode == SecurityMode.DEV:
        log.warning("Running in DEV mode: authentication disabled, verbose errors enabled")
        log.warning(f"Host binding: {config.host}. Set CONTENTGRAPH_MODE=prod for deployments")
    else:
        log.info(
            f"Running in PROD mode: authentication "
            f"{'REQUIRED' if config.require_auth else 'disabled'}, verbose errors "
            f"{'enabled' if config.verbose_errors else 'DISABLED'}, host {config.host}"
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    _log_security_mode()
    app.state.config = get_config()

    yield

    shutdown_services()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    config = get_config()

    app = FastAPI(
        title="contentgraph",
        description="Graph mirror of content, tags and similarity edges",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions with mode-aware verbosity."""
        cfg = get_config()
        if cfg.verbose_errors:
            log.exception(f"Unhandled exception: {exc}")
            return JSONResponse(
                status_code=500,
                content={"detail": str(exc), "type": type(exc).__name__},
            )
        log.error(f"Internal error (sanitized): {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    from contentgraph.backend.api import router as api_router

    dependencies = [Depends(verify_api_key)] if config.require_auth else []
    app.include_router(api_router, prefix="/api/v1", dependencies=dependencies)

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint for load balancers."""
        cfg = get_config()
        return {
            "status": "healthy",
            "service": "contentgraph",
            "mode": cfg.mode.value,
        }

    return app
