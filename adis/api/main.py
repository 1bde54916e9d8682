"""ADIS FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from adis import __version__
from adis.api.auth import SlidingWindowRateLimiter, request_logging_middleware
from adis.config import get_config
from adis.services import close_services, get_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle handler."""
    config = get_config()

    if not config.demo_mode and not config.api_key:
        logger.critical("ADIS_API_KEY is not set. Set it in .env or export it. Use ADIS_DEMO_MODE=true to skip.")
        sys.exit(1)

    services = get_services()
    if not services.ledger.is_available:
        logger.warning("Ledger unavailable at startup; verification will report NOT_VERIFIED")

    logger.info("ADIS API starting - ledger=%s storage=%s", services.ledger.name, config.storage_root)
    yield
    close_services()
    logger.info("ADIS API shutdown - services closed")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    app = FastAPI(
        title="ADIS API",
        description="Academic Document Integrity Service - issuance and ledger-anchored verification",
        version=__version__,
        lifespan=lifespan,
    )

    config = get_config()

    # CORS - restricted to configured origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # Request logging and X-Request-ID middleware
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_logging_middleware)

    app.state.rate_limiter = SlidingWindowRateLimiter(
        max_requests=config.rate_limit_per_minute,
        sweep_interval=config.rate_limit_sweep_seconds,
    )

    # Import and include routers
    from adis.api.routes.documents import router as documents_router
    from adis.api.routes.drafts import router as drafts_router
    from adis.api.routes.health import router as health_router
    from adis.api.routes.verification import router as verification_router

    app.include_router(health_router)
    app.include_router(documents_router)
    app.include_router(drafts_router)
    app.include_router(verification_router)

    return app


app = create_app()
