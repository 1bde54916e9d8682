"""Health check endpoint."""

import logging

from fastapi import APIRouter

from adis.api.models import HealthResponse
from adis.services import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health():
    """Check ledger availability and return store stats."""
    services = get_services()
    ledger_stats: dict = {}
    documents = 0

    try:
        ledger_stats = services.ledger.stats()
    except Exception:
        logger.warning("Ledger stats check failed", exc_info=True)

    try:
        documents = services.store.count()
    except Exception:
        logger.warning("Document store count failed", exc_info=True)

    ledger_ok = services.ledger.is_available
    return HealthResponse(
        status="healthy" if ledger_ok else "degraded",
        ledger_available=ledger_ok,
        ledger=ledger_stats,
        documents_stored=documents,
        demo_mode=services.config.demo_mode,
    )
