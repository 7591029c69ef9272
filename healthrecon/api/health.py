"""Health check router -- database reachability and config summary."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from ..config import get_settings
from .dependencies import Deps

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/")
async def root():
    return {"service": "HealthRecon Pipeline API", "version": "1.0.0"}


@router.get("/health")
async def health(deps: Deps):
    settings = get_settings()

    # Store check is non-blocking: report it, never fail the health check
    try:
        accounts = len(await deps.store.list_accounts())
        database = {"status": "ok", "accounts": accounts}
    except Exception as e:
        logger.warning(f"Health check: store unavailable: {e}")
        database = {"status": "unavailable", "error": str(e)}

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
        "config": {
            "mock_mode": settings.mock_mode,
            "crawl_configured": settings.crawl_configured,
            "llm_configured": settings.llm_configured,
            "embedding_model": settings.embedding_model,
            "scheduler_concurrency": settings.scheduler_concurrency,
            "cron_secret_set": bool(settings.cron_secret),
        },
    }
