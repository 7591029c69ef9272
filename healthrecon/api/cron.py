"""Cron router -- job triggers for the scheduled pipeline runs.

Every route is guarded by `Authorization: Bearer <CRON_SECRET>` and returns
the job's result model as JSON. Call-level failures map to HTTP errors:
404 for a missing account / seeds / sources, 500 for configuration and
everything else.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..errors import AccountNotFound, NoActiveSeeds, NoActiveSources, ServiceMisconfigured
from ..pipeline import jobs
from .dependencies import Deps, verify_cron_secret

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


def _http_error(route: str, e: Exception) -> HTTPException:
    if isinstance(e, AccountNotFound):
        return HTTPException(404, {"error": "account_not_found", "message": str(e)})
    if isinstance(e, NoActiveSeeds):
        return HTTPException(404, {"error": "no_active_seeds", "message": str(e)})
    if isinstance(e, NoActiveSources):
        return HTTPException(404, {"error": "no_active_sources", "message": str(e)})
    if isinstance(e, ServiceMisconfigured):
        return HTTPException(500, {"error": "config_error", "message": str(e)})
    logger.error(f"{route} failed: {e}")
    return HTTPException(500, {"error": "cron_failed", "message": str(e)})


@router.get("/cron/daily-ingest")
async def daily_ingest(deps: Deps):
    try:
        summary = await jobs.run_daily_ingest(deps)
    except Exception as e:
        raise _http_error("daily-ingest", e) from e
    return summary.model_dump()


@router.get("/cron/daily-briefings")
async def daily_briefings(deps: Deps, target_date: Optional[date] = None):
    try:
        summary = await jobs.run_daily_briefings(target_date, deps)
    except Exception as e:
        raise _http_error("daily-briefings", e) from e
    return summary.model_dump()


@router.get("/cron/news-ingest")
async def news_ingest(deps: Deps):
    try:
        result = await jobs.run_news_ingest(deps)
    except Exception as e:
        raise _http_error("news-ingest", e) from e
    return result.model_dump()


@router.get("/cron/classify-news")
async def classify_news(deps: Deps):
    try:
        result = await jobs.run_classify_news(deps)
    except Exception as e:
        raise _http_error("classify-news", e) from e
    return result.model_dump()


@router.get("/cron/embed")
async def embed(deps: Deps):
    try:
        result = await jobs.run_embed_backfill(deps)
    except Exception as e:
        raise _http_error("embed", e) from e
    return result.model_dump()


@router.post("/pipeline/{slug}")
async def account_pipeline(slug: str, deps: Deps):
    try:
        result = await jobs.run_account_pipeline(slug, deps)
    except Exception as e:
        raise _http_error("pipeline", e) from e
    return result.model_dump()
