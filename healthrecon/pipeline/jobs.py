"""
Job entry points — parameterless callables for the cron router and CLI.

Each job wires a component to PipelineDeps, runs it, and records the
outcome in RunLog. Per-account jobs go through BatchScheduler, which
records one entry per account; global jobs record one entry per call.
"""

import logging
from datetime import date
from typing import Optional

from ..errors import AccountNotFound
from ..schemas import (
    Account, AccountPipelineResult, ClassifyResult, EmbedResult, IngestResult,
    NewsIngestResult, ProcessResult, RunKind, RunStatus, RunSummary, UnitOutcome,
)
from .briefing import BriefingGenerator
from .classify import NewsClassifier
from .deps import PipelineDeps
from .embed import EmbeddingBackfill
from .ingest import CrawlOrchestrator
from .process import DocumentProcessor
from .scheduler import BatchScheduler, accounts_with_active_seeds, all_accounts

logger = logging.getLogger(__name__)


def _deps(deps: Optional[PipelineDeps]) -> PipelineDeps:
    return deps or PipelineDeps.create()


# ── Per-account batches ──────────────────────────────────────────────

async def run_daily_ingest(deps: Optional[PipelineDeps] = None) -> RunSummary:
    """Ingest every account that has active seeds."""
    deps = _deps(deps)
    orchestrator = CrawlOrchestrator(deps)

    async def ingest_unit(account: Account) -> UnitOutcome:
        result = await orchestrator.ingest(account.slug)
        return UnitOutcome(metrics={"created": result.created})

    scheduler = BatchScheduler(
        deps.run_log,
        RunKind.INGEST,
        pacing_seconds=deps.settings.ingest_pacing_seconds,
        concurrency=deps.settings.scheduler_concurrency,
    )
    accounts = await accounts_with_active_seeds(deps.store)
    return await scheduler.run_for_all(ingest_unit, accounts)


async def run_daily_briefings(
    target_date: Optional[date] = None,
    deps: Optional[PipelineDeps] = None,
) -> RunSummary:
    """Generate today's (or target_date's) briefing for every account."""
    deps = _deps(deps)
    scheduler = BatchScheduler(
        deps.run_log,
        RunKind.BRIEFING,
        pacing_seconds=deps.settings.briefing_pacing_seconds,
        concurrency=deps.settings.scheduler_concurrency,
    )
    accounts = await all_accounts(deps.store)
    return await scheduler.run_for_all(BriefingGenerator(deps, target_date), accounts)


# ── Global jobs ──────────────────────────────────────────────────────

async def run_news_ingest(deps: Optional[PipelineDeps] = None) -> NewsIngestResult:
    deps = _deps(deps)
    try:
        result = await CrawlOrchestrator(deps).ingest_news()
    except Exception as e:
        await deps.run_log.record(RunKind.NEWS_INGEST, RunStatus.ERROR, error=str(e))
        raise
    await deps.run_log.record(RunKind.NEWS_INGEST, RunStatus.SUCCESS, counts=result.model_dump())
    return result


async def run_classify_news(deps: Optional[PipelineDeps] = None) -> ClassifyResult:
    """Process pending unattributed documents, then attribute news to accounts."""
    deps = _deps(deps)
    try:
        processed = await DocumentProcessor(deps).process(None)
        result = await NewsClassifier(deps).classify_pending()
    except Exception as e:
        await deps.run_log.record(RunKind.CLASSIFY, RunStatus.ERROR, error=str(e))
        raise
    await deps.run_log.record(
        RunKind.CLASSIFY,
        RunStatus.SUCCESS,
        counts={**result.model_dump(), "processed": processed.processed},
    )
    return result


async def run_embed_backfill(deps: Optional[PipelineDeps] = None) -> EmbedResult:
    deps = _deps(deps)
    try:
        result = await EmbeddingBackfill(deps).embed_pending()
    except Exception as e:
        await deps.run_log.record(RunKind.EMBED, RunStatus.ERROR, error=str(e))
        raise
    await deps.run_log.record(RunKind.EMBED, RunStatus.SUCCESS, counts=result.model_dump())
    return result


async def run_account_pipeline(slug: str, deps: Optional[PipelineDeps] = None) -> AccountPipelineResult:
    """Ingest then process one account; each stage's failure is captured separately."""
    deps = _deps(deps)
    account = await deps.store.find_account_by_slug(slug)
    if account is None:
        raise AccountNotFound(slug)

    result = AccountPipelineResult(slug=slug)
    try:
        result.ingest = await CrawlOrchestrator(deps).ingest(slug)
    except Exception as e:
        logger.error(f"Pipeline ingest error for {slug}: {e}")
        result.ingest = IngestResult()
        result.error, result.error_message = "ingest_failed", str(e)

    try:
        result.process = await DocumentProcessor(deps).process(account.id)
    except Exception as e:
        logger.error(f"Pipeline process error for {slug}: {e}")
        result.process = ProcessResult()
        result.error, result.error_message = "process_failed", str(e)

    await deps.run_log.record(
        RunKind.PIPELINE,
        RunStatus.ERROR if result.error else RunStatus.SUCCESS,
        account_id=account.id,
        counts={
            "ingest_created": result.ingest.created,
            "process_processed": result.process.processed,
        },
        error=result.error_message,
    )
    return result
