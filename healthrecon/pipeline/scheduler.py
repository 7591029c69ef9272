"""
BatchScheduler — runs one unit operation for every eligible account.

Failure is isolated per account: an exception becomes a failed UnitResult
and the batch moves on. Each invocation writes exactly one RunLog entry.

Sequential by default with a pacing delay between accounts (the crawl and
completion services are rate-limited). concurrency > 1 runs a bounded
pool; each slot still pauses between its accounts and results stay in
account order.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List

from ..schemas import Account, RunKind, RunStatus, RunSummary, UnitOutcome, UnitResult
from .run_log import RunLog

logger = logging.getLogger(__name__)

UnitOperation = Callable[[Account], Awaitable[UnitOutcome]]


# ── Eligible-account enumerators ─────────────────────────────────────

async def accounts_with_active_seeds(store) -> List[Account]:
    """Accounts that own at least one active seed (ingestion)."""
    return await store.list_accounts_with_active_seeds()


async def all_accounts(store) -> List[Account]:
    """Every account (briefings)."""
    return await store.list_accounts()


def _int_counts(metrics: dict) -> dict:
    return {k: v for k, v in metrics.items() if isinstance(v, int) and not isinstance(v, bool)}


class BatchScheduler:
    def __init__(
        self,
        run_log: RunLog,
        kind: RunKind,
        pacing_seconds: float = 0.0,
        concurrency: int = 1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.run_log = run_log
        self.kind = kind
        self.pacing_seconds = pacing_seconds
        self.concurrency = max(1, concurrency)
        self._sleep = sleep

    async def run_for_all(self, unit_operation: UnitOperation, accounts: List[Account]) -> RunSummary:
        if not accounts:
            logger.info(f"{self.kind.value}: no eligible accounts")
            return RunSummary()

        logger.info(
            f"{self.kind.value}: {len(accounts)} account(s), "
            f"concurrency={self.concurrency}, pacing={self.pacing_seconds}s"
        )
        if self.concurrency == 1:
            results = await self._run_sequential(unit_operation, accounts)
        else:
            results = await self._run_pooled(unit_operation, accounts)

        summary = RunSummary(
            total=len(results),
            successful=sum(1 for r in results if r.success and not r.skipped),
            failed=sum(1 for r in results if not r.success),
            skipped=sum(1 for r in results if r.skipped),
            results=results,
        )
        logger.info(
            f"{self.kind.value}: {summary.successful} ok, {summary.skipped} skipped, "
            f"{summary.failed} failed of {summary.total}"
        )
        return summary

    async def _run_sequential(self, unit_operation: UnitOperation, accounts: List[Account]) -> List[UnitResult]:
        results = []
        for i, account in enumerate(accounts):
            results.append(await self._run_unit(unit_operation, account))
            if i < len(accounts) - 1 and self.pacing_seconds > 0:
                await self._sleep(self.pacing_seconds)
        return results

    async def _run_pooled(self, unit_operation: UnitOperation, accounts: List[Account]) -> List[UnitResult]:
        semaphore = asyncio.Semaphore(self.concurrency)
        last = len(accounts) - 1

        async def _slot(i: int, account: Account) -> UnitResult:
            async with semaphore:
                result = await self._run_unit(unit_operation, account)
                if i < last and self.pacing_seconds > 0:
                    await self._sleep(self.pacing_seconds)
                return result

        return list(await asyncio.gather(*(_slot(i, a) for i, a in enumerate(accounts))))

    async def _run_unit(self, unit_operation: UnitOperation, account: Account) -> UnitResult:
        try:
            outcome = await unit_operation(account)
        except Exception as e:
            logger.error(f"{self.kind.value} failed for {account.slug}: {e}")
            await self.run_log.record(self.kind, RunStatus.ERROR, account_id=account.id, error=str(e))
            return UnitResult(slug=account.slug, success=False, error=str(e))

        await self.run_log.record(
            self.kind,
            outcome.status,
            account_id=account.id,
            counts=_int_counts(outcome.metrics),
            skip_reason=outcome.skip_reason,
        )
        return UnitResult(
            slug=account.slug,
            success=True,
            skipped=outcome.skipped,
            reason=outcome.skip_reason.value if outcome.skip_reason else None,
            metrics=outcome.metrics,
        )
