"""
BriefingGenerator — daily per-account briefing, used as a scheduler unit operation.

One briefing per account per UTC day. Accounts with no signals and no
documents in the lookback window are reported as no_recent_activity
rather than sent to the model.
"""

import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from pydantic import ValidationError

from ..errors import CompletionError
from ..schemas import (
    Account, BriefingPayload, Document, RunStatus, Signal, SkipReason, UnitOutcome,
)
from .deps import PipelineDeps

logger = logging.getLogger(__name__)

BRIEFING_SYSTEM_PROMPT = (
    "You are a briefing assistant summarizing healthcare system activity. Respond with concise JSON."
)


def start_of_day(target: date) -> datetime:
    return datetime.combine(target, time.min, tzinfo=timezone.utc)


def build_briefing_prompt(account: Account, signals: List[Signal], documents: List[Document], hours: int) -> str:
    signal_lines = "\n".join(f"- [{s.category}] ({s.severity}) {s.summary or ''}" for s in signals)
    document_lines = "\n".join(f"- {d.title or 'Untitled'} ({d.source_url})" for d in documents)
    return "\n\n".join([
        f"System: {account.name}",
        f"Signals from last {hours} hours:",
        signal_lines or "- None",
        f"Documents from last {hours} hours:",
        document_lines or "- None",
        "Produce a JSON object with keys `bullets` (array of short bullet strings) and "
        "`narrative` (succinct paragraph). Be specific and avoid repetition.",
    ])


class BriefingGenerator:
    def __init__(self, deps: PipelineDeps, target_date: Optional[date] = None):
        self.deps = deps
        self.target_date = target_date

    async def __call__(self, account: Account) -> UnitOutcome:
        return await self.generate(account)

    async def generate(self, account: Account) -> UnitOutcome:
        """Brief one account for the target UTC day.

        The lookback window ends at the end of the target day, or now when
        the target is today, so a past date is briefed from that day's data.
        """
        store = self.deps.store
        now = datetime.now(timezone.utc)
        target = self.target_date or now.date()

        existing = await store.find_briefing_for_date(account.id, target)
        if existing:
            logger.info(f"Briefing {account.slug}: already exists for {target.isoformat()}")
            return UnitOutcome(
                status=RunStatus.NO_RECENT_ACTIVITY,
                skip_reason=SkipReason.ALREADY_EXISTS,
                metrics={"briefing_id": existing},
            )

        hours = self.deps.settings.briefing_lookback_hours
        until = min(now, start_of_day(target + timedelta(days=1)))
        since = until - timedelta(hours=hours)
        signals, documents = await asyncio.gather(
            store.list_recent_signals(account.id, since, until),
            store.list_recent_documents(account.id, since, until),
        )
        if not signals and not documents:
            logger.info(f"Briefing {account.slug}: no recent activity")
            return UnitOutcome(
                status=RunStatus.NO_RECENT_ACTIVITY,
                skip_reason=SkipReason.NO_RECENT_ACTIVITY,
            )

        raw = await self.deps.llm.generate_json(
            build_briefing_prompt(account, signals, documents, hours),
            system_prompt=BRIEFING_SYSTEM_PROMPT,
        )
        try:
            payload = BriefingPayload.model_validate(raw)
        except ValidationError as e:
            raise CompletionError(f"model_response_unexpected: {e.error_count()} validation error(s)") from e

        briefing_id = await store.insert_briefing(account.id, payload.model_dump(), target)
        logger.info(f"Briefing {account.slug}: stored {briefing_id} ({len(payload.bullets)} bullets)")
        return UnitOutcome(
            status=RunStatus.SUCCESS,
            metrics={
                "briefing_id": briefing_id,
                "signals": len(signals),
                "documents": len(documents),
            },
        )
