"""
RunLog — append-only audit trail of pipeline executions.

Every unit invocation (one account's ingest, one briefing, one classify
pass) writes exactly one row to pipeline_runs. Recording never raises:
an audit failure is logged and the pipeline carries on.
"""

import logging
from typing import Dict, Optional

from ..schemas import PipelineRunEntry, RunKind, RunStatus, SkipReason

logger = logging.getLogger(__name__)


class RunLog:
    """Writes PipelineRunEntry rows through the store."""

    def __init__(self, store):
        self.store = store

    async def record(
        self,
        kind: RunKind,
        status: RunStatus,
        account_id: Optional[str] = None,
        counts: Optional[Dict[str, int]] = None,
        error: Optional[str] = None,
        skip_reason: Optional[SkipReason] = None,
    ) -> Optional[PipelineRunEntry]:
        entry = PipelineRunEntry(
            kind=kind,
            status=status,
            account_id=account_id,
            counts=counts or {},
            error_message=error,
            skip_reason=skip_reason,
        )
        try:
            await self.store.append_run_log(entry)
        except Exception as e:
            logger.error(f"RunLog: failed to record {kind.value}/{status.value} for {account_id or 'global'}: {e}")
            return None
        logger.debug(f"RunLog: {kind.value} {status.value} account={account_id} counts={entry.counts}")
        return entry
