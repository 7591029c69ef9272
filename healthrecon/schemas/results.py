"""
Structured results returned by every pipeline entry point.

Each result distinguishes "nothing to do" (zero counts, no error) from
"processed N of M" from "hard failure" (an exception, never a result).
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import RunStatus, SkipReason


class IngestResult(BaseModel):
    created: int = 0


class NewsIngestResult(BaseModel):
    sources: int = 0
    created: int = 0


class ProcessResult(BaseModel):
    processed: int = 0
    attempted: int = 0


class ClassifyResult(BaseModel):
    classified: int = 0
    total: int = 0


class EmbedResult(BaseModel):
    embedded: int = 0          # rows attempted (best-effort)
    failed_inserts: int = 0
    batches: int = 0


class BriefingPayload(BaseModel):
    """Model output for a daily briefing."""
    bullets: List[str]
    narrative: str

    @field_validator("bullets", mode="before")
    @classmethod
    def _strip_bullets(cls, v):
        if not isinstance(v, list):
            raise ValueError("bullets must be a list")
        return [str(b).strip() for b in v if str(b).strip()]


class UnitOutcome(BaseModel):
    """What a unit operation reports back to the scheduler for one account."""
    status: RunStatus = RunStatus.SUCCESS
    metrics: Dict[str, Any] = Field(default_factory=dict)
    skip_reason: Optional[SkipReason] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


class UnitResult(BaseModel):
    slug: str
    success: bool
    skipped: bool = False
    reason: Optional[str] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class RunSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    results: List[UnitResult] = Field(default_factory=list)


class AccountPipelineResult(BaseModel):
    """Ingest + process for one account."""
    slug: str
    ingest: IngestResult = Field(default_factory=IngestResult)
    process: ProcessResult = Field(default_factory=ProcessResult)
    error: Optional[str] = None          # ingest_failed | process_failed
    error_message: Optional[str] = None
