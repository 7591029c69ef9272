"""
Schemas package — all data models for the HealthRecon content pipeline.

Models are organized in submodules:
  - base.py: enums (SourceType, RunStatus, RunKind, SkipReason)
  - records.py: stored records (Account, Seed, NewsSource, Document, Signal, PipelineRunEntry)
  - results.py: entry-point results (IngestResult, ClassifyResult, EmbedResult, RunSummary, ...)
"""

from healthrecon.schemas.base import (
    SourceType, RunStatus, RunKind, SkipReason, UNATTRIBUTED_SCOPE,
)

from healthrecon.schemas.records import (
    Account, Seed, NewsSource, NewDocument, Document,
    ExtractedEntity, ExtractedSignal, ExtractionResult, Signal, PipelineRunEntry,
)

from healthrecon.schemas.results import (
    IngestResult, NewsIngestResult, ProcessResult, ClassifyResult, EmbedResult,
    BriefingPayload, UnitOutcome, UnitResult, RunSummary, AccountPipelineResult,
)

__all__ = [
    # base
    "SourceType", "RunStatus", "RunKind", "SkipReason", "UNATTRIBUTED_SCOPE",
    # records
    "Account", "Seed", "NewsSource", "NewDocument", "Document",
    "ExtractedEntity", "ExtractedSignal", "ExtractionResult", "Signal", "PipelineRunEntry",
    # results
    "IngestResult", "NewsIngestResult", "ProcessResult", "ClassifyResult", "EmbedResult",
    "BriefingPayload", "UnitOutcome", "UnitResult", "RunSummary", "AccountPipelineResult",
]
