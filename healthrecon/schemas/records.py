"""
Stored records as seen by the pipeline.

The store hands these out instead of ORM rows so pipeline code never holds
a live session. Account and Seed are read-only here; Document and
DocumentEmbedding are written only by the pipeline.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .base import RunKind, RunStatus, SkipReason, SourceType


class Account(BaseModel):
    """A tracked organization (health system)."""
    id: str
    slug: str
    name: str
    website: Optional[str] = None
    hq_city: Optional[str] = None
    hq_state: Optional[str] = None


class Seed(BaseModel):
    """A crawl entry point owned by one account."""
    id: str
    account_id: str
    url: str
    active: bool = True
    label: Optional[str] = None
    priority: Optional[int] = None
    last_crawled_at: Optional[datetime] = None


class NewsSource(BaseModel):
    """A global news site crawled into unattributed documents."""
    id: str
    name: str
    url: str
    active: bool = True


class NewDocument(BaseModel):
    """Insert payload for a crawled page."""
    account_id: Optional[str] = None
    source_url: str
    source_type: SourceType
    title: Optional[str] = None
    raw_text: str
    content_hash: str


class Document(BaseModel):
    id: str
    account_id: Optional[str] = None
    source_url: str
    source_type: SourceType
    title: Optional[str] = None
    raw_text: Optional[str] = None
    content_hash: str
    processed: bool = False
    crawled_at: Optional[datetime] = None

    @property
    def embedding_text(self) -> str:
        """Text submitted to the embedding service."""
        return f"{self.title or ''}\n\n{self.raw_text or ''}"


class ExtractedEntity(BaseModel):
    """Entity pulled out of a document by the processor."""
    type: str
    name: str
    role: Optional[str] = None
    attributes: Optional[Dict[str, Any]] = None


class ExtractedSignal(BaseModel):
    """Signal pulled out of a document by the processor."""
    severity: str = "medium"
    category: str = "strategy"
    summary: str = ""
    details: Optional[Dict[str, Any]] = None

    @field_validator("severity", "category", mode="before")
    @classmethod
    def _lowercase(cls, v):
        if v is None:
            return v
        return str(v).strip().lower()


class ExtractionResult(BaseModel):
    """Expected shape of the processor's model output."""
    entities: List[ExtractedEntity] = Field(default_factory=list)
    signals: List[ExtractedSignal] = Field(default_factory=list)

    @field_validator("entities", "signals", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []


class Signal(BaseModel):
    id: str
    account_id: Optional[str] = None
    document_id: Optional[str] = None
    severity: str
    category: str
    summary: str = ""
    created_at: Optional[datetime] = None


class PipelineRunEntry(BaseModel):
    """One append-only audit row."""
    kind: RunKind
    status: RunStatus
    account_id: Optional[str] = None  # None = run across all accounts / unattributed scope
    counts: Dict[str, int] = Field(default_factory=dict)
    error_message: Optional[str] = None
    skip_reason: Optional[SkipReason] = None
    created_at: Optional[datetime] = None

    @field_validator("error_message")
    @classmethod
    def _truncate(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and len(v) > 500:
            return v[:500]
        return v
