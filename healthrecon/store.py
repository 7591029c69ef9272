"""
Store — the pipeline's view of the relational database.

Pipeline components only talk to a `Store`. SqlStore implements it on top
of the synchronous SQLAlchemy `Database`, pushing every call onto a worker
thread so the event loop is never blocked by a query.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple

from .database import Database, get_database
from .errors import StoreReadFailure, StoreWriteFailure
from .schemas import (
    Account, Seed, NewsSource, NewDocument, Document,
    ExtractedEntity, ExtractedSignal, Signal, PipelineRunEntry, RunKind,
)

logger = logging.getLogger(__name__)


class Store(Protocol):
    """Request/response contract of the relational store."""

    async def find_account_by_slug(self, slug: str) -> Optional[Account]: ...

    async def list_accounts(self) -> List[Account]: ...

    async def list_accounts_with_active_seeds(self) -> List[Account]: ...

    async def list_active_seeds(self, account_id: str) -> List[Seed]: ...

    async def list_active_news_sources(self) -> List[NewsSource]: ...

    async def find_document_by_fingerprint(
        self, account_id: Optional[str], content_hash: str,
    ) -> Optional[Document]: ...

    async def insert_document(self, doc: NewDocument) -> Optional[Document]: ...

    async def update_document_owner(self, document_id: str, account_id: str) -> None: ...

    async def list_unattributed_news(
        self, limit: Optional[int] = None, after: Optional[Tuple[datetime, str]] = None,
    ) -> List[Document]: ...

    async def list_unprocessed_documents(self, account_id: Optional[str], limit: int) -> List[Document]: ...

    async def mark_document_processed(self, document_id: str) -> None: ...

    async def insert_entity(self, account_id: Optional[str], document_id: str, entity: ExtractedEntity) -> str: ...

    async def insert_signal(self, account_id: Optional[str], document_id: str, signal: ExtractedSignal) -> str: ...

    async def list_documents_missing_embedding(self, limit: int) -> List[Document]: ...

    async def insert_embedding(self, document_id: str, vector: List[float]) -> None: ...

    async def list_recent_signals(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Signal]: ...

    async def list_recent_documents(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Document]: ...

    async def find_briefing_for_date(self, account_id: str, briefing_date: date) -> Optional[str]: ...

    async def insert_briefing(self, account_id: str, payload: Dict[str, Any], briefing_date: date) -> str: ...

    async def append_run_log(self, entry: PipelineRunEntry) -> None: ...

    async def list_run_logs(
        self, account_id: Optional[str] = None, kind: Optional[RunKind] = None, limit: int = 20,
    ) -> List[PipelineRunEntry]: ...


class SqlStore:
    """Store backed by `Database` (SQLAlchemy)."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def _read(self, fn: Callable, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.error(f"Store read {fn.__name__} failed: {e}")
            raise StoreReadFailure(f"{fn.__name__}: {e}") from e

    async def _write(self, fn: Callable, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as e:
            logger.warning(f"Store write {fn.__name__} failed: {e}")
            raise StoreWriteFailure(f"{fn.__name__}: {e}") from e

    # ── Reads ─────────────────────────────────────────────────────────

    async def find_account_by_slug(self, slug: str) -> Optional[Account]:
        return await self._read(self.db.find_account_by_slug, slug)

    async def list_accounts(self) -> List[Account]:
        return await self._read(self.db.list_accounts)

    async def list_accounts_with_active_seeds(self) -> List[Account]:
        return await self._read(self.db.list_accounts_with_active_seeds)

    async def list_active_seeds(self, account_id: str) -> List[Seed]:
        return await self._read(self.db.list_active_seeds, account_id)

    async def list_active_news_sources(self) -> List[NewsSource]:
        return await self._read(self.db.list_active_news_sources)

    async def find_document_by_fingerprint(
        self, account_id: Optional[str], content_hash: str,
    ) -> Optional[Document]:
        return await self._read(self.db.find_document_by_fingerprint, account_id, content_hash)

    async def list_unattributed_news(
        self, limit: Optional[int] = None, after: Optional[Tuple[datetime, str]] = None,
    ) -> List[Document]:
        return await self._read(self.db.list_unattributed_news, limit, after)

    async def list_unprocessed_documents(self, account_id: Optional[str], limit: int) -> List[Document]:
        return await self._read(self.db.list_unprocessed_documents, account_id, limit)

    async def list_documents_missing_embedding(self, limit: int) -> List[Document]:
        return await self._read(self.db.list_documents_missing_embedding, limit)

    async def list_recent_signals(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Signal]:
        return await self._read(self.db.list_recent_signals, account_id, since, until)

    async def list_recent_documents(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Document]:
        return await self._read(self.db.list_recent_documents, account_id, since, until)

    async def find_briefing_for_date(self, account_id: str, briefing_date: date) -> Optional[str]:
        return await self._read(self.db.find_briefing_for_date, account_id, briefing_date)

    async def list_run_logs(
        self, account_id: Optional[str] = None, kind: Optional[RunKind] = None, limit: int = 20,
    ) -> List[PipelineRunEntry]:
        return await self._read(self.db.list_run_logs, account_id, kind, limit)

    # ── Writes ────────────────────────────────────────────────────────

    async def insert_document(self, doc: NewDocument) -> Optional[Document]:
        return await self._write(self.db.insert_document, doc)

    async def update_document_owner(self, document_id: str, account_id: str) -> None:
        found = await self._write(self.db.update_document_owner, document_id, account_id)
        if not found:
            raise StoreWriteFailure(f"update_document_owner: document {document_id} not found")

    async def mark_document_processed(self, document_id: str) -> None:
        await self._write(self.db.mark_document_processed, document_id)

    async def insert_entity(self, account_id: Optional[str], document_id: str, entity: ExtractedEntity) -> str:
        return await self._write(self.db.insert_entity, account_id, document_id, entity)

    async def insert_signal(self, account_id: Optional[str], document_id: str, signal: ExtractedSignal) -> str:
        return await self._write(self.db.insert_signal, account_id, document_id, signal)

    async def insert_embedding(self, document_id: str, vector: List[float]) -> None:
        await self._write(self.db.insert_embedding, document_id, vector)

    async def insert_briefing(self, account_id: str, payload: Dict[str, Any], briefing_date: date) -> str:
        return await self._write(self.db.insert_briefing, account_id, payload, briefing_date)

    async def append_run_log(self, entry: PipelineRunEntry) -> None:
        await self._write(self.db.append_run_log, entry)
