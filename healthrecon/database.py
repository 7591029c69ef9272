"""
SQLite/Postgres database — stores accounts, crawl seeds, documents and run logs.

Tables:
  - accounts: Tracked organizations (read-only to the pipeline)
  - account_seeds: Crawl entry points per account (read-only to the pipeline)
  - news_sources: Global news sites crawled into unattributed documents
  - documents: Crawled content, unique per (dedup_scope, content_hash)
  - document_embeddings: One vector per document (write-once)
  - entities / signals: Structured output of the document processor
  - daily_briefings: Generated per-account briefings
  - pipeline_runs: Append-only audit log of every pipeline execution
"""

import json
import logging
import threading
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import (
    create_engine, Column, String, Integer, Text, Date, DateTime, Boolean,
    ForeignKey, Index, UniqueConstraint, and_, or_,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager, nullcontext

from .config import get_settings
from .schemas import (
    Account, Seed, NewsSource, NewDocument, Document, ExtractedEntity, ExtractedSignal,
    Signal, PipelineRunEntry, SourceType, RunKind, RunStatus, SkipReason, UNATTRIBUTED_SCOPE,
)

logger = logging.getLogger(__name__)

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores DateTime without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def dedup_scope_for(account_id: Optional[str]) -> str:
    """Dedup scope key: the owning account id, or the shared unattributed scope."""
    return account_id or UNATTRIBUTED_SCOPE


# ── Models ───────────────────────────────────────────────────────────────────

class AccountModel(Base):
    """Tracked organization (health system)."""
    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    slug = Column(String(100), unique=True, nullable=False)
    name = Column(String(300), nullable=False)
    website = Column(String(500))
    hq_city = Column(String(100))
    hq_state = Column(String(100))
    created_at = Column(DateTime, default=_utcnow)


class SeedModel(Base):
    """Crawl entry point owned by one account."""
    __tablename__ = "account_seeds"
    __table_args__ = (
        Index("ix_account_seeds_account_priority", "account_id", "priority"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    url = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    label = Column(String(200))
    priority = Column(Integer)
    last_crawled_at = Column(DateTime)
    created_at = Column(DateTime, default=_utcnow)


class NewsSourceModel(Base):
    __tablename__ = "news_sources"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(200), nullable=False)
    url = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)


class DocumentModel(Base):
    """Crawled or externally-sourced content."""
    __tablename__ = "documents"
    __table_args__ = (
        # One fingerprint per account scope (NULL account -> "unattributed")
        UniqueConstraint("dedup_scope", "content_hash", name="uq_documents_scope_hash"),
        Index("ix_documents_crawled_at", "crawled_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    dedup_scope = Column(String(36), nullable=False)
    source_url = Column(Text, nullable=False)
    source_type = Column(String(20), nullable=False)  # website | news
    title = Column(Text)
    raw_text = Column(Text)
    content_hash = Column(String(64), nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
    crawled_at = Column(DateTime, default=_utcnow)


class DocumentEmbeddingModel(Base):
    __tablename__ = "document_embeddings"

    id = Column(String(36), primary_key=True, default=_new_id)
    document_id = Column(
        String(36), ForeignKey("documents.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    embedding = Column(Text, nullable=False)  # JSON array
    dim = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class EntityModel(Base):
    __tablename__ = "entities"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    type = Column(String(50), nullable=False)
    name = Column(String(300), nullable=False)
    role = Column(String(200))
    attributes = Column(Text)  # JSON object
    source_document_id = Column(String(36), ForeignKey("documents.id"), index=True)
    created_at = Column(DateTime, default=_utcnow)


class SignalModel(Base):
    __tablename__ = "signals"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    document_id = Column(String(36), ForeignKey("documents.id"), index=True)
    severity = Column(String(20), nullable=False)
    category = Column(String(50), nullable=False)
    summary = Column(Text)
    details = Column(Text)  # JSON object
    created_at = Column(DateTime, default=_utcnow)


class DailyBriefingModel(Base):
    __tablename__ = "daily_briefings"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    summary = Column(Text, nullable=False)  # JSON {bullets, narrative}
    briefing_date = Column(Date, nullable=False, index=True)  # UTC day the briefing covers
    created_at = Column(DateTime, default=_utcnow)


class PipelineRunModel(Base):
    """Pipeline run history (append-only)."""
    __tablename__ = "pipeline_runs"

    id = Column(String(36), primary_key=True, default=_new_id)
    kind = Column(String(30), nullable=False)
    account_id = Column(String(36), index=True)  # NULL = all accounts / unattributed scope
    status = Column(String(30), nullable=False)  # success | error | no_recent_activity
    counts = Column(Text)  # JSON object
    error_message = Column(Text)
    skip_reason = Column(String(50))
    created_at = Column(DateTime, default=_utcnow)


# ── Row -> record converters ─────────────────────────────────────────────────

def _account(row: AccountModel) -> Account:
    return Account(
        id=row.id, slug=row.slug, name=row.name,
        website=row.website, hq_city=row.hq_city, hq_state=row.hq_state,
    )


def _seed(row: SeedModel) -> Seed:
    return Seed(
        id=row.id, account_id=row.account_id, url=row.url, active=row.active,
        label=row.label, priority=row.priority, last_crawled_at=row.last_crawled_at,
    )


def _document(row: DocumentModel) -> Document:
    return Document(
        id=row.id,
        account_id=row.account_id,
        source_url=row.source_url,
        source_type=SourceType(row.source_type),
        title=row.title,
        raw_text=row.raw_text,
        content_hash=row.content_hash,
        processed=bool(row.processed),
        crawled_at=row.crawled_at,
    )


def _signal(row: SignalModel) -> Signal:
    return Signal(
        id=row.id, account_id=row.account_id, document_id=row.document_id,
        severity=row.severity, category=row.category, summary=row.summary or "",
        created_at=row.created_at,
    )


# ── Database class ───────────────────────────────────────────────────────────

class Database:
    """Database manager — singleton, lazy-initialized."""

    def __init__(self, database_url: Optional[str] = None):
        settings = get_settings()
        url = database_url or settings.database_url
        if "aiosqlite" in url:
            url = url.replace("sqlite+aiosqlite", "sqlite")

        kwargs: Dict[str, Any] = {"echo": False}
        shared_connection = False
        if url.startswith("sqlite"):
            # Sessions are opened from worker threads (see store.SqlStore)
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
                shared_connection = True

        self.engine = create_engine(url, **kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)
        # In-memory SQLite is one connection shared by every thread: one session at a time
        self._session_lock = threading.RLock() if shared_connection else nullcontext()

    def create_tables(self):
        """Create all tables (safe to call multiple times)."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Session:
        with self._session_lock:
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # ── Accounts & seeds (admin / seeding only) ───────────────────────

    def add_account(self, slug: str, name: str, **fields) -> Account:
        with self.get_session() as session:
            row = AccountModel(slug=slug, name=name, **fields)
            session.add(row)
            session.flush()
            return _account(row)

    def add_seed(self, account_id: str, url: str, active: bool = True, **fields) -> Seed:
        with self.get_session() as session:
            row = SeedModel(account_id=account_id, url=url, active=active, **fields)
            session.add(row)
            session.flush()
            return _seed(row)

    def add_news_source(self, name: str, url: str, active: bool = True) -> NewsSource:
        with self.get_session() as session:
            row = NewsSourceModel(name=name, url=url, active=active)
            session.add(row)
            session.flush()
            return NewsSource(id=row.id, name=row.name, url=row.url, active=row.active)

    def find_account_by_slug(self, slug: str) -> Optional[Account]:
        with self.get_session() as session:
            row = session.query(AccountModel).filter_by(slug=slug).first()
            return _account(row) if row else None

    def list_accounts(self) -> List[Account]:
        with self.get_session() as session:
            rows = session.query(AccountModel).order_by(AccountModel.slug).all()
            return [_account(r) for r in rows]

    def list_accounts_with_active_seeds(self) -> List[Account]:
        with self.get_session() as session:
            active_ids = session.query(SeedModel.account_id).filter(SeedModel.active.is_(True))
            rows = (
                session.query(AccountModel)
                .filter(AccountModel.id.in_(active_ids))
                .order_by(AccountModel.slug)
                .all()
            )
            return [_account(r) for r in rows]

    def list_active_seeds(self, account_id: str) -> List[Seed]:
        """Active seeds in insertion order (no priority ordering enforced)."""
        with self.get_session() as session:
            rows = (
                session.query(SeedModel)
                .filter(SeedModel.account_id == account_id, SeedModel.active.is_(True))
                .order_by(SeedModel.created_at, SeedModel.id)
                .all()
            )
            return [_seed(r) for r in rows]

    def list_active_news_sources(self) -> List[NewsSource]:
        with self.get_session() as session:
            rows = (
                session.query(NewsSourceModel)
                .filter(NewsSourceModel.active.is_(True))
                .order_by(NewsSourceModel.created_at, NewsSourceModel.id)
                .all()
            )
            return [NewsSource(id=r.id, name=r.name, url=r.url, active=r.active) for r in rows]

    # ── Documents ─────────────────────────────────────────────────────

    def find_document_by_fingerprint(self, account_id: Optional[str], content_hash: str) -> Optional[Document]:
        with self.get_session() as session:
            row = (
                session.query(DocumentModel)
                .filter_by(dedup_scope=dedup_scope_for(account_id), content_hash=content_hash)
                .first()
            )
            return _document(row) if row else None

    def insert_document(self, doc: NewDocument) -> Optional[Document]:
        """Insert a document. Returns None if the (scope, fingerprint) guard rejects it."""
        try:
            with self.get_session() as session:
                row = DocumentModel(
                    account_id=doc.account_id,
                    dedup_scope=dedup_scope_for(doc.account_id),
                    source_url=doc.source_url,
                    source_type=doc.source_type.value,
                    title=doc.title,
                    raw_text=doc.raw_text,
                    content_hash=doc.content_hash,
                )
                session.add(row)
                session.flush()
                return _document(row)
        except IntegrityError:
            logger.info(f"Duplicate fingerprint {doc.content_hash[:12]} in scope {dedup_scope_for(doc.account_id)}")
            return None

    def update_document_owner(self, document_id: str, account_id: str) -> bool:
        """Attribute a document (and anything extracted from it) to an account."""
        with self.get_session() as session:
            row = session.query(DocumentModel).filter_by(id=document_id).first()
            if row is None:
                return False
            row.account_id = account_id
            row.dedup_scope = dedup_scope_for(account_id)
            session.query(EntityModel).filter(
                EntityModel.source_document_id == document_id, EntityModel.account_id.is_(None),
            ).update({EntityModel.account_id: account_id}, synchronize_session=False)
            session.query(SignalModel).filter(
                SignalModel.document_id == document_id, SignalModel.account_id.is_(None),
            ).update({SignalModel.account_id: account_id}, synchronize_session=False)
            return True

    def list_unattributed_news(
        self,
        limit: Optional[int] = None,
        after: Optional[Tuple[datetime, str]] = None,
    ) -> List[Document]:
        """Processed news documents with no owning account, newest first.

        `after` is the (crawled_at, id) of the last row of the previous page.
        Keyset paging stays stable while earlier rows are attributed and
        drop out of the set.
        """
        with self.get_session() as session:
            q = session.query(DocumentModel).filter(
                DocumentModel.source_type == SourceType.NEWS.value,
                DocumentModel.account_id.is_(None),
                DocumentModel.processed.is_(True),
            )
            if after is not None:
                crawled_at, doc_id = after
                crawled_at = _naive_utc(crawled_at)
                q = q.filter(or_(
                    DocumentModel.crawled_at < crawled_at,
                    and_(DocumentModel.crawled_at == crawled_at, DocumentModel.id < doc_id),
                ))
            q = q.order_by(DocumentModel.crawled_at.desc(), DocumentModel.id.desc())
            if limit:
                q = q.limit(limit)
            return [_document(r) for r in q.all()]

    def list_unprocessed_documents(self, account_id: Optional[str], limit: int = 3) -> List[Document]:
        with self.get_session() as session:
            q = session.query(DocumentModel).filter(DocumentModel.processed.is_(False))
            if account_id is None:
                q = q.filter(DocumentModel.account_id.is_(None))
            else:
                q = q.filter(DocumentModel.account_id == account_id)
            rows = q.order_by(DocumentModel.crawled_at).limit(limit).all()
            return [_document(r) for r in rows]

    def mark_document_processed(self, document_id: str):
        with self.get_session() as session:
            session.query(DocumentModel).filter_by(id=document_id).update(
                {DocumentModel.processed: True}, synchronize_session=False,
            )

    def list_documents(
        self,
        account_id: Optional[str] = None,
        source_type: Optional[SourceType] = None,
        unattributed: bool = False,
    ) -> List[Document]:
        """Query documents with optional filters."""
        with self.get_session() as session:
            q = session.query(DocumentModel)
            if unattributed:
                q = q.filter(DocumentModel.account_id.is_(None))
            elif account_id:
                q = q.filter(DocumentModel.account_id == account_id)
            if source_type:
                q = q.filter(DocumentModel.source_type == source_type.value)
            rows = q.order_by(DocumentModel.crawled_at).all()
            return [_document(r) for r in rows]

    def list_recent_documents(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Document]:
        with self.get_session() as session:
            q = session.query(DocumentModel).filter(
                DocumentModel.account_id == account_id,
                DocumentModel.crawled_at >= _naive_utc(since),
            )
            if until is not None:
                q = q.filter(DocumentModel.crawled_at < _naive_utc(until))
            return [_document(r) for r in q.order_by(DocumentModel.crawled_at.desc()).all()]

    # ── Embeddings ────────────────────────────────────────────────────

    def list_documents_missing_embedding(self, limit: int) -> List[Document]:
        """Newest documents that have no embedding row yet."""
        with self.get_session() as session:
            rows = (
                session.query(DocumentModel)
                .outerjoin(DocumentEmbeddingModel, DocumentEmbeddingModel.document_id == DocumentModel.id)
                .filter(DocumentEmbeddingModel.id.is_(None))
                .order_by(DocumentModel.crawled_at.desc(), DocumentModel.id)
                .limit(limit)
                .all()
            )
            return [_document(r) for r in rows]

    def insert_embedding(self, document_id: str, vector: List[float]):
        with self.get_session() as session:
            session.add(DocumentEmbeddingModel(
                document_id=document_id,
                embedding=json.dumps(vector),
                dim=len(vector),
            ))

    def get_embedding(self, document_id: str) -> Optional[List[float]]:
        with self.get_session() as session:
            row = session.query(DocumentEmbeddingModel).filter_by(document_id=document_id).first()
            return json.loads(row.embedding) if row else None

    # ── Entities & signals ────────────────────────────────────────────

    def insert_entity(self, account_id: Optional[str], document_id: str, entity: ExtractedEntity) -> str:
        with self.get_session() as session:
            row = EntityModel(
                account_id=account_id,
                type=entity.type,
                name=entity.name,
                role=entity.role,
                attributes=json.dumps(entity.attributes) if entity.attributes else None,
                source_document_id=document_id,
            )
            session.add(row)
            session.flush()
            return row.id

    def insert_signal(self, account_id: Optional[str], document_id: str, signal: ExtractedSignal) -> str:
        with self.get_session() as session:
            row = SignalModel(
                account_id=account_id,
                document_id=document_id,
                severity=signal.severity,
                category=signal.category,
                summary=signal.summary,
                details=json.dumps(signal.details) if signal.details else None,
            )
            session.add(row)
            session.flush()
            return row.id

    def list_recent_signals(
        self, account_id: str, since: datetime, until: Optional[datetime] = None,
    ) -> List[Signal]:
        with self.get_session() as session:
            q = session.query(SignalModel).filter(
                SignalModel.account_id == account_id,
                SignalModel.created_at >= _naive_utc(since),
            )
            if until is not None:
                q = q.filter(SignalModel.created_at < _naive_utc(until))
            return [_signal(r) for r in q.order_by(SignalModel.created_at.desc()).all()]

    # ── Briefings ─────────────────────────────────────────────────────

    def find_briefing_for_date(self, account_id: str, briefing_date: date) -> Optional[str]:
        with self.get_session() as session:
            row = (
                session.query(DailyBriefingModel.id)
                .filter(
                    DailyBriefingModel.account_id == account_id,
                    DailyBriefingModel.briefing_date == briefing_date,
                )
                .first()
            )
            return row[0] if row else None

    def insert_briefing(self, account_id: str, payload: Dict[str, Any], briefing_date: date) -> str:
        with self.get_session() as session:
            row = DailyBriefingModel(
                account_id=account_id,
                summary=json.dumps(payload),
                briefing_date=briefing_date,
            )
            session.add(row)
            session.flush()
            return row.id

    # ── Pipeline runs ─────────────────────────────────────────────────

    def append_run_log(self, entry: PipelineRunEntry) -> str:
        with self.get_session() as session:
            row = PipelineRunModel(
                kind=entry.kind.value,
                account_id=entry.account_id,
                status=entry.status.value,
                counts=json.dumps(entry.counts),
                error_message=entry.error_message,
                skip_reason=entry.skip_reason.value if entry.skip_reason else None,
            )
            if entry.created_at:
                row.created_at = _naive_utc(entry.created_at)
            session.add(row)
            session.flush()
            return row.id

    def list_run_logs(
        self,
        account_id: Optional[str] = None,
        kind: Optional[RunKind] = None,
        limit: int = 20,
    ) -> List[PipelineRunEntry]:
        """Recent run-log rows, newest first."""
        with self.get_session() as session:
            q = session.query(PipelineRunModel)
            if account_id:
                q = q.filter(PipelineRunModel.account_id == account_id)
            if kind:
                q = q.filter(PipelineRunModel.kind == kind.value)
            rows = q.order_by(PipelineRunModel.created_at.desc()).limit(limit).all()
            return [
                PipelineRunEntry(
                    kind=RunKind(r.kind),
                    status=RunStatus(r.status),
                    account_id=r.account_id,
                    counts=json.loads(r.counts) if r.counts else {},
                    error_message=r.error_message,
                    skip_reason=SkipReason(r.skip_reason) if r.skip_reason else None,
                    created_at=r.created_at,
                )
                for r in rows
            ]


# ── Singleton ────────────────────────────────────────────────────────────────

_db: Optional[Database] = None


def get_database() -> Database:
    """Get or create database instance."""
    global _db
    if _db is None:
        _db = Database()
        _db.create_tables()
    return _db
