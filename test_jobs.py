"""Job entry points: global jobs, the one-account pipeline, and their RunLog rows."""

import importlib.util
import json
from pathlib import Path

import pytest

from conftest import FakeEmbedder, make_llm, page, run
from healthrecon.errors import AccountNotFound, EmbeddingServiceError, NoActiveSources, StoreReadFailure
from healthrecon.pipeline.jobs import (
    run_account_pipeline, run_classify_news, run_embed_backfill, run_news_ingest,
)
from healthrecon.schemas import NewDocument, RunKind, RunStatus, SourceType
from healthrecon.tools.hashing import hash_text


def _news_llm(prompt, system):
    if "Available systems" in prompt:
        return json.dumps({"slug": "acme" if "Acme Health" in prompt.partition("Article:")[2] else None})
    return '{"entities": [], "signals": [{"severity": "low", "category": "strategy", "summary": "news"}]}'


# ════════════════════════════════════════════════════════════════════
# Global jobs
# ════════════════════════════════════════════════════════════════════

def test_news_then_classify_attributes_crawled_news(deps, db, settings, crawler, add_account):
    acme = add_account("acme", "Acme Health")
    db.add_news_source("Fierce Healthcare", "https://news.example")
    crawler.responses = {"https://news.example": [
        page("Acme Health signs a value-based care contract.", url="https://news.example/1"),
        page("Hospital margins improve nationally.", url="https://news.example/2"),
    ]}
    deps._llm = make_llm(settings, _news_llm)

    ingested = run(run_news_ingest(deps))
    classified = run(run_classify_news(deps))

    assert ingested.created == 2
    assert (classified.classified, classified.total) == (1, 2)
    assert len(db.list_documents(account_id=acme.id)) == 1

    entry = db.list_run_logs(kind=RunKind.CLASSIFY)[0]
    assert entry.status == RunStatus.SUCCESS
    assert entry.counts == {"classified": 1, "total": 2, "processed": 2}
    assert db.list_run_logs(kind=RunKind.NEWS_INGEST)[0].counts == {"sources": 1, "created": 2}


def test_news_ingest_without_sources_is_recorded_and_raised(deps, db):
    with pytest.raises(NoActiveSources):
        run(run_news_ingest(deps))

    entry = db.list_run_logs(kind=RunKind.NEWS_INGEST)[0]
    assert entry.status == RunStatus.ERROR
    assert "No active news sources" in entry.error_message


def test_embed_job_records_counts(deps, db, crawler, add_account):
    add_account("acme", seeds=["https://acme.example"])
    crawler.responses = {"https://acme.example": [page("one"), page("two")]}
    run(run_account_pipeline("acme", deps))

    result = run(run_embed_backfill(deps))

    assert result.embedded == 2
    assert db.list_run_logs(kind=RunKind.EMBED)[0].counts == {"embedded": 2, "failed_inserts": 0, "batches": 1}


def test_embed_job_failure_is_recorded(deps, db, crawler, add_account):
    add_account("acme", seeds=["https://acme.example"])
    crawler.responses = {"https://acme.example": [page("one")]}
    run(run_account_pipeline("acme", deps))
    deps._embedder = FakeEmbedder(fail=True)

    with pytest.raises(EmbeddingServiceError):
        run(run_embed_backfill(deps))
    assert db.list_run_logs(kind=RunKind.EMBED)[0].status == RunStatus.ERROR


# ════════════════════════════════════════════════════════════════════
# One-account pipeline
# ════════════════════════════════════════════════════════════════════

def test_account_pipeline_ingests_then_processes(deps, db, settings, crawler, add_account):
    acme = add_account("acme", seeds=["https://acme.example"])
    crawler.responses = {"https://acme.example": [page("a"), page("b"), page("c"), page("d")]}
    deps._llm = make_llm(settings, lambda p, s: '{"entities": [], "signals": []}')

    result = run(run_account_pipeline("acme", deps))

    assert result.error is None
    assert result.ingest.created == 4
    assert result.process.processed == settings.process_batch_limit
    entry = db.list_run_logs(account_id=acme.id)[0]
    assert entry.kind == RunKind.PIPELINE
    assert entry.counts == {"ingest_created": 4, "process_processed": 3}


def test_ingest_failure_still_processes_backlog(deps, db, settings, add_account):
    acme = add_account("acme", inactive_seeds=["https://acme.example"])
    db.insert_document(NewDocument(
        account_id=acme.id,
        source_url="https://acme.example/earlier",
        source_type=SourceType.WEBSITE,
        raw_text="crawled last week",
        content_hash=hash_text("crawled last week"),
    ))
    deps._llm = make_llm(settings, lambda p, s: '{"entities": [], "signals": []}')

    result = run(run_account_pipeline("acme", deps))

    assert result.error == "ingest_failed"
    assert "No active seed URLs" in result.error_message
    assert result.ingest.created == 0
    assert result.process.processed == 1
    entry = db.list_run_logs(account_id=acme.id)[0]
    assert entry.status == RunStatus.ERROR
    assert entry.counts == {"ingest_created": 0, "process_processed": 1}


def test_process_failure_is_captured(deps, db, crawler, add_account, monkeypatch):
    add_account("acme", seeds=["https://acme.example"])
    crawler.responses = {"https://acme.example": [page("x")]}

    async def broken(account_id, limit):
        raise StoreReadFailure("list_unprocessed_documents: connection reset")

    monkeypatch.setattr(deps.store, "list_unprocessed_documents", broken)
    result = run(run_account_pipeline("acme", deps))

    assert result.ingest.created == 1
    assert result.error == "process_failed"


def test_unknown_account_raises(deps, db):
    with pytest.raises(AccountNotFound):
        run(run_account_pipeline("missing", deps))
    assert db.list_run_logs() == []


# ════════════════════════════════════════════════════════════════════
# Seed script
# ════════════════════════════════════════════════════════════════════

def _load_seed_script():
    path = Path(__file__).parent / "scripts" / "seed_accounts.py"
    module_spec = importlib.util.spec_from_file_location("seed_accounts", path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_seed_script_is_idempotent(db):
    seed_accounts = _load_seed_script()

    assert seed_accounts.seed(db) == (5, 6, 3)
    assert seed_accounts.seed(db) == (0, 0, 0)
    assert len(db.list_accounts_with_active_seeds()) == 5
    assert len(db.list_active_news_sources()) == 3
