"""
Shared fixtures: in-memory database, fake crawl/embedding services, and an
LLMService driven by a pydantic-ai FunctionModel.
"""

import asyncio
from typing import Callable, Dict, List, Optional

import pytest
from pydantic_ai.messages import ModelResponse, SystemPromptPart, TextPart, UserPromptPart
from pydantic_ai.models.function import FunctionModel

from healthrecon.config import Settings
from healthrecon.database import Database
from healthrecon.errors import EmbeddingServiceError, ServiceMisconfigured
from healthrecon.pipeline.deps import PipelineDeps
from healthrecon.store import SqlStore
from healthrecon.tools.crawl_client import CrawlPage, CrawlResult
from healthrecon.tools.llm_service import LLMService

TEST_DIM = 8


def run(coro):
    return asyncio.run(coro)


# ── Fakes ────────────────────────────────────────────────────────────

class FakeCrawler:
    """Crawl service stand-in. Responses are keyed by URL.

    A value may be a CrawlResult, a list of pages (success=True), or an
    Exception instance to raise.
    """

    def __init__(self, responses: Optional[Dict] = None, available: bool = True):
        self.responses = responses or {}
        self.available = available
        self.calls: List[str] = []

    def require_configured(self):
        if not self.available:
            raise ServiceMisconfigured("Firecrawl API key", "FIRECRAWL_API_KEY")

    async def crawl(self, url: str) -> CrawlResult:
        self.calls.append(url)
        response = self.responses.get(url, [])
        if isinstance(response, Exception):
            raise response
        if isinstance(response, CrawlResult):
            return response
        return CrawlResult(success=True, pages=response)


class FakeEmbedder:
    """Embedding service stand-in; the vector is a pure function of the text."""

    def __init__(self, dim: int = TEST_DIM, drop: int = 0, fail: bool = False):
        self.dim = dim
        self.drop = drop
        self.fail = fail
        self.batches: List[List[str]] = []

    def vector_for(self, text: str) -> List[float]:
        codes = [float(ord(c)) for c in text.strip()[: self.dim]]
        return codes + [0.0] * (self.dim - len(codes))

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.batches.append(list(texts))
        if self.fail:
            raise EmbeddingServiceError("embedding service unavailable")
        vectors = [self.vector_for(t) for t in texts]
        return vectors[: len(vectors) - self.drop] if self.drop else vectors


def page(content: Optional[str], url: Optional[str] = None, title: Optional[str] = None) -> CrawlPage:
    return CrawlPage(url=url, title=title, content=content)


def make_llm(settings: Settings, responder: Callable[[str, str], str]) -> LLMService:
    """LLMService whose model answers with responder(prompt, system_prompt)."""

    def _model_fn(messages, info):
        prompt, system = "", ""
        for msg in messages:
            for part in getattr(msg, "parts", []):
                if isinstance(part, UserPromptPart) and isinstance(part.content, str):
                    prompt = part.content
                elif isinstance(part, SystemPromptPart):
                    system = part.content
        return ModelResponse(parts=[TextPart(content=responder(prompt, system))])

    return LLMService(settings=settings, model=FunctionModel(_model_fn))


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(
        OPENAI_API_KEY="sk-test",
        FIRECRAWL_API_KEY="fc-test",
        FIRECRAWL_BASE_URL="https://crawl.test",
        OPENAI_BASE_URL="https://llm.test/v1",
        EMBEDDING_DIM=TEST_DIM,
        INGEST_PACING_SECONDS=0,
        BRIEFING_PACING_SECONDS=0,
        SCHEDULER_CONCURRENCY=1,
        CRON_SECRET="",
        MOCK_MODE=False,
        DATABASE_URL="sqlite://",
    )


@pytest.fixture
def db() -> Database:
    database = Database("sqlite://")
    database.create_tables()
    yield database
    database.engine.dispose()


@pytest.fixture
def store(db) -> SqlStore:
    return SqlStore(db)


@pytest.fixture
def crawler() -> FakeCrawler:
    return FakeCrawler()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def llm(settings) -> LLMService:
    return make_llm(settings, lambda prompt, system: '{"slug": null}')


@pytest.fixture
def deps(settings, store, crawler, embedder, llm) -> PipelineDeps:
    return PipelineDeps(
        settings=settings,
        _store=store,
        _crawler=crawler,
        _llm=llm,
        _embedder=embedder,
    )


@pytest.fixture
def add_account(db):
    """add_account(slug, name=None, seeds=(), inactive_seeds=()) -> Account"""

    def _add(slug: str, name: Optional[str] = None, seeds=(), inactive_seeds=()):
        account = db.add_account(slug, name or slug.replace("-", " ").title())
        for url in seeds:
            db.add_seed(account.id, url)
        for url in inactive_seeds:
            db.add_seed(account.id, url, active=False)
        return account

    return _add
