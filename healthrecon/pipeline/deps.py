"""
Shared dependency container for pipeline components.

Every component receives a PipelineDeps and reaches the store and the
external-service clients through properties (lazy init on first use).
Tests build one with fakes via PipelineDeps(...) keyword arguments.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class PipelineDeps:
    """Store + crawl/completion/embedding clients, created lazily."""

    settings: Settings = field(default_factory=get_settings, repr=False)
    mock_mode: bool = False

    _store: Optional[object] = field(default=None, repr=False)
    _crawler: Optional[object] = field(default=None, repr=False)
    _llm: Optional[object] = field(default=None, repr=False)
    _embedder: Optional[object] = field(default=None, repr=False)
    _run_log: Optional[object] = field(default=None, repr=False)

    @classmethod
    def create(cls, mock_mode: bool = False, settings: Optional[Settings] = None) -> PipelineDeps:
        """Create deps with settings-aware mock_mode."""
        settings = settings or get_settings()
        return cls(settings=settings, mock_mode=mock_mode or settings.mock_mode)

    # ── Lazy properties ──────────────────────────────────────────────

    @property
    def store(self):
        if self._store is None:
            from ..store import SqlStore
            self._store = SqlStore()
        return self._store

    @property
    def crawler(self):
        if self._crawler is None:
            from ..tools.crawl_client import FirecrawlClient
            self._crawler = FirecrawlClient(settings=self.settings, mock_mode=self.mock_mode)
        return self._crawler

    @property
    def llm(self):
        if self._llm is None:
            from ..tools.llm_service import LLMService
            self._llm = LLMService(settings=self.settings, mock_mode=self.mock_mode)
        return self._llm

    @property
    def embedder(self):
        if self._embedder is None:
            from ..tools.embeddings import EmbeddingService
            self._embedder = EmbeddingService(settings=self.settings, mock_mode=self.mock_mode)
        return self._embedder

    @property
    def run_log(self):
        if self._run_log is None:
            from .run_log import RunLog
            self._run_log = RunLog(self.store)
        return self._run_log
