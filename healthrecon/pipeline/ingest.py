"""
CrawlOrchestrator — crawls an account's seed URLs into deduplicated documents.

Seeds for one account are crawled sequentially: the crawl service is
rate-limited and sequential inserts keep the fingerprint check race-free
within the account. A failing seed is logged and skipped; only the three
preconditions (account, seeds, credential) abort the call.

Also ingests the global news sources into unattributed `news` documents,
which NewsClassifier later attributes to accounts.
"""

import logging
from typing import List, Optional

from ..errors import AccountNotFound, NoActiveSeeds, NoActiveSources
from ..schemas import IngestResult, NewDocument, NewsIngestResult, SourceType
from ..tools.crawl_client import CrawlPage
from ..tools.hashing import hash_text
from .deps import PipelineDeps

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Seed crawl + fingerprint dedup + document insert."""

    def __init__(self, deps: PipelineDeps):
        self.deps = deps

    async def ingest(self, slug: str) -> IngestResult:
        """Crawl every active seed of the account and store new pages.

        Raises AccountNotFound, NoActiveSeeds or ServiceMisconfigured before
        any crawl is attempted. Returns the number of documents created.
        """
        store = self.deps.store
        account = await store.find_account_by_slug(slug)
        if account is None:
            raise AccountNotFound(slug)

        seeds = await store.list_active_seeds(account.id)
        if not seeds:
            raise NoActiveSeeds(slug)

        self.deps.crawler.require_configured()

        created = 0
        for seed in seeds:
            pages = await self._crawl(seed.url)
            for page in pages:
                if await self._store_page(page, seed.url, account.id, SourceType.WEBSITE):
                    created += 1

        logger.info(f"Ingest {slug}: {created} new document(s) from {len(seeds)} seed(s)")
        return IngestResult(created=created)

    async def ingest_news(self) -> NewsIngestResult:
        """Crawl every active news source into unattributed news documents."""
        store = self.deps.store
        sources = await store.list_active_news_sources()
        if not sources:
            raise NoActiveSources()

        self.deps.crawler.require_configured()

        created = 0
        for source in sources:
            pages = await self._crawl(source.url)
            for page in pages:
                if await self._store_page(page, source.url, None, SourceType.NEWS):
                    created += 1

        logger.info(f"News ingest: {created} new document(s) from {len(sources)} source(s)")
        return NewsIngestResult(sources=len(sources), created=created)

    # ── Internal helpers ─────────────────────────────────────────────

    async def _crawl(self, url: str) -> List[CrawlPage]:
        """Crawl one URL; any failure yields no pages."""
        try:
            result = await self.deps.crawler.crawl(url)
        except Exception as e:
            logger.warning(f"Crawl failed for {url}: {e}")
            return []
        if not result.success or not result.pages:
            logger.info(f"Crawl returned no pages for {url}")
            return []
        return result.pages

    async def _store_page(
        self,
        page: CrawlPage,
        fallback_url: str,
        account_id: Optional[str],
        source_type: SourceType,
    ) -> bool:
        """Insert one page unless its fingerprint already exists in scope."""
        if not page.content:
            return False

        content_hash = hash_text(page.content)
        store = self.deps.store
        try:
            if await store.find_document_by_fingerprint(account_id, content_hash):
                return False
            doc = await store.insert_document(NewDocument(
                account_id=account_id,
                source_url=page.url or fallback_url,
                source_type=source_type,
                title=page.title,
                raw_text=page.content,
                content_hash=content_hash,
            ))
        except Exception as e:
            logger.warning(f"Insert failed for {page.url or fallback_url}: {e}")
            return False

        return doc is not None
