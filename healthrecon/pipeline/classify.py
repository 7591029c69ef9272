"""
NewsClassifier — attributes unattributed news documents to accounts.

For each processed news document without an owner, the completion service
picks one slug from the account roster (or null). Only slugs that are on
the roster are accepted. Any failure for one document is logged and that
document is left for the next pass.
"""

import logging
from typing import Dict, List, Optional

from ..schemas import Account, ClassifyResult, Document
from .deps import PipelineDeps

logger = logging.getLogger(__name__)

CLASSIFY_SYSTEM_PROMPT = (
    "Classify a news article: given the article text and a list of health systems, return the slug "
    "of the system the article most likely refers to. Return null if none. "
    "Only return valid JSON with a 'slug' field (string or null)."
)

TRUNCATION_MARKER = "\n\n[Content truncated...]"


def cap_text(text: str, max_chars: int) -> str:
    if len(text) > max_chars:
        return text[:max_chars] + TRUNCATION_MARKER
    return text


def build_classify_prompt(roster: List[Account], text: str) -> str:
    roster_lines = "\n".join(f"{a.slug}: {a.name}" for a in roster)
    return f"Available systems:\n{roster_lines}\n\nArticle:\n{text}"


def parse_slug(raw: Dict, valid_slugs: set) -> Optional[str]:
    """Return the trimmed slug if it names a roster account, else None."""
    slug = raw.get("slug") if isinstance(raw, dict) else None
    if not isinstance(slug, str):
        return None
    slug = slug.strip()
    if not slug or slug.lower() in ("none", "null"):
        return None
    return slug if slug in valid_slugs else None


class NewsClassifier:
    def __init__(self, deps: PipelineDeps):
        self.deps = deps

    async def classify_pending(self, page_size: Optional[int] = None) -> ClassifyResult:
        """One pass over the whole unattributed news backlog.

        Candidates are read newest first in pages of `page_size` (default
        CLASSIFY_BATCH_LIMIT), each page continuing after the last row of the
        previous one, so every candidate is visited once per pass. Failure to
        load a page or the roster propagates (StoreReadFailure); everything
        after that is isolated per document.
        """
        page_size = page_size or self.deps.settings.classify_batch_limit
        store = self.deps.store

        roster: Optional[List[Account]] = None
        valid_slugs: set = set()
        classified = total = 0
        cursor = None
        while True:
            candidates = await store.list_unattributed_news(page_size, cursor)
            if not candidates:
                break

            if roster is None:
                roster = await store.list_accounts()
                valid_slugs = {a.slug for a in roster}
                if not roster:
                    logger.info("Classify: candidates pending but no accounts to attribute to")

            total += len(candidates)
            if roster:
                for doc in candidates:
                    try:
                        if await self._classify_one(doc, roster, valid_slugs):
                            classified += 1
                    except Exception as e:
                        logger.warning(f"Classification failed for document {doc.id}: {e}")

            if len(candidates) < page_size:
                break
            last = candidates[-1]
            cursor = (last.crawled_at, last.id)

        if total:
            logger.info(f"Classify: {classified}/{total} news document(s) attributed")
        return ClassifyResult(classified=classified, total=total)

    async def _classify_one(self, doc: Document, roster: List[Account], valid_slugs: set) -> bool:
        if not doc.raw_text or not doc.raw_text.strip():
            return False

        text = cap_text(doc.raw_text, self.deps.settings.classify_max_text_chars)
        raw = await self.deps.llm.generate_json(
            build_classify_prompt(roster, text), system_prompt=CLASSIFY_SYSTEM_PROMPT,
        )
        slug = parse_slug(raw, valid_slugs)
        if slug is None:
            logger.debug(f"Classify {doc.id}: no match")
            return False

        account = await self.deps.store.find_account_by_slug(slug)
        if account is None:
            return False

        await self.deps.store.update_document_owner(doc.id, account.id)
        logger.info(f"Classify {doc.id}: attributed to {slug}")
        return True
