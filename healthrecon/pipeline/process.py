"""
DocumentProcessor — extracts entities and signals from unprocessed documents.

A document is marked processed only when every extracted row was stored,
so a partial failure is retried on the next pass. Runs per account, or on
the unattributed scope (account_id=None) so that crawled news becomes
eligible for classification.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..schemas import Document, ExtractionResult, ProcessResult
from .deps import PipelineDeps

logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = (
    "You extract structured entities and signals about a healthcare system from a single webpage. "
    "Return JSON with two arrays: "
    '"entities" (objects with type, name, role, attributes) and '
    '"signals" (objects with severity [low|medium|high], category, summary, details). '
    "Do not include any explanatory text."
)


def build_extraction_prompt(doc: Document) -> str:
    parts = [
        "Extract entities and signals from the following document.",
        f"Title: {doc.title or ''}",
        f"URL: {doc.source_url or ''}",
        f"Document:\n{doc.raw_text or ''}",
    ]
    return "\n\n".join(parts)


class DocumentProcessor:
    def __init__(self, deps: PipelineDeps):
        self.deps = deps

    async def process(self, account_id: Optional[str], limit: Optional[int] = None) -> ProcessResult:
        """Process up to `limit` unprocessed documents in the given scope."""
        limit = limit or self.deps.settings.process_batch_limit
        docs = await self.deps.store.list_unprocessed_documents(account_id, limit)
        if not docs:
            return ProcessResult(processed=0, attempted=0)

        processed = 0
        for doc in docs:
            try:
                if await self._process_one(doc):
                    processed += 1
            except Exception as e:
                logger.error(f"Failed to process document {doc.id}: {e}")

        scope = account_id or "unattributed"
        logger.info(f"Process {scope}: {processed}/{len(docs)} document(s) processed")
        return ProcessResult(processed=processed, attempted=len(docs))

    async def _process_one(self, doc: Document) -> bool:
        raw = await self.deps.llm.generate_json(
            build_extraction_prompt(doc), system_prompt=EXTRACTION_SYSTEM_PROMPT,
        )
        try:
            extraction = ExtractionResult.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Extraction for {doc.id} did not match schema: {e.error_count()} error(s)")
            return False

        store = self.deps.store
        complete = True
        for entity in extraction.entities:
            try:
                await store.insert_entity(doc.account_id, doc.id, entity)
            except Exception as e:
                logger.error(f"Failed to insert entity for {doc.id}: {e}")
                complete = False

        for signal in extraction.signals:
            try:
                await store.insert_signal(doc.account_id, doc.id, signal)
            except Exception as e:
                logger.error(f"Failed to insert signal for {doc.id}: {e}")
                complete = False

        if not complete:
            return False

        await store.mark_document_processed(doc.id)
        return True
