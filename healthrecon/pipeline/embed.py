"""
EmbeddingBackfill — gives every document exactly one vector embedding.

Candidates come from an anti-join (documents with no embedding row,
newest first), so already-embedded documents never take up the window
and the backlog drains over successive batches.

Vector i is stored for document i of the submitted batch. A batch whose
response count differs from its input count is rejected as a whole.
"""

import logging
from typing import Optional

from ..errors import EmbeddingServiceError
from ..schemas import EmbedResult
from .deps import PipelineDeps

logger = logging.getLogger(__name__)


class EmbeddingBackfill:
    def __init__(self, deps: PipelineDeps):
        self.deps = deps

    async def embed_pending(self, batch_size: Optional[int] = None, max_batches: Optional[int] = None) -> EmbedResult:
        """Embed up to `max_batches` batches of `batch_size` documents.

        `embedded` counts rows attempted; `failed_inserts` counts rows the
        store rejected. EmbeddingServiceError aborts the call.
        """
        settings = self.deps.settings
        batch_size = batch_size or settings.embed_batch_size
        max_batches = max_batches or settings.embed_max_batches
        store = self.deps.store

        result = EmbedResult()
        for _ in range(max_batches):
            docs = await store.list_documents_missing_embedding(batch_size)
            if not docs:
                break

            texts = [doc.embedding_text for doc in docs]
            vectors = await self.deps.embedder.embed(texts)
            if len(vectors) != len(docs):
                raise EmbeddingServiceError(
                    f"Embedding count mismatch: sent {len(docs)} texts, got {len(vectors)} vectors"
                )

            failed = 0
            for doc, vector in zip(docs, vectors):
                try:
                    await store.insert_embedding(doc.id, vector)
                except Exception as e:
                    logger.error(f"Failed to store embedding for {doc.id}: {e}")
                    failed += 1

            result.batches += 1
            result.embedded += len(docs)
            result.failed_inserts += failed
            logger.info(f"Embed batch {result.batches}: {len(docs) - failed}/{len(docs)} stored")

            # Nothing stored: the same rows would come back next iteration
            if failed == len(docs):
                break
            if len(docs) < batch_size:
                break

        return result
