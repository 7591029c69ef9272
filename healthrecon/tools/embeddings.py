"""
Embedding service client (OpenAI-compatible /embeddings endpoint).

One HTTP call per batch. The response is re-ordered by its `index` field
and then validated as an (N, dim) matrix before anything is returned, so
the i-th vector always belongs to the i-th input text.

IMPORTANT: the document_embeddings column is fixed at EMBEDDING_DIM. A
model that returns another dimension fails the whole batch instead of
storing vectors that downstream similarity search cannot compare.
"""

import hashlib
import logging
from typing import List, Optional

import httpx
import numpy as np

from ..config import Settings, get_settings
from ..errors import EmbeddingServiceError, ServiceMisconfigured

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Async client for batch text embeddings."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        mock_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.mock_mode = mock_mode or self.settings.mock_mode
        self._transport = transport

    @property
    def embedding_dim(self) -> int:
        return self.settings.embedding_dim

    async def embed(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts, one vector per input, in input order."""
        if not texts:
            return []
        if self.mock_mode:
            return [self._mock_vector(t) for t in texts]
        if not self.settings.openai_api_key:
            raise ServiceMisconfigured("Embedding service", "OPENAI_API_KEY")

        url = f"{self.settings.openai_base_url.rstrip('/')}/embeddings"
        payload = {"model": self.settings.embedding_model, "input": texts}
        headers = {"Authorization": f"Bearer {self.settings.openai_api_key}"}
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.embedding_timeout, transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingServiceError(
                f"Embedding request failed: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

        return self._parse_response(body, expected=len(texts))

    def _parse_response(self, body: dict, expected: int) -> List[List[float]]:
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            raise EmbeddingServiceError("Embedding response has no data array")
        if len(data) != expected:
            raise EmbeddingServiceError(
                f"Embedding count mismatch: sent {expected} texts, got {len(data)} vectors"
            )

        # Service may return items out of order; `index` is authoritative
        try:
            ordered = sorted(data, key=lambda item: item["index"])
            matrix = np.asarray([item["embedding"] for item in ordered], dtype=np.float64)
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingServiceError(f"Malformed embedding response: {e}") from e

        if [item["index"] for item in ordered] != list(range(expected)):
            raise EmbeddingServiceError("Embedding response indices do not cover the batch")
        if matrix.ndim != 2 or matrix.shape[1] != self.embedding_dim:
            raise EmbeddingServiceError(
                f"Expected {expected}x{self.embedding_dim} embeddings, got shape {matrix.shape}"
            )
        if not np.isfinite(matrix).all():
            raise EmbeddingServiceError("Embedding response contains non-finite values")

        return matrix.tolist()

    def _mock_vector(self, text: str) -> List[float]:
        """Deterministic unit vector seeded from the text."""
        seed = int(hashlib.sha256(text.encode("utf-8")).hexdigest()[:8], 16)
        vec = np.random.default_rng(seed).standard_normal(self.embedding_dim)
        norm = np.linalg.norm(vec)
        return (vec / norm).tolist() if norm > 0 else vec.tolist()
