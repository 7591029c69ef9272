# External-service clients and pure helpers
from .hashing import hash_text
from .crawl_client import FirecrawlClient, CrawlPage, CrawlResult
from .llm_service import LLMService
from .embeddings import EmbeddingService

__all__ = [
    "hash_text",
    # Crawl
    "FirecrawlClient",
    "CrawlPage",
    "CrawlResult",
    # Completion & embeddings
    "LLMService",
    "EmbeddingService",
]
