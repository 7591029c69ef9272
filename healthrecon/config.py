"""
Configuration management for the HealthRecon content pipeline.

All settings come from environment variables (or a local .env file).
External services: Firecrawl (crawl), OpenAI (completions + embeddings).
"""

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Completion service (OpenAI via pydantic-ai) ──
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4.1-mini", alias="OPENAI_MODEL")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    llm_temperature: float = Field(default=0.2, alias="LLM_TEMPERATURE")

    # ── Embedding service ──
    # text-embedding-3-small produces 1536-dim vectors (document_embeddings.embedding)
    embedding_model: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL")
    embedding_dim: int = Field(default=1536, alias="EMBEDDING_DIM")
    embedding_timeout: float = Field(default=60.0, alias="EMBEDDING_TIMEOUT")

    # ── Crawl service (Firecrawl) ──
    firecrawl_api_key: str = Field(default="", alias="FIRECRAWL_API_KEY")
    firecrawl_base_url: str = Field(default="https://api.firecrawl.dev", alias="FIRECRAWL_BASE_URL")
    # Per-request timeout in seconds. The pipeline itself imposes no deadline.
    firecrawl_timeout: float = Field(default=120.0, alias="FIRECRAWL_TIMEOUT")
    firecrawl_max_pages: int = Field(default=0, alias="FIRECRAWL_MAX_PAGES")  # 0 = service default
    firecrawl_max_depth: int = Field(default=0, alias="FIRECRAWL_MAX_DEPTH")  # 0 = service default

    # ── Batch scheduler ──
    # Sequential by default: the crawl and completion services are rate-limited.
    # Raise SCHEDULER_CONCURRENCY to process N accounts at once.
    ingest_pacing_seconds: float = Field(default=1.0, alias="INGEST_PACING_SECONDS")
    briefing_pacing_seconds: float = Field(default=2.0, alias="BRIEFING_PACING_SECONDS")
    scheduler_concurrency: int = Field(default=1, alias="SCHEDULER_CONCURRENCY")

    # ── Classification / processing / embedding windows ──
    # Page size only: one classify pass pages through the whole backlog
    classify_batch_limit: int = Field(default=100, alias="CLASSIFY_BATCH_LIMIT")
    # 20k chars ~= 5k tokens
    classify_max_text_chars: int = Field(default=20_000, alias="CLASSIFY_MAX_TEXT_CHARS")
    process_batch_limit: int = Field(default=3, alias="PROCESS_BATCH_LIMIT")
    embed_batch_size: int = Field(default=10, alias="EMBED_BATCH_SIZE")
    embed_max_batches: int = Field(default=1, alias="EMBED_MAX_BATCHES")
    briefing_lookback_hours: int = Field(default=24, alias="BRIEFING_LOOKBACK_HOURS")

    # ── Trigger surface ──
    # Empty CRON_SECRET = dev mode (all requests pass)
    cron_secret: str = Field(default="", alias="CRON_SECRET")

    mock_mode: bool = Field(default=False, alias="MOCK_MODE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database
    database_url: str = Field(
        default="sqlite:///./healthrecon.db",
        alias="DATABASE_URL"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def crawl_configured(self) -> bool:
        return bool(self.firecrawl_api_key) or self.mock_mode

    @property
    def llm_configured(self) -> bool:
        return bool(self.openai_api_key) or self.mock_mode

    def get_crawl_options(self) -> dict:
        """Optional Firecrawl request parameters (only those explicitly set)."""
        options = {}
        if self.firecrawl_max_pages:
            options["maxPages"] = self.firecrawl_max_pages
        if self.firecrawl_max_depth:
            options["maxDepth"] = self.firecrawl_max_depth
        return options


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
