"""
Exception taxonomy for the content pipeline.

Fatal-to-call errors abort a single operation and propagate to the caller.
Service errors are raised by the external-service clients; the pipeline
catches them per unit (seed, document, account) and keeps going.
"""


class PipelineError(Exception):
    """Base class for all pipeline errors."""


# ── Fatal to the call ────────────────────────────────────────────────

class AccountNotFound(PipelineError):
    def __init__(self, slug: str):
        super().__init__(f"Account not found: {slug}")
        self.slug = slug


class NoActiveSeeds(PipelineError):
    def __init__(self, slug: str):
        super().__init__(f"No active seed URLs found for account: {slug}")
        self.slug = slug


class NoActiveSources(PipelineError):
    def __init__(self):
        super().__init__("No active news sources found")


class ServiceMisconfigured(PipelineError):
    """A required service credential is absent."""

    def __init__(self, service: str, setting: str):
        super().__init__(f"{service} is not configured (set {setting})")
        self.service = service
        self.setting = setting


class StoreReadFailure(PipelineError):
    """The store could not enumerate records."""


class StoreWriteFailure(PipelineError):
    """A single insert/update was rejected by the store."""


# ── External services ────────────────────────────────────────────────

class CrawlServiceError(PipelineError):
    """Crawl request failed (HTTP error, timeout, malformed payload)."""


class CompletionError(PipelineError):
    """The completion service returned nothing usable."""


class EmbeddingServiceError(PipelineError):
    """Embedding request failed or returned a misaligned batch."""
