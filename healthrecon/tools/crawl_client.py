"""
Firecrawl crawl client — given a URL, returns zero or more pages of text.

The crawl service is treated as unreliable: `success=False` or an empty
page list is a normal outcome and comes back as a CrawlResult. Transport
failures (HTTP error status, timeout, malformed body) raise
CrawlServiceError; the orchestrator isolates both per seed.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..config import Settings, get_settings
from ..errors import CrawlServiceError, ServiceMisconfigured

logger = logging.getLogger(__name__)


class CrawlPage(BaseModel):
    url: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None


class CrawlResult(BaseModel):
    success: bool = False
    pages: List[CrawlPage] = Field(default_factory=list)
    error: Optional[str] = None


class FirecrawlClient:
    """Thin async wrapper around POST {FIRECRAWL_BASE_URL}/v1/crawl."""

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
    def available(self) -> bool:
        return self.mock_mode or bool(self.settings.firecrawl_api_key)

    def require_configured(self):
        """Raise ServiceMisconfigured when no credential is set."""
        if not self.available:
            raise ServiceMisconfigured("Firecrawl API key", "FIRECRAWL_API_KEY")

    async def crawl(self, url: str) -> CrawlResult:
        if self.mock_mode:
            return self._mock_result(url)
        self.require_configured()

        body: Dict[str, Any] = {"url": url, **self.settings.get_crawl_options()}
        headers = {"Authorization": f"Bearer {self.settings.firecrawl_api_key}"}
        endpoint = f"{self.settings.firecrawl_base_url.rstrip('/')}/v1/crawl"

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.firecrawl_timeout, transport=self._transport,
            ) as client:
                response = await client.post(endpoint, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise CrawlServiceError(f"Firecrawl request timeout for {url}") from e
        except httpx.HTTPError as e:
            raise CrawlServiceError(f"Firecrawl request error for {url}: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Firecrawl request failed for {url}: {response.status_code} {response.text[:200]}")
            raise CrawlServiceError(f"Firecrawl request failed: {response.status_code}")

        try:
            result = CrawlResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise CrawlServiceError(f"Malformed Firecrawl response for {url}: {e}") from e

        if not result.success:
            logger.warning(f"Firecrawl crawl unsuccessful for {url}: {result.error}")
        return result

    def _mock_result(self, url: str) -> CrawlResult:
        return CrawlResult(
            success=True,
            pages=[CrawlPage(
                url=url,
                title=f"Mock page for {url}",
                content=f"Mock crawled content for {url}.",
            )],
        )
