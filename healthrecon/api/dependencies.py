"""FastAPI dependency injection -- Depends() patterns using app.state from lifespan."""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request

from ..config import get_settings
from ..pipeline.deps import PipelineDeps


def get_deps(request: Request) -> PipelineDeps:
    return request.app.state.deps


async def verify_cron_secret(
    authorization: Annotated[Optional[str], Header()] = None,
):
    """Bearer gate for job triggers. Empty CRON_SECRET env var = dev mode (all requests pass)."""
    secret = get_settings().cron_secret
    if secret and authorization != f"Bearer {secret}":
        raise HTTPException(status_code=401, detail="unauthorized")


# Type alias for cleaner route signatures
Deps = Annotated[PipelineDeps, Depends(get_deps)]
