"""
HealthRecon content pipeline - Main Entry Point.
FastAPI server (cron triggers) and CLI interface.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import FastAPI

from .api import cron, health
from .config import get_settings
from .database import get_database
from .errors import PipelineError
from .logging_setup import configure_logging
from .pipeline import jobs
from .pipeline.deps import PipelineDeps

logger = logging.getLogger(__name__)

JOBS = ("daily-ingest", "daily-briefings", "news-ingest", "classify-news", "embed", "pipeline")


def create_app(deps: Optional[PipelineDeps] = None) -> FastAPI:
    """Build the API app. Pass `deps` to run against fakes (tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.deps is None:
            get_database()
            app.state.deps = PipelineDeps.create()
            logger.info("Database initialized")
        settings = get_settings()
        if not settings.cron_secret:
            logger.warning("CRON_SECRET not set: job triggers are unauthenticated (dev mode)")
        yield

    app = FastAPI(
        title="HealthRecon Pipeline",
        description="Content ingestion, classification and embedding pipeline for tracked health systems",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.deps = deps
    app.include_router(health.router)
    app.include_router(cron.router)
    return app


async def run_job(job: str, slug: Optional[str] = None, target_date: Optional[date] = None, mock: bool = False):
    deps = PipelineDeps.create(mock_mode=mock)
    if job == "daily-ingest":
        return await jobs.run_daily_ingest(deps)
    if job == "daily-briefings":
        return await jobs.run_daily_briefings(target_date, deps)
    if job == "news-ingest":
        return await jobs.run_news_ingest(deps)
    if job == "classify-news":
        return await jobs.run_classify_news(deps)
    if job == "embed":
        return await jobs.run_embed_backfill(deps)
    if job == "pipeline":
        if not slug:
            raise ValueError("--slug is required for the pipeline job")
        return await jobs.run_account_pipeline(slug, deps)
    raise ValueError(f"Unknown job: {job}")


# CLI Runner
def cli_main(argv=None) -> int:
    """Command-line interface for running a job once or starting the server."""
    import argparse

    parser = argparse.ArgumentParser(description="HealthRecon content pipeline")
    parser.add_argument("job", nargs="?", choices=JOBS, help="Job to run once")
    parser.add_argument("--slug", help="Account slug (pipeline job)")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        help="Target date YYYY-MM-DD (daily-briefings job; default: today UTC)",
    )
    parser.add_argument("--mock", action="store_true", help="Run in mock mode (no real API calls)")
    parser.add_argument("--server", action="store_true", help="Start the FastAPI server")
    parser.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")

    args = parser.parse_args(argv)
    configure_logging()

    if args.server:
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        uvicorn.run(create_app(), host="0.0.0.0", port=args.port)
        return 0

    if not args.job:
        parser.error("a job name is required unless --server is given")

    get_database()
    try:
        result = asyncio.run(run_job(args.job, slug=args.slug, target_date=args.date, mock=args.mock))
    except (PipelineError, ValueError) as e:
        logger.error(f"{args.job} failed: {e}")
        return 1

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def main():
    """Entry point for CLI."""
    raise SystemExit(cli_main())


if __name__ == "__main__":
    main()
