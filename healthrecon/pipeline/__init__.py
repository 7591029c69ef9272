"""
Content pipeline: ingest, process, classify, embed, brief.

Components take a PipelineDeps; jobs.py wires them into entry points.
"""

from .deps import PipelineDeps
from .run_log import RunLog
from .ingest import CrawlOrchestrator
from .process import DocumentProcessor
from .classify import NewsClassifier
from .embed import EmbeddingBackfill
from .briefing import BriefingGenerator
from .scheduler import BatchScheduler, accounts_with_active_seeds, all_accounts

__all__ = [
    "PipelineDeps",
    "RunLog",
    "CrawlOrchestrator",
    "DocumentProcessor",
    "NewsClassifier",
    "EmbeddingBackfill",
    "BriefingGenerator",
    "BatchScheduler",
    "accounts_with_active_seeds",
    "all_accounts",
]
