"""
Common enums used across the pipeline.

These define the vocabulary of the system: where a document came from,
which pipeline wrote a run-log row, and how that run ended.
"""

from enum import Enum


class SourceType(str, Enum):
    """Where a document came from."""
    WEBSITE = "website"   # crawled from an account's own seed URLs
    NEWS = "news"         # crawled from a global news source, unattributed until classified


class RunStatus(str, Enum):
    """Terminal state of one unit-operation invocation."""
    SUCCESS = "success"
    ERROR = "error"
    NO_RECENT_ACTIVITY = "no_recent_activity"


class RunKind(str, Enum):
    """Which pipeline produced a run-log entry."""
    INGEST = "ingest"
    NEWS_INGEST = "news_ingest"
    PROCESS = "process"
    PIPELINE = "pipeline"        # ingest + process for one account
    CLASSIFY = "classify"
    EMBED = "embed"
    BRIEFING = "briefing"


class SkipReason(str, Enum):
    """Why a unit operation declined to act."""
    NO_RECENT_ACTIVITY = "no_recent_activity"
    ALREADY_EXISTS = "briefing_already_exists"


# Scope key used for documents with no owning account
UNATTRIBUTED_SCOPE = "unattributed"
