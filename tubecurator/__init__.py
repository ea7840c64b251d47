"""Search YouTube, page through results and keep a curated shortlist.

The service itself lives in the ``app`` package; this package names the
pieces most callers need so they can be imported without knowing that
layout.
"""

from __future__ import annotations

from app.curation import CuratedList
from app.errors import (
    CuratorError,
    EmptyQueryError,
    MissingCredentialError,
    PartialDataError,
    UpstreamError,
)
from app.main import app, create_app
from app.models import FilterSelection, ResultItem, ResultPage, SearchFilters
from app.services.aggregator import SearchAggregator
from app.services.youtube import YouTubeClient
from app.session import SearchSession, SessionRegistry

__version__ = "1.0.0"

__all__ = [
    "CuratedList",
    "CuratorError",
    "EmptyQueryError",
    "FilterSelection",
    "MissingCredentialError",
    "PartialDataError",
    "ResultItem",
    "ResultPage",
    "SearchAggregator",
    "SearchFilters",
    "SearchSession",
    "SessionRegistry",
    "UpstreamError",
    "YouTubeClient",
    "app",
    "create_app",
]
