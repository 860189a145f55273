"""Web search backends."""

from .base import (
    SearchBackend,
    SearchBackendError,
    SearchError,
    SearchResponse,
    SearchResult,
    SearchUnavailableError,
)
from .brightdata import BrightDataSearchBackend
from .parallel import ParallelSearchBackend
from .searxng import SearxngSearchBackend
from .service import FallbackSearchService

__all__ = [
    "BrightDataSearchBackend",
    "FallbackSearchService",
    "ParallelSearchBackend",
    "SearchBackend",
    "SearchBackendError",
    "SearchError",
    "SearchResponse",
    "SearchResult",
    "SearchUnavailableError",
    "SearxngSearchBackend",
]
