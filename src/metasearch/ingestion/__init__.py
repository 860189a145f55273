"""Link fetching and per-URL document grouping."""

from .fetcher import (
    MAX_CHUNKS_PER_GROUP,
    DocumentFetcher,
    FetchConfig,
    group_documents,
    html_to_text,
    summarize,
)

__all__ = [
    "MAX_CHUNKS_PER_GROUP",
    "DocumentFetcher",
    "FetchConfig",
    "group_documents",
    "html_to_text",
    "summarize",
]
