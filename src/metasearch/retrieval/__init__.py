"""Retrieval components."""

from .files import ChromaFileChunkStore, FileChunkStore, JsonFileChunkStore
from .reranker import MAX_RERANKED_DOCUMENTS, Reranker
from .similarity import compute_similarity

__all__ = [
    "ChromaFileChunkStore",
    "FileChunkStore",
    "JsonFileChunkStore",
    "MAX_RERANKED_DOCUMENTS",
    "Reranker",
    "compute_similarity",
]
