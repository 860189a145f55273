"""Relevance reranking of web documents and uploaded file chunks."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Sequence, TypeVar

from langchain_core.documents import Document

from metasearch.errors import MetaSearchError, ModelProviderError
from metasearch.metrics.observability import PipelineMetrics, get_logger
from metasearch.models import SUMMARIZE_QUERY, FileChunk, OptimizationMode, RankedItem
from metasearch.providers.base import EmbeddingModel
from metasearch.retrieval.similarity import compute_similarity

MAX_RERANKED_DOCUMENTS = 15
MAX_FILE_DOCUMENTS_WITH_WEB = 8

T = TypeVar("T")


class Reranker:
    """Scores candidates against the query by cosine similarity and truncates them.

    ``speed`` (or reranking disabled for the focus mode) only embeds the query and
    compares it with the precomputed file chunk vectors; web documents keep their
    search order. ``balanced`` and ``quality`` embed the web documents as well and
    rank everything together.
    """

    _logger = get_logger("rerank")

    def __init__(self, embeddings: EmbeddingModel, *, enabled: bool = True, threshold: float = 0.3) -> None:
        self._embeddings = embeddings
        self._enabled = enabled
        self._threshold = threshold

    async def rerank(
        self,
        query: str,
        docs: Sequence[Document],
        file_chunks: Sequence[FileChunk],
        mode: OptimizationMode,
    ) -> list[Document]:
        if not docs and not file_chunks:
            return list(docs)
        if query.strip().lower() == SUMMARIZE_QUERY:
            return list(docs[:MAX_RERANKED_DOCUMENTS])

        docs_with_content = [doc for doc in docs if doc.page_content]
        if mode == OptimizationMode.SPEED or not self._enabled:
            ranked = await self._rank_files_only(query, docs_with_content, file_chunks)
        elif mode in (OptimizationMode.BALANCED, OptimizationMode.QUALITY):
            ranked = await self._rank_all(query, docs_with_content, file_chunks)
        else:
            raise ValueError(f"Unsupported optimization mode: {mode!r}")

        PipelineMetrics.observe_rerank(len(ranked), (item.similarity for item in ranked if item.similarity is not None))
        self._logger.info(
            "rerank.complete",
            mode=OptimizationMode(mode).value,
            candidates=len(docs_with_content) + len(file_chunks),
            kept=len(ranked),
        )
        return [item.document for item in ranked]

    async def _rank_files_only(
        self,
        query: str,
        docs_with_content: Sequence[Document],
        file_chunks: Sequence[FileChunk],
    ) -> list[RankedItem]:
        if not file_chunks:
            return [RankedItem(document=doc, similarity=None) for doc in docs_with_content[:MAX_RERANKED_DOCUMENTS]]
        query_vector = await self._embed(self._embeddings.embed_query(query))
        scored = [
            RankedItem(document=chunk.to_document(), similarity=compute_similarity(query_vector, chunk.embedding))
            for chunk in file_chunks
        ]
        kept = self._filter_and_sort(scored)
        if docs_with_content:
            kept = kept[:MAX_FILE_DOCUMENTS_WITH_WEB]
        remaining = MAX_RERANKED_DOCUMENTS - len(kept)
        return kept + [RankedItem(document=doc, similarity=None) for doc in docs_with_content[:remaining]]

    async def _rank_all(
        self,
        query: str,
        docs_with_content: Sequence[Document],
        file_chunks: Sequence[FileChunk],
    ) -> list[RankedItem]:
        if docs_with_content:
            doc_vectors, query_vector = await asyncio.gather(
                self._embed(self._embeddings.embed_documents([doc.page_content for doc in docs_with_content])),
                self._embed(self._embeddings.embed_query(query)),
            )
        else:
            doc_vectors, query_vector = [], await self._embed(self._embeddings.embed_query(query))
        if len(doc_vectors) != len(docs_with_content):
            raise ModelProviderError(
                f"Embedding model returned {len(doc_vectors)} vectors for {len(docs_with_content)} documents"
            )
        candidates = list(docs_with_content) + [chunk.to_document() for chunk in file_chunks]
        vectors = list(doc_vectors) + [chunk.embedding for chunk in file_chunks]
        scored = [
            RankedItem(document=doc, similarity=compute_similarity(query_vector, vector))
            for doc, vector in zip(candidates, vectors)
        ]
        return self._filter_and_sort(scored)

    def _filter_and_sort(self, scored: Sequence[RankedItem]) -> list[RankedItem]:
        kept = [item for item in scored if item.similarity > self._threshold]
        kept.sort(key=lambda item: item.similarity, reverse=True)
        return kept[:MAX_RERANKED_DOCUMENTS]

    @staticmethod
    async def _embed(call: Awaitable[T]) -> T:
        try:
            return await call
        except MetaSearchError:
            raise
        except Exception as exc:
            raise ModelProviderError(f"Embedding call failed: {exc}") from exc
