"""Process-wide collaborators shared by the API routes and the CLI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import chromadb

from metasearch.config import Settings
from metasearch.ingestion.fetcher import DocumentFetcher
from metasearch.models import PipelineConfig
from metasearch.providers.registry import ModelRegistry, default_model_ref
from metasearch.retrieval.files import ChromaFileChunkStore, FileChunkStore, JsonFileChunkStore
from metasearch.search.service import FallbackSearchService
from metasearch.services.acquisition import LinkFetcher, SearchProvider
from metasearch.services.focus import build_focus_modes, get_focus_mode
from metasearch.services.pipeline import MetaSearchPipeline


@dataclass(frozen=True)
class AppDependencies:
    registry: ModelRegistry
    search: SearchProvider
    fetcher: LinkFetcher
    file_store: FileChunkStore
    focus_modes: Mapping[str, PipelineConfig]

    def build_pipeline(
        self,
        settings: Settings,
        *,
        focus_mode: str,
        chat_model: tuple[str, str] | None = None,
        embedding_model: tuple[str, str] | None = None,
    ) -> MetaSearchPipeline:
        """Resolve the focus mode and models for one request.

        Raises ``UnknownFocusModeError`` for an unregistered focus mode and
        ``ConfigurationError`` when a model cannot be resolved.
        """

        config = get_focus_mode(focus_mode, self.focus_modes)
        chat_provider, chat_key = chat_model or default_model_ref(settings, "chat")
        embedding_provider, embedding_key = embedding_model or default_model_ref(settings, "embedding")
        return MetaSearchPipeline(
            config,
            llm=self.registry.load_chat_model(chat_provider, chat_key),
            embeddings=self.registry.load_embedding_model(embedding_provider, embedding_key),
            search=self.search,
            fetcher=self.fetcher,
            file_store=self.file_store,
            search_max_results=settings.search_max_results,
            quality_search_max_results=settings.quality_search_max_results,
            stream_timeout_s=settings.stream_timeout_seconds,
        )


def _build_file_store(settings: Settings) -> FileChunkStore:
    if settings.file_store == "json":
        return JsonFileChunkStore(settings.uploads_dir)
    chroma_client = None
    if settings.chroma_host:
        chroma_client = chromadb.HttpClient(
            host=settings.chroma_host,
            port=settings.chroma_port or 8000,
            ssl=settings.chroma_ssl,
        )
    return ChromaFileChunkStore(
        settings.chroma_collection,
        client=chroma_client,
        persist_directory=None if chroma_client else settings.chroma_persist_dir,
    )


def build_dependencies(settings: Settings) -> AppDependencies:
    return AppDependencies(
        registry=ModelRegistry.from_settings(settings),
        search=FallbackSearchService.from_settings(settings),
        fetcher=DocumentFetcher.from_settings(settings),
        file_store=_build_file_store(settings),
        focus_modes=build_focus_modes(settings.rerank_threshold),
    )
