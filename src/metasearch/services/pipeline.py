"""Pipeline orchestration: acquire sources, rerank, then stream the answer."""

from __future__ import annotations

import asyncio
from typing import Sequence

from metasearch.errors import MetaSearchError
from metasearch.metrics.observability import get_logger
from metasearch.models import ChatTurn, FileChunk, ImagePart, OptimizationMode, PipelineConfig, SearchOutcome, build_query
from metasearch.providers.base import ChatModel, EmbeddingModel
from metasearch.retrieval.files import FileChunkStore
from metasearch.retrieval.reranker import Reranker
from metasearch.services.acquisition import LinkFetcher, SearchProvider, SourceAcquirer
from metasearch.services.classifier import QueryClassifier
from metasearch.services.generation import AnswerSynthesizer, PromptBuilder, TemplateScanner
from metasearch.streaming import DEFAULT_ERROR_MESSAGE, EventStream, EventType


class MetaSearchPipeline:
    """Runs one conversational turn and publishes its events on an ``EventStream``.

    ``search_and_answer`` must be called from a running event loop: it schedules
    the turn as a task attached to the returned stream and returns immediately.
    """

    _logger = get_logger("pipeline")

    def __init__(
        self,
        config: PipelineConfig,
        *,
        llm: ChatModel,
        embeddings: EmbeddingModel,
        search: SearchProvider,
        fetcher: LinkFetcher,
        file_store: FileChunkStore | None = None,
        search_max_results: int = 20,
        quality_search_max_results: int = 30,
        stream_timeout_s: float | None = 60.0,
    ) -> None:
        self._config = config
        self._llm = llm
        self._embeddings = embeddings
        self._search = search
        self._fetcher = fetcher
        self._file_store = file_store
        self._search_max_results = search_max_results
        self._quality_search_max_results = quality_search_max_results
        self._stream_timeout_s = stream_timeout_s

    def search_and_answer(
        self,
        message: str,
        history: Sequence[ChatTurn],
        *,
        optimization_mode: OptimizationMode = OptimizationMode.BALANCED,
        file_ids: Sequence[str] = (),
        system_instructions: str = "",
        end_event: EventType = EventType.MESSAGE_END,
        message_id: str | None = None,
    ) -> EventStream:
        stream = EventStream(end_event=end_event, message_id=message_id, first_event_timeout=self._stream_timeout_s)
        task = asyncio.get_running_loop().create_task(
            self._run(
                stream,
                message,
                tuple(history),
                OptimizationMode(optimization_mode),
                tuple(file_ids),
                system_instructions,
            )
        )
        stream.attach(task)
        return stream

    def _max_results(self, mode: OptimizationMode) -> int:
        if mode == OptimizationMode.QUALITY:
            return self._quality_search_max_results
        return self._search_max_results

    def _acquirer(self, mode: OptimizationMode) -> SourceAcquirer:
        classifier = QueryClassifier(
            self._llm,
            prompt=self._config.query_generator_prompt,
            few_shots=self._config.query_generator_few_shots,
        )
        return SourceAcquirer(
            classifier,
            self._search,
            self._fetcher,
            summarizer_llm=self._llm,
            max_results=self._max_results(mode),
            engines=self._config.active_engines,
        )

    def _load_files(self, file_ids: Sequence[str]) -> tuple[Sequence[FileChunk], Sequence[ImagePart]]:
        if not file_ids or self._file_store is None:
            return (), ()
        return self._file_store.load_chunks(file_ids), self._file_store.load_images(file_ids)

    async def _run(
        self,
        stream: EventStream,
        message: str,
        history: Sequence[ChatTurn],
        mode: OptimizationMode,
        file_ids: Sequence[str],
        system_instructions: str,
    ) -> None:
        try:
            file_chunks, images = await asyncio.to_thread(self._load_files, file_ids)
            if self._config.search_web:
                outcome = await self._acquirer(mode).acquire(message, history)
                skip_rerank = not outcome.query
            else:
                outcome = SearchOutcome(query=message, documents=())
                skip_rerank = False

            documents = []
            if not skip_rerank:
                reranker = Reranker(
                    self._embeddings,
                    enabled=self._config.rerank,
                    threshold=self._config.rerank_threshold,
                )
                documents = await reranker.rerank(outcome.query, outcome.documents, file_chunks, mode)
            if documents:
                stream.emit_sources(documents)

            synthesizer = AnswerSynthesizer(self._llm, PromptBuilder(self._config.response_prompt))
            scanner = TemplateScanner()
            async for chunk in synthesizer.stream(
                build_query(message, images),
                history,
                documents,
                system_instructions=system_instructions,
            ):
                if not stream.emit_response(chunk):
                    return
                for block in scanner.feed(chunk):
                    stream.emit_template(block.name, block.data)
            stream.finish()
            self._logger.info("pipeline.complete", mode=mode.value, source_count=len(documents))
        except asyncio.CancelledError:
            self._logger.info("pipeline.cancelled")
            raise
        except MetaSearchError as exc:
            self._logger.warning("pipeline.failed", error_type=type(exc).__name__, detail=str(exc))
            stream.fail(str(exc))
        except Exception as exc:
            self._logger.error("pipeline.failed", error_type=type(exc).__name__, detail=str(exc))
            stream.fail(DEFAULT_ERROR_MESSAGE)
