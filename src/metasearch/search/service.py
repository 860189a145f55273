"""Ordered-fallback search over the configured backends."""

from __future__ import annotations

import time
from typing import Sequence

import httpx

from metasearch.config import Settings
from metasearch.errors import ConfigurationError
from metasearch.metrics.observability import PipelineMetrics, get_logger
from metasearch.search.base import SearchBackend, SearchBackendError, SearchResponse, SearchUnavailableError
from metasearch.search.brightdata import BrightDataSearchBackend
from metasearch.search.parallel import ParallelSearchBackend
from metasearch.search.searxng import SearxngSearchBackend


class FallbackSearchService:
    """Tries each backend in order and returns the first successful response."""

    _logger = get_logger("search")

    def __init__(self, backends: Sequence[SearchBackend]) -> None:
        self._backends = list(backends)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "FallbackSearchService":
        backends: list[SearchBackend] = []
        timeout_s = settings.search_timeout_seconds
        if settings.brightdata_api_key:
            backends.append(
                BrightDataSearchBackend(
                    settings.brightdata_api_key,
                    zone=settings.brightdata_zone,
                    country=settings.brightdata_country,
                    base_url=settings.brightdata_base_url,
                    timeout_s=timeout_s,
                    transport=transport,
                )
            )
        if settings.parallel_api_key:
            backends.append(
                ParallelSearchBackend(
                    settings.parallel_api_key,
                    base_url=settings.parallel_base_url,
                    timeout_s=timeout_s,
                    transport=transport,
                )
            )
        if settings.searxng_url:
            backends.append(SearxngSearchBackend(settings.searxng_url, timeout_s=timeout_s, transport=transport))
        return cls(backends)

    @property
    def backend_names(self) -> list[str]:
        return [backend.name for backend in self._backends]

    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        if not self._backends:
            raise ConfigurationError(
                "No web search backend is configured. Set METASEARCH_BRIGHTDATA_API_KEY, "
                "METASEARCH_PARALLEL_API_KEY or METASEARCH_SEARXNG_URL."
            )
        failures: list[SearchBackendError] = []
        for index, backend in enumerate(self._backends):
            start = time.perf_counter()
            try:
                response = await backend.search(query, max_results, engines=engines)
            except SearchBackendError as exc:
                PipelineMetrics.observe_search(backend.name, time.perf_counter() - start, failed=True)
                failures.append(exc)
                if index + 1 < len(self._backends):
                    PipelineMetrics.observe_fallback()
                    self._logger.warning(
                        "search.fallback",
                        backend=backend.name,
                        next_backend=self._backends[index + 1].name,
                        status_code=exc.status_code,
                        detail=str(exc),
                    )
                continue
            duration = time.perf_counter() - start
            PipelineMetrics.observe_search(backend.name, duration)
            results = [result for result in response.results if result.url]
            self._logger.info(
                "search.complete",
                backend=backend.name,
                result_count=len(results),
                duration_seconds=duration,
            )
            return SearchResponse(results=results, suggestions=response.suggestions)
        raise SearchUnavailableError("All search backends failed: " + "; ".join(str(f) for f in failures))
