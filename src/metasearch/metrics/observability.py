"""Logging, request correlation and Prometheus metrics for MetaSearch."""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterable, Iterator

import structlog
from prometheus_client import Counter, Histogram

from metasearch.errors import ConfigurationError

_correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


def configure_logging(level: int | str = logging.INFO, *, json_logs: bool = True) -> None:
    """Send structlog events through stdlib logging to stderr.

    Only the first call configures anything. stdout stays free for the CLI's
    NDJSON output.
    """

    numeric_level = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Unknown log level: {level!r}")
    if structlog.is_configured():
        return
    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr)
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind ``correlation_id`` to every log event emitted inside the block."""

    token = _correlation_id_var.set(correlation_id)
    try:
        with structlog.contextvars.bound_contextvars(correlation_id=correlation_id):
            yield correlation_id
    finally:
        _correlation_id_var.reset(token)


def get_correlation_id() -> str:
    return _correlation_id_var.get()


def get_logger(name: str = "metasearch") -> structlog.BoundLogger:
    return structlog.get_logger(name)


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    search_latency = Histogram(
        "metasearch_search_duration_seconds",
        "Time spent waiting on a web search backend.",
        ["backend"],
        buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 15.0),
    )
    search_failures = Counter(
        "metasearch_search_failures_total",
        "Search backend calls that failed.",
        ["backend"],
    )
    search_fallbacks = Counter(
        "metasearch_search_fallbacks_total",
        "Times a search fell through to the next configured backend.",
    )
    fetch_latency = Histogram(
        "metasearch_fetch_duration_seconds",
        "Time spent fetching and summarizing linked pages.",
        buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
    )
    reranked_document_count = Histogram(
        "metasearch_reranked_document_count",
        "Number of documents kept after reranking.",
        buckets=(0, 1, 3, 5, 8, 10, 15),
    )
    similarity_score = Histogram(
        "metasearch_similarity_score",
        "Cosine similarity of documents kept by the reranker.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )
    generation_latency = Histogram(
        "metasearch_generation_duration_seconds",
        "Time spent streaming an answer from the chat model.",
        buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
    )
    stream_outcomes = Counter(
        "metasearch_stream_outcomes_total",
        "Terminal outcome of each event stream.",
        ["outcome"],
    )

    @classmethod
    def observe_search(cls, backend: str, duration_seconds: float, *, failed: bool = False) -> None:
        cls.search_latency.labels(backend=backend).observe(duration_seconds)
        if failed:
            cls.search_failures.labels(backend=backend).inc()

    @classmethod
    def observe_fallback(cls) -> None:
        cls.search_fallbacks.inc()

    @classmethod
    def observe_fetch(cls, duration_seconds: float) -> None:
        cls.fetch_latency.observe(duration_seconds)

    @classmethod
    def observe_rerank(cls, document_count: int, scores: Iterable[float]) -> None:
        cls.reranked_document_count.observe(document_count)
        for score in scores:
            cls.similarity_score.observe(min(1.0, max(0.0, score)))

    @classmethod
    def observe_generation(cls, duration_seconds: float) -> None:
        cls.generation_latency.observe(duration_seconds)

    @classmethod
    def observe_stream_outcome(cls, outcome: str) -> None:
        cls.stream_outcomes.labels(outcome=outcome).inc()


class TimedSection:
    """Times the enclosed block and reports the duration to ``callback`` on exit.

    The duration is reported even when the block raises; ``elapsed`` holds it
    afterwards.
    """

    def __init__(self, callback: Callable[[float], None]) -> None:
        self._callback = callback
        self._start = 0.0
        self.elapsed = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed = time.perf_counter() - self._start
        self._callback(self.elapsed)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "configure_logging",
    "correlation_scope",
    "get_correlation_id",
    "get_logger",
]
