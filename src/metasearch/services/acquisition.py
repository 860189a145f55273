"""Source acquisition: classify the turn, then search the web or read the linked pages."""

from __future__ import annotations

from typing import Protocol, Sequence

from langchain_core.documents import Document

from metasearch.ingestion.fetcher import summarize
from metasearch.metrics.observability import get_logger
from metasearch.models import ChatTurn, SearchOutcome
from metasearch.providers.base import ChatModel
from metasearch.search.base import SearchResponse, SearchResult
from metasearch.services.classifier import ClassificationResult, QueryClassifier


class SearchProvider(Protocol):
    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        """Return normalized results, falling back across backends as needed."""


class LinkFetcher(Protocol):
    async def fetch_and_group(self, urls: Sequence[str]) -> list[Document]:
        """Return the linked pages as documents merged per URL."""


def result_to_document(result: SearchResult) -> Document:
    return Document(page_content=result.content, metadata={"title": result.title, "url": result.url})


class SourceAcquirer:
    """Produces the working set of documents for one turn.

    A ``not_needed`` classification stops here without touching the search
    backends or the fetcher. Link-based turns are fetched, grouped per URL and
    summarized against the question; every other turn goes to web search.
    """

    _logger = get_logger("acquisition")

    def __init__(
        self,
        classifier: QueryClassifier,
        search: SearchProvider,
        fetcher: LinkFetcher,
        *,
        summarizer_llm: ChatModel,
        max_results: int = 20,
        engines: Sequence[str] = (),
    ) -> None:
        self._classifier = classifier
        self._search = search
        self._fetcher = fetcher
        self._summarizer_llm = summarizer_llm
        self._max_results = max_results
        self._engines = tuple(engines)

    async def acquire(self, query: str, history: Sequence[ChatTurn]) -> SearchOutcome:
        classification = await self._classifier.classify(query, history)
        return await self.acquire_for(classification)

    async def acquire_for(self, classification: ClassificationResult) -> SearchOutcome:
        if classification.not_needed:
            self._logger.info("acquisition.skipped")
            return SearchOutcome(query="", documents=())

        if classification.is_link_based:
            grouped = await self._fetcher.fetch_and_group(classification.links)
            documents = await summarize(grouped, classification.query, self._summarizer_llm)
            self._logger.info("acquisition.links", links=len(classification.links), documents=len(documents))
            return SearchOutcome(query=classification.query, documents=tuple(documents))

        response = await self._search.search(classification.query, self._max_results, engines=self._engines)
        documents = tuple(result_to_document(result) for result in response.results if result.url)
        self._logger.info("acquisition.search", documents=len(documents))
        return SearchOutcome(query=classification.query, documents=documents)
