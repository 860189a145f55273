from __future__ import annotations

import asyncio

from langchain_core.documents import Document

from fakes import FakeChatModel, FakeFetcher, FakeSearch, make_results
from metasearch.services.acquisition import SourceAcquirer
from metasearch.services.classifier import QueryClassifier


def _acquirer(llm: FakeChatModel, search: FakeSearch, fetcher: FakeFetcher, **kwargs) -> SourceAcquirer:
    return SourceAcquirer(QueryClassifier(llm), search, fetcher, summarizer_llm=llm, **kwargs)


def test_not_needed_makes_no_external_calls():
    llm = FakeChatModel("<question>\nnot_needed\n</question>")
    search, fetcher = FakeSearch(make_results(3)), FakeFetcher()

    outcome = asyncio.run(_acquirer(llm, search, fetcher).acquire("Hi", []))

    assert outcome.query == ""
    assert list(outcome.documents) == []
    assert search.calls == []
    assert fetcher.calls == []
    assert len(llm.invocations) == 1


def test_search_path_converts_results_to_documents():
    llm = FakeChatModel("<question>\nWhat is Docker\n</question>")
    search = FakeSearch(make_results(3))

    outcome = asyncio.run(_acquirer(llm, search, FakeFetcher(), engines=("reddit",)).acquire("What is Docker?", []))

    assert search.calls == [("What is Docker", 20, ("reddit",))]
    assert outcome.query == "What is Docker"
    first = outcome.documents[0]
    assert first.page_content == "result content 1"
    assert first.metadata == {"title": "result 1", "url": "https://result.example/1"}


def test_link_path_fetches_then_summarizes():
    def responder(messages):
        if messages[0]["role"] == "system":
            return "<question>\nsummarize\n</question>\n<links>\nhttps://example.com\n</links>"
        return "Example summary."

    llm = FakeChatModel(responder)
    fetcher = FakeFetcher(
        [Document(page_content="page text", metadata={"title": "Example", "url": "https://example.com", "totalDocs": 1})]
    )
    search = FakeSearch(make_results(2))

    outcome = asyncio.run(_acquirer(llm, search, fetcher).acquire("Summarize https://example.com", []))

    assert fetcher.calls == [["https://example.com"]]
    assert search.calls == []
    assert outcome.query == "summarize"
    assert [(d.page_content, d.metadata) for d in outcome.documents] == [
        ("Example summary.", {"title": "Example", "url": "https://example.com"})
    ]
