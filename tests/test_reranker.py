from __future__ import annotations

import asyncio

import pytest
from langchain_core.documents import Document

from fakes import FakeEmbeddingModel
from metasearch.errors import ModelProviderError
from metasearch.models import FileChunk, OptimizationMode
from metasearch.retrieval import MAX_RERANKED_DOCUMENTS, Reranker

QUERY_VECTOR = (1.0, 0.0)
NEAR = (0.9, 0.1)
MID = (0.6, 0.4)
FAR = (0.0, 1.0)


def _doc(i: int, content: str | None = None) -> Document:
    return Document(
        page_content=f"doc {i}" if content is None else content,
        metadata={"title": f"Doc {i}", "url": f"https://d.example/{i}"},
    )


def _chunk(i: int, vector) -> FileChunk:
    return FileChunk(owner_file_name=f"notes-{i}.pdf", content=f"chunk {i}", embedding=tuple(vector))


def _run(reranker: Reranker, query, docs, chunks, mode):
    return asyncio.run(reranker.rerank(query, docs, chunks, mode))


def test_empty_inputs_return_empty():
    embeddings = FakeEmbeddingModel()
    assert _run(Reranker(embeddings), "q", [], [], OptimizationMode.BALANCED) == []
    assert embeddings.query_calls == []


def test_summarize_bypasses_scoring_and_caps():
    embeddings = FakeEmbeddingModel()
    docs = [_doc(i) for i in range(20)]
    ranked = _run(Reranker(embeddings), "Summarize", docs, [], OptimizationMode.BALANCED)
    assert ranked == docs[:MAX_RERANKED_DOCUMENTS]
    assert embeddings.query_calls == [] and embeddings.document_calls == []


def test_balanced_filters_by_threshold_and_sorts():
    docs = [_doc(1), _doc(2), _doc(3)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR, "doc 1": MID, "doc 2": FAR, "doc 3": NEAR})
    ranked = _run(Reranker(embeddings, threshold=0.3), "q", docs, [_chunk(1, NEAR)], OptimizationMode.BALANCED)

    # equal scores keep candidate order: web documents before file chunks
    assert [doc.metadata["title"] for doc in ranked] == ["Doc 3", "notes-1.pdf", "Doc 1"]
    assert ranked[1].metadata["url"] == "File"


def test_balanced_caps_at_fifteen():
    docs = [_doc(i) for i in range(30)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR}, default=NEAR)
    ranked = _run(Reranker(embeddings), "q", docs, [], OptimizationMode.BALANCED)
    assert len(ranked) == MAX_RERANKED_DOCUMENTS


def test_documents_without_content_are_dropped():
    docs = [_doc(1, content=""), _doc(2)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR}, default=NEAR)
    ranked = _run(Reranker(embeddings), "q", docs, [], OptimizationMode.BALANCED)
    assert [doc.metadata["title"] for doc in ranked] == ["Doc 2"]
    assert embeddings.document_calls == [["doc 2"]]


def test_quality_scores_like_balanced():
    docs = [_doc(1), _doc(2)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR, "doc 1": FAR, "doc 2": NEAR})
    ranked = _run(Reranker(embeddings), "q", docs, [], OptimizationMode.QUALITY)
    assert [doc.metadata["title"] for doc in ranked] == ["Doc 2"]


def test_speed_mode_never_embeds_web_documents():
    docs = [_doc(i) for i in range(20)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR})
    ranked = _run(Reranker(embeddings), "q", docs, [], OptimizationMode.SPEED)
    assert ranked == docs[:MAX_RERANKED_DOCUMENTS]
    assert embeddings.document_calls == []


def test_speed_mode_caps_file_chunks_when_web_documents_exist():
    docs = [_doc(i) for i in range(20)]
    chunks = [_chunk(i, NEAR) for i in range(12)] + [_chunk(99, FAR)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR})
    ranked = _run(Reranker(embeddings), "q", docs, chunks, OptimizationMode.SPEED)

    file_items = [doc for doc in ranked if doc.metadata["url"] == "File"]
    web_items = [doc for doc in ranked if doc.metadata["url"] != "File"]
    assert len(ranked) == MAX_RERANKED_DOCUMENTS
    assert len(file_items) == 8
    assert web_items == docs[:7]
    assert all(doc.metadata["title"] != "notes-99.pdf" for doc in file_items)
    assert embeddings.document_calls == []


def test_rerank_disabled_behaves_like_speed():
    docs = [_doc(1), _doc(2)]
    embeddings = FakeEmbeddingModel({"q": QUERY_VECTOR})
    ranked = _run(Reranker(embeddings, enabled=False), "q", docs, [], OptimizationMode.BALANCED)
    assert ranked == docs
    assert embeddings.document_calls == []


def test_embedding_failure_is_surfaced():
    with pytest.raises(ModelProviderError):
        _run(Reranker(FakeEmbeddingModel(fail=True)), "q", [_doc(1)], [], OptimizationMode.BALANCED)
    with pytest.raises(ModelProviderError):
        _run(Reranker(FakeEmbeddingModel(fail=True)), "q", [], [_chunk(1, NEAR)], OptimizationMode.SPEED)


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        _run(Reranker(FakeEmbeddingModel()), "q", [_doc(1)], [], "turbo")
