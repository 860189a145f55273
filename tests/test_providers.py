from __future__ import annotations

import asyncio
import json
import math
import threading

import httpx
import pytest

from metasearch.config import ModelProviderConfig, Settings
from metasearch.errors import ConfigurationError, ModelProviderError, ProviderNotFoundError
from metasearch.providers import (
    HashEmbeddingModel,
    ModelRegistry,
    OpenAIChatModel,
    OpenAIEmbeddingModel,
    OpenAIProvider,
    default_model_ref,
)
from metasearch.providers import local

SSE_BODY = "\n".join(
    [
        'data: {"choices":[{"delta":{"role":"assistant"}}]}',
        "",
        'data: {"choices":[{"delta":{"content":"Docker"}}]}',
        "",
        ": keep-alive",
        'data: {"choices":[{"delta":{"content":" is great"}}]}',
        "data: not json",
        "data: [DONE]",
        'data: {"choices":[{"delta":{"content":"ignored"}}]}',
    ]
)


def _collect(model: OpenAIChatModel, messages) -> list[str]:
    async def scenario() -> list[str]:
        return [chunk async for chunk in model.stream(messages)]

    return asyncio.run(scenario())


def test_chat_stream_parses_sse_deltas():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text=SSE_BODY, headers={"content-type": "text/event-stream"})

    model = OpenAIChatModel(
        "gpt-test",
        base_url="https://llm.example/v1/",
        api_key="sk-1",
        transport=httpx.MockTransport(handler),
    )
    chunks = _collect(model, [{"role": "user", "content": "hi"}])

    assert chunks == ["Docker", " is great"]
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-1"
    assert seen["body"]["stream"] is True
    assert seen["body"]["temperature"] == 0.7


def test_chat_stream_http_error_becomes_provider_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="overloaded"))
    model = OpenAIChatModel("gpt-test", transport=transport)
    with pytest.raises(ModelProviderError) as excinfo:
        _collect(model, [{"role": "user", "content": "hi"}])
    assert "overloaded" in str(excinfo.value)


def test_chat_invoke_overrides_temperature():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "<question>\nx\n</question>"}}]})

    model = OpenAIChatModel("gpt-test", transport=httpx.MockTransport(handler))
    text = asyncio.run(model.invoke([{"role": "user", "content": "hi"}], temperature=0))

    assert text == "<question>\nx\n</question>"
    assert seen["body"]["temperature"] == 0
    assert seen["body"]["stream"] is False


def test_chat_invoke_rejects_unexpected_shape():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(ModelProviderError):
        asyncio.run(OpenAIChatModel("gpt-test", transport=transport).invoke([]))


def test_embeddings_are_returned_in_input_order():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["input"] == ["a", "b"]
        data = [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]
        return httpx.Response(200, json={"data": data})

    model = OpenAIEmbeddingModel("embed-test", transport=httpx.MockTransport(handler))
    assert asyncio.run(model.embed_documents(["a", "b"])) == [[1.0, 0.0], [0.0, 1.0]]
    assert asyncio.run(model.embed_documents([])) == []


def test_embedding_size_mismatch_is_an_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": []}))
    with pytest.raises(ModelProviderError):
        asyncio.run(OpenAIEmbeddingModel("embed-test", transport=transport).embed_query("a"))


def test_hash_embeddings_are_deterministic_and_normalized():
    model = HashEmbeddingModel(dim=16)
    first = asyncio.run(model.embed_query("docker"))
    second = asyncio.run(model.embed_documents(["docker"]))[0]
    assert first == second
    assert len(first) == 16
    assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0)


def test_provider_rejects_unlisted_model():
    provider = OpenAIProvider(ModelProviderConfig(id="oa", type="openai", chat_models=("gpt-a",)))
    assert provider.chat_model("gpt-a").model == "gpt-a"
    with pytest.raises(ConfigurationError):
        provider.chat_model("gpt-b")


def _settings(*providers: ModelProviderConfig) -> Settings:
    return Settings(environment="test", model_providers=providers)


def test_registry_resolves_and_reports_errors():
    settings = _settings(
        ModelProviderConfig(id="local", type="hash", embedding_models=("hash",), embedding_dim=8),
        ModelProviderConfig(id="oa", type="openai", chat_models=("gpt-a",)),
    )
    registry = ModelRegistry.from_settings(settings)

    assert registry.active_providers == ["local", "oa"]
    assert isinstance(registry.load_embedding_model("local", "hash"), HashEmbeddingModel)
    assert isinstance(registry.load_chat_model("oa", "gpt-a"), OpenAIChatModel)
    with pytest.raises(ProviderNotFoundError):
        registry.load_chat_model("missing", "gpt-a")
    with pytest.raises(ConfigurationError):
        registry.load_chat_model("local", "hash")


def test_empty_registry_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ModelRegistry.from_settings(_settings()).load_chat_model("any", "model")


def test_default_model_ref_picks_first_capable_provider():
    settings = _settings(
        ModelProviderConfig(id="local", type="hash", embedding_models=("hash",)),
        ModelProviderConfig(id="oa", type="openai", chat_models=("gpt-a", "gpt-b")),
    )
    assert default_model_ref(settings, "chat") == ("oa", "gpt-a")
    assert default_model_ref(settings, "embedding") == ("local", "hash")
    with pytest.raises(ConfigurationError):
        default_model_ref(_settings(), "chat")


def test_huggingface_model_loads_lazily_in_a_worker_thread(monkeypatch: pytest.MonkeyPatch):
    loads: list[int] = []

    class _FakeHuggingFace:
        def __init__(self, **kwargs) -> None:
            loads.append(threading.get_ident())
            self.kwargs = kwargs

        def embed_query(self, text: str) -> list[float]:
            return [1.0, 0.0]

        def embed_documents(self, texts: list[str]) -> list[list[float]]:
            return [[0.0, 1.0] for _ in texts]

    monkeypatch.setattr(local, "HuggingFaceEmbeddings", _FakeHuggingFace)
    model = local.HuggingFaceEmbeddingModel("all-MiniLM-L6-v2")
    assert loads == []

    async def scenario():
        return await model.embed_query("q"), await model.embed_documents(["a", "b"])

    query_vector, doc_vectors = asyncio.run(scenario())

    assert query_vector == [1.0, 0.0]
    assert doc_vectors == [[0.0, 1.0], [0.0, 1.0]]
    assert len(loads) == 1
    assert loads[0] != threading.get_ident()
