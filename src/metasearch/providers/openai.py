"""OpenAI-compatible HTTP chat and embedding models."""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Sequence

import httpx

from metasearch.config import ModelProviderConfig
from metasearch.errors import ConfigurationError, ModelProviderError
from metasearch.metrics.observability import get_logger
from metasearch.providers.base import ChatMessage

_logger = get_logger("providers.openai")

DEFAULT_BASE_URL = "https://api.openai.com/v1"


def _error_detail(exc: httpx.HTTPError) -> str:
    response = getattr(exc, "response", None)
    if response is None:
        return ""
    try:
        return response.text[:400]
    except httpx.ResponseNotRead:
        return ""


class OpenAIChatModel:
    """Chat model speaking the ``/chat/completions`` protocol."""

    def __init__(
        self,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout_s = timeout_s
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _payload(self, messages: Sequence[ChatMessage], temperature: float | None, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "temperature": self._temperature if temperature is None else temperature,
            "stream": stream,
        }
        if self._max_tokens:
            payload["max_tokens"] = self._max_tokens
        return payload

    def _client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def invoke(self, messages: Sequence[ChatMessage], *, temperature: float | None = None) -> str:
        async with self._client(httpx.Timeout(self._timeout_s)) as client:
            try:
                resp = await client.post(
                    f"{self._base_url}/chat/completions",
                    json=self._payload(messages, temperature, stream=False),
                    headers=self._headers(),
                )
                resp.raise_for_status()
            except httpx.TimeoutException as exc:
                raise ModelProviderError(f"Chat model {self.model} timed out after {self._timeout_s:.1f}s") from exc
            except httpx.HTTPError as exc:
                raise ModelProviderError(
                    f"Chat model request failed ({type(exc).__name__}): {exc} {_error_detail(exc)}".strip()
                ) from exc
        data = resp.json()
        try:
            return str(data["choices"][0]["message"]["content"] or "")
        except (KeyError, IndexError, TypeError) as exc:
            raise ModelProviderError(f"Unexpected chat completion response shape: {data}") from exc

    async def stream(self, messages: Sequence[ChatMessage], *, temperature: float | None = None) -> AsyncIterator[str]:
        # read timeout applies per chunk while streaming
        timeout = httpx.Timeout(self._timeout_s, connect=10.0, read=self._timeout_s, write=10.0, pool=10.0)
        async with self._client(timeout) as client:
            try:
                async with client.stream(
                    "POST",
                    f"{self._base_url}/chat/completions",
                    json=self._payload(messages, temperature, stream=True),
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        await resp.aread()
                    resp.raise_for_status()
                    async for line in resp.aiter_lines():
                        chunk = _parse_stream_line(line)
                        if chunk is None:
                            continue
                        if chunk == "[DONE]":
                            break
                        yield chunk
            except httpx.TimeoutException as exc:
                raise ModelProviderError(f"Chat model {self.model} timed out after {self._timeout_s:.1f}s") from exc
            except httpx.HTTPError as exc:
                raise ModelProviderError(
                    f"Chat model request failed ({type(exc).__name__}): {exc} {_error_detail(exc)}".strip()
                ) from exc


def _parse_stream_line(line: str) -> str | None:
    """Return the delta text of one SSE line, ``"[DONE]"``, or None to skip."""

    s = line.strip()
    if not s.startswith("data:"):
        return None
    data_str = s[len("data:") :].strip()
    if not data_str:
        return None
    if data_str == "[DONE]":
        return data_str
    try:
        data = json.loads(data_str)
    except json.JSONDecodeError:
        _logger.warning("chat.stream.malformed_line", line=data_str[:200])
        return None
    choices = data.get("choices") or [{}]
    delta = (choices[0] or {}).get("delta") or {}
    content = delta.get("content")
    return str(content) if content else None


class OpenAIEmbeddingModel:
    """Embedding model speaking the ``/embeddings`` protocol."""

    def __init__(
        self,
        model: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        api_key: str | None = None,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._transport = transport

    async def embed_query(self, text: str) -> Sequence[float]:
        vectors = await self.embed_documents([text])
        return vectors[0]

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        if not texts:
            return []
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = {"model": self.model, "input": list(texts)}
        async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
            try:
                resp = await client.post(f"{self._base_url}/embeddings", json=payload, headers=headers)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise ModelProviderError(
                    f"Embedding request failed ({type(exc).__name__}): {exc} {_error_detail(exc)}".strip()
                ) from exc
        items = resp.json().get("data") or []
        if len(items) != len(texts):
            raise ModelProviderError(f"Embedding response size mismatch: got {len(items)} for {len(texts)} inputs")
        items = sorted(items, key=lambda item: int(item.get("index", 0)))
        vectors: list[list[float]] = []
        for item in items:
            embedding = item.get("embedding")
            if not isinstance(embedding, list) or not embedding:
                raise ModelProviderError("Embedding response missing 'embedding' list")
            vectors.append([float(value) for value in embedding])
        return vectors


class OpenAIProvider:
    """Provider for any OpenAI-compatible endpoint (OpenAI, LM Studio, Ollama, vLLM...)."""

    def __init__(
        self,
        config: ModelProviderConfig,
        *,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._timeout_s = timeout_s
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._config.base_url or DEFAULT_BASE_URL

    def chat_model(self, key: str) -> OpenAIChatModel:
        if self._config.chat_models and key not in self._config.chat_models:
            raise ConfigurationError(f"Chat model {key!r} is not configured for provider {self._config.id!r}")
        return OpenAIChatModel(
            key,
            base_url=self.base_url,
            api_key=self._config.api_key,
            timeout_s=self._timeout_s,
            transport=self._transport,
        )

    def embedding_model(self, key: str) -> OpenAIEmbeddingModel:
        if self._config.embedding_models and key not in self._config.embedding_models:
            raise ConfigurationError(f"Embedding model {key!r} is not configured for provider {self._config.id!r}")
        return OpenAIEmbeddingModel(
            key,
            base_url=self.base_url,
            api_key=self._config.api_key,
            timeout_s=self._timeout_s,
            transport=self._transport,
        )
