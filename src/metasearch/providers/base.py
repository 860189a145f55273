"""Capability interfaces for chat and embedding models."""

from __future__ import annotations

from typing import Any, AsyncIterator, Protocol, Sequence

ChatMessage = dict[str, Any]


class ChatModel(Protocol):
    """Protocol describing chat completion behaviour."""

    def stream(self, messages: Sequence[ChatMessage], *, temperature: float | None = None) -> AsyncIterator[str]:
        """Yield the completion for ``messages`` chunk by chunk."""

    async def invoke(self, messages: Sequence[ChatMessage], *, temperature: float | None = None) -> str:
        """Return the full completion for ``messages``."""


class EmbeddingModel(Protocol):
    """Protocol describing embedding behaviour."""

    async def embed_query(self, text: str) -> Sequence[float]:
        """Return the embedding vector for a query string."""

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Return one embedding vector per input text, in order."""


class ModelProvider(Protocol):
    """A configured backend able to hand out chat and/or embedding models."""

    def chat_model(self, key: str) -> ChatModel:
        """Return the chat model registered under ``key``."""

    def embedding_model(self, key: str) -> EmbeddingModel:
        """Return the embedding model registered under ``key``."""
