"""In-process embedding models: sentence-transformers via LangChain and a hash fallback."""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import threading
from typing import Sequence, Tuple

from langchain_community.embeddings import HuggingFaceEmbeddings
from langchain_core.embeddings import Embeddings as LangChainEmbeddings

from metasearch.config import ModelProviderConfig
from metasearch.errors import ConfigurationError, ModelProviderError

LOGGER = logging.getLogger(__name__)


class HashEmbeddingModel:
    """Deterministic lightweight embedding used for testing and offline environments."""

    def __init__(self, dim: int = 384, normalize: bool = True) -> None:
        self._dim = dim
        self._normalize = normalize

    def _hash_to_vector(self, text: str) -> Tuple[float, ...]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        repeat = (self._dim + len(digest) - 1) // len(digest)
        raw = (digest * repeat)[: self._dim]
        vector = [byte / 255.0 for byte in raw]
        if self._normalize:
            norm = math.sqrt(sum(value * value for value in vector)) or 1.0
            vector = [value / norm for value in vector]
        return tuple(vector)

    async def embed_query(self, text: str) -> Sequence[float]:
        return self._hash_to_vector(text)

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        return [self._hash_to_vector(text) for text in texts]


class HuggingFaceEmbeddingModel:
    """Sentence-transformers embeddings loaded through LangChain.

    The model is loaded on the first embedding call, in a worker thread, so
    constructing this object never blocks the event loop.
    """

    def __init__(self, model: str, *, device: str | None = None, normalize: bool = True) -> None:
        self._model = model
        self._model_kwargs = {"device": device} if device else {}
        self._normalize = normalize
        self._client: LangChainEmbeddings | None = None
        self._lock = threading.Lock()

    def _load(self) -> LangChainEmbeddings:
        with self._lock:
            if self._client is None:
                try:
                    self._client = HuggingFaceEmbeddings(
                        model_name=self._model,
                        model_kwargs=self._model_kwargs,
                        encode_kwargs={"normalize_embeddings": self._normalize},
                    )
                except Exception as exc:  # pragma: no cover - model download/runtime guard
                    raise ModelProviderError(f"Failed to load embedding model {self._model}: {exc}") from exc
                LOGGER.info("Loaded embedding model %s", self._model)
            return self._client

    def _embed_query(self, text: str) -> Sequence[float]:
        return self._load().embed_query(text)

    def _embed_documents(self, texts: list[str]) -> Sequence[Sequence[float]]:
        return self._load().embed_documents(texts)

    async def embed_query(self, text: str) -> Sequence[float]:
        return await asyncio.to_thread(self._embed_query, text)

    async def embed_documents(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        if not texts:
            return []
        vectors = await asyncio.to_thread(self._embed_documents, list(texts))
        if len(vectors) != len(texts):
            LOGGER.error("Embedding backend returned %d vectors for %d texts", len(vectors), len(texts))
            raise ModelProviderError("Mismatch between number of texts and embedding vectors")
        return vectors


class _EmbeddingOnlyProvider:
    def __init__(self, config: ModelProviderConfig) -> None:
        self._config = config

    def chat_model(self, key: str):
        raise ConfigurationError(f"Provider {self._config.id!r} ({self._config.type}) does not serve chat models")


class HashProvider(_EmbeddingOnlyProvider):
    def embedding_model(self, key: str) -> HashEmbeddingModel:
        return HashEmbeddingModel(dim=self._config.embedding_dim)


class HuggingFaceProvider(_EmbeddingOnlyProvider):
    def __init__(self, config: ModelProviderConfig) -> None:
        super().__init__(config)
        self._loaded: dict[str, HuggingFaceEmbeddingModel] = {}

    def embedding_model(self, key: str) -> HuggingFaceEmbeddingModel:
        if self._config.embedding_models and key not in self._config.embedding_models:
            raise ConfigurationError(f"Embedding model {key!r} is not configured for provider {self._config.id!r}")
        # one loaded model per key
        if key not in self._loaded:
            self._loaded[key] = HuggingFaceEmbeddingModel(key)
        return self._loaded[key]
