"""Provider registry: string id to configured model provider."""

from __future__ import annotations

from typing import Callable, Mapping

from metasearch.config import ModelProviderConfig, Settings
from metasearch.errors import ConfigurationError, ProviderNotFoundError
from metasearch.metrics.observability import get_logger
from metasearch.providers.base import ChatModel, EmbeddingModel, ModelProvider
from metasearch.providers.local import HashProvider, HuggingFaceProvider
from metasearch.providers.openai import OpenAIProvider

ProviderFactory = Callable[[ModelProviderConfig, Settings], ModelProvider]

PROVIDER_TYPES: Mapping[str, ProviderFactory] = {
    "openai": lambda config, settings: OpenAIProvider(config, timeout_s=settings.model_timeout_seconds),
    "huggingface": lambda config, settings: HuggingFaceProvider(config),
    "hash": lambda config, settings: HashProvider(config),
}


class ModelRegistry:
    """Resolves ``{providerId, key}`` references to chat and embedding models."""

    _logger = get_logger("providers.registry")

    def __init__(self, providers: Mapping[str, ModelProvider]) -> None:
        self._providers = dict(providers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ModelRegistry":
        providers: dict[str, ModelProvider] = {}
        for config in settings.model_providers:
            factory = PROVIDER_TYPES.get(config.type)
            if factory is None:
                raise ConfigurationError(f"Invalid provider type {config.type!r} for provider {config.id!r}")
            providers[config.id] = factory(config, settings)
        return cls(providers)

    @property
    def active_providers(self) -> list[str]:
        return list(self._providers)

    def _provider(self, provider_id: str) -> ModelProvider:
        if not self._providers:
            raise ConfigurationError("No AI model providers are configured. Please configure a provider in settings.")
        provider = self._providers.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(f"Model provider {provider_id!r} not found")
        return provider

    def load_chat_model(self, provider_id: str, key: str) -> ChatModel:
        model = self._provider(provider_id).chat_model(key)
        self._logger.info("models.chat.loaded", provider_id=provider_id, key=key)
        return model

    def load_embedding_model(self, provider_id: str, key: str) -> EmbeddingModel:
        model = self._provider(provider_id).embedding_model(key)
        self._logger.info("models.embedding.loaded", provider_id=provider_id, key=key)
        return model


def default_model_ref(settings: Settings, kind: str) -> tuple[str, str]:
    """First configured ``(provider_id, key)`` offering a ``chat`` or ``embedding`` model."""

    for config in settings.model_providers:
        models = config.chat_models if kind == "chat" else config.embedding_models
        if models:
            return config.id, models[0]
    raise ConfigurationError(f"No {kind} model is configured. Please configure a provider in settings.")
