"""Model providers."""

from .base import ChatMessage, ChatModel, EmbeddingModel, ModelProvider
from .local import HashEmbeddingModel, HashProvider, HuggingFaceEmbeddingModel, HuggingFaceProvider
from .openai import OpenAIChatModel, OpenAIEmbeddingModel, OpenAIProvider
from .registry import ModelRegistry, default_model_ref

__all__ = [
    "ChatMessage",
    "ChatModel",
    "EmbeddingModel",
    "HashEmbeddingModel",
    "HashProvider",
    "HuggingFaceEmbeddingModel",
    "HuggingFaceProvider",
    "ModelProvider",
    "ModelRegistry",
    "OpenAIChatModel",
    "OpenAIEmbeddingModel",
    "OpenAIProvider",
    "default_model_ref",
]
