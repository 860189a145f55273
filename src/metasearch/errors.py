"""Exception hierarchy shared by the pipeline stages and the API."""

from __future__ import annotations


class MetaSearchError(RuntimeError):
    """Base class for failures raised by MetaSearch components."""


class ConfigurationError(MetaSearchError):
    """Raised when a required provider or backend is not configured."""


class ProviderNotFoundError(ConfigurationError):
    """Raised when a request names a model provider that is not registered."""


class ModelProviderError(MetaSearchError):
    """Raised when a chat or embedding call fails."""


class DocumentFetchError(MetaSearchError):
    """Raised when none of the requested links could be turned into documents."""


class UnknownFocusModeError(MetaSearchError):
    """Raised when a request names a focus mode that is not registered."""
