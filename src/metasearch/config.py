"""Runtime configuration for the MetaSearch service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ModelProviderConfig(BaseModel):
    """One configured model provider, selected by ``id`` in requests."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: Literal["openai", "huggingface", "hash"]
    name: str = ""
    base_url: str | None = None
    api_key: str | None = None
    chat_models: tuple[str, ...] = ()
    embedding_models: tuple[str, ...] = ()
    embedding_dim: int = 384


class Settings(BaseSettings):
    """Environment-backed configuration model."""

    model_config = SettingsConfigDict(env_prefix="metasearch_", env_file=".env", case_sensitive=False, frozen=True)

    environment: Literal["dev", "test", "prod"] = "dev"
    log_level: str = "INFO"
    log_json: bool = True

    # Search backends; a backend without credentials is left out of the fallback order
    parallel_api_key: str | None = None
    parallel_base_url: str = "https://api.parallel.ai"
    brightdata_api_key: str | None = None
    brightdata_base_url: str = "https://api.brightdata.com"
    brightdata_zone: str = "serp_api1"
    brightdata_country: str = "us"
    searxng_url: str | None = None

    search_timeout_seconds: float = 15.0
    search_max_results: int = 20
    quality_search_max_results: int = 30

    # Link fetching
    fetch_timeout_seconds: float = 15.0
    max_fetch_bytes: int = 2_000_000
    max_fetch_chars: int = 100_000
    fetch_chunk_size: int = 1000
    fetch_chunk_overlap: int = 100
    fetch_user_agent: str = "metasearch/0.1 (+https://github.com/metasearch)"

    # Reranking and streaming
    rerank_threshold: float = 0.3
    model_timeout_seconds: float = 60.0
    stream_timeout_seconds: float = 60.0

    # Uploaded file chunks (precomputed elsewhere)
    file_store: Literal["json", "chroma"] = "json"
    uploads_dir: Path = Path("./uploads")
    chroma_persist_dir: Path | None = None
    chroma_collection: str = "metasearch-files"
    chroma_host: str | None = None
    chroma_port: int | None = None
    chroma_ssl: bool = False

    model_providers: tuple[ModelProviderConfig, ...] = Field(default_factory=tuple)

    # CORS
    cors_allow_origins: tuple[str, ...] = ()
    cors_allow_credentials: bool = False
    cors_allow_methods: tuple[str, ...] = ("GET", "POST", "OPTIONS")
    cors_allow_headers: tuple[str, ...] = ("*",)

    # Security
    api_key: str | None = None  # if set, required in X-API-Key header


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
