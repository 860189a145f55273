from __future__ import annotations

import pytest
from pydantic import ValidationError

from metasearch.config import ModelProviderConfig, get_settings


def test_search_defaults():
    settings = get_settings({"environment": "test"})
    assert settings.search_max_results == 20
    assert settings.quality_search_max_results == 30
    assert settings.rerank_threshold == 0.3
    assert settings.environment == "test"


def test_stream_and_fetch_limits_defaults():
    settings = get_settings({"environment": "test"})
    assert settings.stream_timeout_seconds == 60.0
    assert settings.max_fetch_bytes >= settings.max_fetch_chars
    assert settings.fetch_chunk_overlap < settings.fetch_chunk_size


def test_model_providers_parse_from_mappings():
    settings = get_settings(
        {
            "model_providers": [
                {"id": "local", "type": "hash", "embedding_models": ["hash-384"]},
                {"id": "openai", "type": "openai", "api_key": "sk-test", "chat_models": ["gpt-4o-mini"]},
            ]
        }
    )
    assert [provider.id for provider in settings.model_providers] == ["local", "openai"]
    assert isinstance(settings.model_providers[1], ModelProviderConfig)
    assert settings.model_providers[1].chat_models == ("gpt-4o-mini",)


def test_unknown_provider_type_is_rejected():
    with pytest.raises(ValidationError):
        get_settings({"model_providers": [{"id": "x", "type": "carrier-pigeon"}]})


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("METASEARCH_SEARXNG_URL", "http://searxng:8080")
    monkeypatch.setenv("METASEARCH_SEARCH_MAX_RESULTS", "12")
    settings = get_settings({"environment": "test"})
    assert settings.searxng_url == "http://searxng:8080"
    assert settings.search_max_results == 12
