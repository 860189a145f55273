"""Focus modes: named, read-only pipeline profiles."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from metasearch.errors import UnknownFocusModeError
from metasearch.models import PipelineConfig
from metasearch.services.prompts import (
    WEB_SEARCH_RESPONSE_PROMPT,
    WEB_SEARCH_RETRIEVER_FEW_SHOTS,
    WEB_SEARCH_RETRIEVER_PROMPT,
    WRITING_ASSISTANT_PROMPT,
)

DEFAULT_FOCUS_MODE = "webSearch"


def _search_profile(engines: tuple[str, ...], threshold: float) -> PipelineConfig:
    return PipelineConfig(
        search_web=True,
        rerank=True,
        rerank_threshold=threshold,
        query_generator_prompt=WEB_SEARCH_RETRIEVER_PROMPT,
        query_generator_few_shots=WEB_SEARCH_RETRIEVER_FEW_SHOTS,
        response_prompt=WEB_SEARCH_RESPONSE_PROMPT,
        active_engines=engines,
    )


def build_focus_modes(rerank_threshold: float = 0.3) -> Mapping[str, PipelineConfig]:
    """Return the focus mode registry; ``rerank_threshold`` applies to the general web profiles.

    Academic search and the writing assistant use threshold 0 and keep every
    positively scored candidate.
    """

    modes = {
        "webSearch": _search_profile((), rerank_threshold),
        "academicSearch": _search_profile(("arxiv", "google scholar", "pubmed"), 0.0),
        "redditSearch": _search_profile(("reddit",), rerank_threshold),
        "youtubeSearch": _search_profile(("youtube",), rerank_threshold),
        "writingAssistant": PipelineConfig(
            search_web=False,
            rerank=True,
            rerank_threshold=0.0,
            query_generator_prompt="",
            response_prompt=WRITING_ASSISTANT_PROMPT,
        ),
    }
    return MappingProxyType(modes)


FOCUS_MODES = build_focus_modes()


def get_focus_mode(name: str, modes: Mapping[str, PipelineConfig] = FOCUS_MODES) -> PipelineConfig:
    try:
        return modes[name]
    except KeyError:
        raise UnknownFocusModeError(f"Invalid focus mode: {name}") from None
