"""Query classification and rephrasing ahead of source acquisition."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence, Tuple

from metasearch.metrics.observability import get_logger
from metasearch.models import SUMMARIZE_QUERY, ChatTurn
from metasearch.providers.base import ChatMessage, ChatModel
from metasearch.services.history import format_chat_history
from metasearch.services.prompts import (
    QUERY_GENERATOR_USER_TEMPLATE,
    WEB_SEARCH_RETRIEVER_FEW_SHOTS,
    WEB_SEARCH_RETRIEVER_PROMPT,
    render_prompt,
)

NOT_NEEDED = "not_needed"

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)


def strip_think_blocks(text: str) -> str:
    """Drop ``<think>...</think>`` reasoning emitted by reasoning models."""

    return _THINK_RE.sub("", text or "").strip()


def parse_tag(text: str, key: str) -> str | None:
    """Return the trimmed text between ``<key>`` and ``</key>`` or ``None`` when absent."""

    start_tag, end_tag = f"<{key}>", f"</{key}>"
    start = text.find(start_tag)
    end = text.find(end_tag, start + len(start_tag)) if start != -1 else -1
    if start == -1 or end == -1:
        return None
    return text[start + len(start_tag) : end].strip()


def parse_list_tag(text: str, key: str) -> list[str]:
    """Return the non-empty lines inside ``<key>`` with list markers removed."""

    block = parse_tag(text, key)
    if not block:
        return []
    items = []
    for line in block.split("\n"):
        cleaned = re.sub(r"^\s*(?:[-*]|\d+[.)])\s+", "", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying a turn; an empty ``query`` means no retrieval is needed."""

    query: str
    links: Tuple[str, ...] = ()

    @property
    def is_link_based(self) -> bool:
        return bool(self.links)

    @property
    def not_needed(self) -> bool:
        return not self.query and not self.links


NOT_NEEDED_RESULT = ClassificationResult(query="")


def parse_classifier_output(raw: str) -> ClassificationResult:
    """Interpret the rephraser output.

    Links without a question become the ``summarize`` request; anything that
    carries neither a question nor links, or says ``not_needed``, yields
    ``NOT_NEEDED_RESULT``.
    """

    text = strip_think_blocks(raw)
    links = tuple(parse_list_tag(text, "links"))
    question = parse_tag(text, "question")

    if question is not None and question.strip().lower() == NOT_NEEDED:
        return NOT_NEEDED_RESULT
    if links:
        return ClassificationResult(query=question or SUMMARIZE_QUERY, links=links)
    if not question:
        return NOT_NEEDED_RESULT
    return ClassificationResult(query=question)


class QueryClassifier:
    """Asks the chat model whether a turn needs retrieval and how to phrase it."""

    _logger = get_logger("classifier")

    def __init__(
        self,
        llm: ChatModel,
        *,
        prompt: str = WEB_SEARCH_RETRIEVER_PROMPT,
        few_shots: Sequence[Tuple[str, str]] = WEB_SEARCH_RETRIEVER_FEW_SHOTS,
    ) -> None:
        self._llm = llm
        self._prompt = prompt
        self._few_shots = tuple(few_shots)

    def build_messages(self, query: str, history: Sequence[ChatTurn]) -> list[ChatMessage]:
        messages: list[ChatMessage] = [{"role": "system", "content": self._prompt}]
        messages.extend({"role": role, "content": content} for role, content in self._few_shots)
        user = render_prompt(
            QUERY_GENERATOR_USER_TEMPLATE,
            {"chat_history": format_chat_history(history), "query": query},
        )
        messages.append({"role": "user", "content": user})
        return messages

    async def classify(self, query: str, history: Sequence[ChatTurn]) -> ClassificationResult:
        raw = await self._llm.invoke(self.build_messages(query, history), temperature=0)
        result = parse_classifier_output(raw)
        self._logger.info(
            "classifier.complete",
            not_needed=result.not_needed,
            link_based=result.is_link_based,
            link_count=len(result.links),
        )
        return result
