"""Answer synthesis: numbered context, prompt assembly and streamed generation."""

from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Iterator, Sequence

from langchain_core.documents import Document

from metasearch.metrics.observability import PipelineMetrics, get_logger
from metasearch.models import ChatTurn, Query
from metasearch.providers.base import ChatMessage, ChatModel
from metasearch.services.prompts import WEB_SEARCH_RESPONSE_PROMPT, render_prompt

_TEMPLATE_RE = re.compile(r"""<template\b(?P<attrs>(?:[^>'"]|'[^']*'|"[^"]*")*?)/>""", re.DOTALL)
_ATTR_RE = re.compile(r"""(?P<key>[A-Za-z_][\w-]*)\s*=\s*(?:'(?P<single>[^']*)'|"(?P<double>[^"]*)")""")


class PromptBuilder:
    """Builds the numbered source context and the chat messages for the answer."""

    def __init__(self, response_prompt: str = WEB_SEARCH_RESPONSE_PROMPT) -> None:
        self._response_prompt = response_prompt

    def build_context(self, documents: Sequence[Document]) -> str:
        if not documents:
            return ""
        blocks = []
        for index, document in enumerate(documents, start=1):
            metadata = document.metadata or {}
            blocks.append(
                f"{index}. Title: {metadata.get('title', '')}\n"
                f"URL: {metadata.get('url', '')}\n"
                f"Content: {document.page_content}"
            )
        return "\n\n".join(blocks)

    def build_messages(
        self,
        query: Query,
        history: Sequence[ChatTurn],
        context: str,
        *,
        system_instructions: str = "",
        now: datetime | None = None,
    ) -> list[ChatMessage]:
        date = (now or datetime.now(timezone.utc)).isoformat()
        system = render_prompt(
            self._response_prompt,
            {"systemInstructions": system_instructions, "context": context, "date": date},
        )
        messages: list[ChatMessage] = [{"role": "system", "content": system}]
        messages.extend(turn.to_message() for turn in history)
        messages.append({"role": "user", "content": query.to_message_content()})
        return messages


def _attribute_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError:
        return raw


@dataclass(frozen=True)
class TemplateBlock:
    name: str
    data: dict[str, Any]


class TemplateScanner:
    """Finds complete ``<template name=... />`` blocks as answer text streams in.

    Text is passed through untouched; the scanner only reports each block once.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._scanned = 0

    def feed(self, text: str) -> Iterator[TemplateBlock]:
        self._buffer += text
        for match in _TEMPLATE_RE.finditer(self._buffer, self._scanned):
            self._scanned = match.end()
            attrs = {
                attr.group("key"): _attribute_value(
                    attr.group("single") if attr.group("single") is not None else attr.group("double")
                )
                for attr in _ATTR_RE.finditer(match.group("attrs"))
            }
            name = attrs.pop("name", None)
            if isinstance(name, str) and name:
                yield TemplateBlock(name=name, data=attrs)


class AnswerSynthesizer:
    """Streams the model's answer for a query over the reranked documents."""

    _logger = get_logger("generation")

    def __init__(self, llm: ChatModel, prompt_builder: PromptBuilder | None = None) -> None:
        self._llm = llm
        self._prompt_builder = prompt_builder or PromptBuilder()

    async def stream(
        self,
        query: Query,
        history: Sequence[ChatTurn],
        documents: Sequence[Document],
        *,
        system_instructions: str = "",
    ) -> AsyncIterator[str]:
        context = self._prompt_builder.build_context(documents)
        messages = self._prompt_builder.build_messages(
            query,
            history,
            context,
            system_instructions=system_instructions,
        )
        start = time.perf_counter()
        characters = 0
        async for chunk in self._llm.stream(messages):
            if not chunk:
                continue
            characters += len(chunk)
            yield chunk
        duration = time.perf_counter() - start
        PipelineMetrics.observe_generation(duration)
        self._logger.info(
            "generation.complete",
            duration_seconds=duration,
            source_count=len(documents),
            characters=characters,
        )
