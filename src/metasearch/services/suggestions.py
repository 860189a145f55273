"""Follow-up question suggestions for a finished conversation."""

from __future__ import annotations

from typing import Sequence

from metasearch.metrics.observability import get_logger
from metasearch.models import ChatTurn
from metasearch.providers.base import ChatModel
from metasearch.services.classifier import parse_list_tag, strip_think_blocks
from metasearch.services.history import format_chat_history
from metasearch.services.prompts import SUGGESTION_GENERATOR_PROMPT, render_prompt

_logger = get_logger("suggestions")


async def generate_suggestions(history: Sequence[ChatTurn], llm: ChatModel) -> list[str]:
    prompt = render_prompt(SUGGESTION_GENERATOR_PROMPT, {"chat_history": format_chat_history(history)})
    raw = await llm.invoke([{"role": "user", "content": prompt}], temperature=0)
    suggestions = parse_list_tag(strip_think_blocks(raw), "suggestions")
    _logger.info("suggestions.complete", count=len(suggestions))
    return suggestions
