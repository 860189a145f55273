"""Chat history conversion and formatting."""

from __future__ import annotations

from typing import Iterable, Sequence

from metasearch.models import ChatTurn

_ROLE_ALIASES = {"human": "user", "user": "user", "assistant": "assistant", "ai": "assistant"}


def parse_history(pairs: Iterable[Sequence[str]]) -> list[ChatTurn]:
    """Turn wire ``[role, content]`` pairs into turns; anything not human/user is the assistant."""

    turns: list[ChatTurn] = []
    for role, content in pairs:
        turns.append(ChatTurn(role=_ROLE_ALIASES.get(role, "assistant"), content=str(content or "")))
    return turns


def format_chat_history(history: Sequence[ChatTurn]) -> str:
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history)
