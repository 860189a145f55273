from __future__ import annotations

from metasearch.models import ChatTurn
from metasearch.services.history import format_chat_history, parse_history
from metasearch.services.prompts import render_prompt


def test_parse_history_maps_wire_roles():
    turns = parse_history([["human", "What is Docker?"], ["assistant", "A container runtime."]])
    assert turns == [
        ChatTurn(role="user", content="What is Docker?"),
        ChatTurn(role="assistant", content="A container runtime."),
    ]


def test_format_chat_history_one_line_per_turn():
    history = [ChatTurn(role="user", content="hi"), ChatTurn(role="assistant", content="hello")]
    assert format_chat_history(history) == "user: hi\nassistant: hello"
    assert format_chat_history([]) == ""


def test_render_prompt_leaves_other_braces_alone():
    template = 'data=\'[{"month":"Jan"}]\' {context} {date}'
    rendered = render_prompt(template, {"context": "CTX", "date": "2024-01-01"})
    assert rendered == 'data=\'[{"month":"Jan"}]\' CTX 2024-01-01'


def test_render_prompt_does_not_rescan_substituted_text():
    rendered = render_prompt("{context} | {date}", {"context": "see {date} and {missing}", "date": "2024-01-01"})
    assert rendered == "see {date} and {missing} | 2024-01-01"
