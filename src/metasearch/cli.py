"""CLI that runs one MetaSearch turn and prints the NDJSON event stream."""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence, TextIO

import uvicorn

from metasearch.api.dependencies import AppDependencies, build_dependencies
from metasearch.config import Settings, get_settings
from metasearch.errors import MetaSearchError
from metasearch.metrics.observability import configure_logging
from metasearch.models import OptimizationMode
from metasearch.services.focus import DEFAULT_FOCUS_MODE
from metasearch.streaming import EventType


def _model_ref(value: str | None) -> tuple[str, str] | None:
    if not value:
        return None
    provider_id, sep, key = value.partition(":")
    if not sep or not provider_id or not key:
        raise argparse.ArgumentTypeError(f"expected PROVIDER:MODEL, got {value!r}")
    return provider_id, key


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask MetaSearch a question and stream the cited answer.")
    parser.add_argument("query", help="Question to answer")
    parser.add_argument("--focus-mode", default=DEFAULT_FOCUS_MODE, help="Focus mode profile (default: webSearch)")
    parser.add_argument(
        "--optimization-mode",
        choices=[mode.value for mode in OptimizationMode],
        default=OptimizationMode.BALANCED.value,
        help="Latency/thoroughness tradeoff",
    )
    parser.add_argument("--chat-model", type=_model_ref, default=None, help="PROVIDER:MODEL for the chat model")
    parser.add_argument("--embedding-model", type=_model_ref, default=None, help="PROVIDER:MODEL for embeddings")
    parser.add_argument("--file", dest="files", action="append", default=[], help="Uploaded file id (repeatable)")
    parser.add_argument("--system-instructions", default="", help="Extra instructions for the answer")
    return parser.parse_args(argv)


async def run(
    args: argparse.Namespace,
    settings: Settings,
    dependencies: AppDependencies,
    out: TextIO = sys.stdout,
) -> int:
    pipeline = dependencies.build_pipeline(
        settings,
        focus_mode=args.focus_mode,
        chat_model=args.chat_model,
        embedding_model=args.embedding_model,
    )
    stream = pipeline.search_and_answer(
        args.query,
        (),
        optimization_mode=OptimizationMode(args.optimization_mode),
        file_ids=args.files,
        system_instructions=args.system_instructions,
        end_event=EventType.DONE,
    )
    exit_code = 0
    async for event in stream.events():
        out.write(event.to_ndjson())
        out.flush()
        if event.type == EventType.ERROR:
            exit_code = 1
    return exit_code


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    settings = get_settings()
    try:
        configure_logging(settings.log_level, json_logs=settings.log_json)
        dependencies = build_dependencies(settings)
        return asyncio.run(run(args, settings, dependencies))
    except MetaSearchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


def parse_serve_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the MetaSearch HTTP API.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def serve(argv: Sequence[str] | None = None) -> int:
    """Start the API server with settings from the environment."""

    from metasearch.api.app import create_app

    args = parse_serve_args(argv if argv is not None else sys.argv[1:])
    try:
        app = create_app(settings=get_settings())
    except MetaSearchError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual execution
    sys.exit(main())
