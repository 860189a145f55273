"""Shared domain models used across the MetaSearch pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Mapping, Sequence, Tuple, Union

from langchain_core.documents import Document

FILE_SOURCE_URL = "File"
SUMMARIZE_QUERY = "summarize"


class OptimizationMode(str, Enum):
    """Latency/thoroughness tradeoff selected by the caller."""

    SPEED = "speed"
    BALANCED = "balanced"
    QUALITY = "quality"


@dataclass(frozen=True)
class ChatTurn:
    """One prior message of the conversation."""

    role: Literal["user", "assistant"]
    content: str

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class FileChunk:
    """Pre-extracted chunk of an uploaded file with its precomputed embedding."""

    owner_file_name: str
    content: str
    embedding: Tuple[float, ...]
    file_id: str = ""

    def to_document(self) -> Document:
        return Document(page_content=self.content, metadata={"title": self.owner_file_name, "url": FILE_SOURCE_URL})


@dataclass(frozen=True)
class RankedItem:
    """Document scored against the query; only lives inside a rerank call.

    ``similarity`` is None for web documents passed through unscored in speed mode.
    """

    document: Document
    similarity: float | None


@dataclass(frozen=True)
class ImagePart:
    """Inline image attached to a vision-capable turn, as a data or http URL."""

    url: str

    def to_message_part(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


@dataclass(frozen=True)
class TextQuery:
    text: str

    def to_message_content(self) -> str:
        return self.text


@dataclass(frozen=True)
class MultimodalQuery:
    text: str
    images: Tuple[ImagePart, ...] = ()

    def to_message_content(self) -> list[dict[str, Any]]:
        parts: list[dict[str, Any]] = [{"type": "text", "text": self.text}]
        parts.extend(image.to_message_part() for image in self.images)
        return parts


Query = Union[TextQuery, MultimodalQuery]


def build_query(text: str, images: Sequence[ImagePart] = ()) -> Query:
    """Return a multimodal query only when images are actually attached."""

    if images:
        return MultimodalQuery(text=text, images=tuple(images))
    return TextQuery(text=text)


@dataclass(frozen=True)
class PipelineConfig:
    """Per-focus-mode behaviour of the pipeline; read-only during a request."""

    search_web: bool
    rerank: bool
    query_generator_prompt: str
    response_prompt: str
    rerank_threshold: float = 0.3
    query_generator_few_shots: Tuple[Tuple[str, str], ...] = ()
    active_engines: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SearchOutcome:
    """Working set produced by source acquisition for one turn."""

    query: str
    documents: Sequence[Document] = field(default_factory=tuple)


def serialize_document(document: Document) -> dict[str, Any]:
    """Wire shape of a document inside a ``sources`` event."""

    metadata: Mapping[str, Any] = document.metadata or {}
    return {"pageContent": document.page_content, "metadata": dict(metadata)}
