"""Fetch linked pages, split them into chunks and merge the chunks per URL."""

from __future__ import annotations

import asyncio
import os
import re
import tempfile
import unicodedata
from dataclasses import dataclass
from html import unescape
from pathlib import Path
from typing import Iterable, List, Sequence
from urllib.parse import urlparse

import httpx
from bs4 import BeautifulSoup
from langchain_community.document_loaders import PyPDFLoader
from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from metasearch.config import Settings
from metasearch.errors import DocumentFetchError
from metasearch.metrics.observability import PipelineMetrics, TimedSection, get_logger
from metasearch.providers.base import ChatModel
from metasearch.services.prompts import DOCUMENT_SUMMARIZER_PROMPT, render_prompt

MAX_CHUNKS_PER_GROUP = 10

_logger = get_logger("fetch")


@dataclass(frozen=True)
class FetchConfig:
    """Limits applied to every link download."""

    timeout_s: float = 15.0
    max_bytes: int = 2_000_000
    max_chars: int = 100_000
    chunk_size: int = 1000
    chunk_overlap: int = 100
    user_agent: str = "metasearch/0.1"


def _is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _normalize_text(raw: str) -> str:
    normalized = unicodedata.normalize("NFKC", raw)
    normalized = normalized.replace("\u00a0", " ")
    normalized = re.sub(r"[ \t]+\n", "\n", normalized)
    normalized = re.sub(r"\n{3,}", "\n\n", normalized)
    return normalized.strip()


def html_to_text(html: str) -> tuple[str | None, str]:
    """Return ``(title, readable text)`` for an HTML page."""

    soup = BeautifulSoup(html or "", "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()

    title = None
    if soup.title and soup.title.string:
        title = unescape(str(soup.title.string)).strip() or None

    root = soup.body or soup
    text = unescape(root.get_text("\n", strip=True))
    return title, _normalize_text(text)


def _pdf_to_text(data: bytes) -> str:
    handle, name = tempfile.mkstemp(suffix=".pdf")
    try:
        with os.fdopen(handle, "wb") as stream:
            stream.write(data)
        pages = PyPDFLoader(name).load()
    finally:
        Path(name).unlink(missing_ok=True)
    return _normalize_text("\n\n".join(page.page_content for page in pages))


async def _read_limited(response: httpx.Response, max_bytes: int) -> tuple[bytes, bool]:
    buf = bytearray()
    truncated = False
    async for chunk in response.aiter_bytes():
        if not chunk:
            continue
        remaining = max_bytes - len(buf)
        if len(chunk) > remaining:
            buf.extend(chunk[:remaining])
            truncated = True
            break
        buf.extend(chunk)
    return bytes(buf), truncated


def group_documents(chunks: Iterable[Document]) -> list[Document]:
    """Merge chunks that share a URL, at most ``MAX_CHUNKS_PER_GROUP`` per merged document.

    Chunks are concatenated in input order with a blank line between them and the
    merged document records how many chunks it holds in ``metadata["totalDocs"]``.
    When a group is full the next chunk for that URL opens a new group. The input
    is never mutated, so grouping the same chunks twice gives identical output.
    """

    groups: List[Document] = []
    open_groups: dict[str, int] = {}
    for chunk in chunks:
        url = str(chunk.metadata.get("url", ""))
        index = open_groups.get(url)
        if index is None:
            metadata = dict(chunk.metadata)
            metadata["totalDocs"] = 1
            groups.append(Document(page_content=chunk.page_content, metadata=metadata))
            open_groups[url] = len(groups) - 1
            continue
        group = groups[index]
        total = int(group.metadata["totalDocs"]) + 1
        groups[index] = Document(
            page_content=f"{group.page_content}\n\n{chunk.page_content}",
            metadata={**group.metadata, "totalDocs": total},
        )
        if total >= MAX_CHUNKS_PER_GROUP:
            del open_groups[url]
    return groups


class DocumentFetcher:
    """Downloads links over HTTP and turns them into chunked LangChain documents."""

    def __init__(self, config: FetchConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config or FetchConfig()
        self._transport = transport
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=self._config.chunk_size,
            chunk_overlap=self._config.chunk_overlap,
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> "DocumentFetcher":
        config = FetchConfig(
            timeout_s=settings.fetch_timeout_seconds,
            max_bytes=settings.max_fetch_bytes,
            max_chars=settings.max_fetch_chars,
            chunk_size=settings.fetch_chunk_size,
            chunk_overlap=settings.fetch_chunk_overlap,
            user_agent=settings.fetch_user_agent,
        )
        return cls(config, transport=transport)

    async def fetch_and_group(self, urls: Sequence[str]) -> list[Document]:
        """Fetch every URL and return the chunks merged per URL.

        Links that fail to download or yield no text are logged and skipped.
        Raises ``DocumentFetchError`` when no link produced any content.
        """

        unique_urls = list(dict.fromkeys(url.strip() for url in urls if url and url.strip()))
        if not unique_urls:
            raise DocumentFetchError("No links to fetch")

        with TimedSection(PipelineMetrics.observe_fetch):
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=httpx.Timeout(self._config.timeout_s),
                transport=self._transport,
            ) as client:
                results = await asyncio.gather(*(self._fetch_chunks(client, url) for url in unique_urls))

        chunks = [chunk for per_url in results for chunk in per_url]
        if not chunks:
            raise DocumentFetchError(f"Could not retrieve content from any of {len(unique_urls)} link(s)")
        grouped = group_documents(chunks)
        _logger.info("fetch.complete", links=len(unique_urls), chunks=len(chunks), documents=len(grouped))
        return grouped

    async def _fetch_chunks(self, client: httpx.AsyncClient, url: str) -> list[Document]:
        if not _is_http_url(url):
            _logger.warning("fetch.failed", url=url, error="not an http(s) URL")
            return []
        try:
            title, text = await self._download(client, url)
        except (httpx.HTTPError, DocumentFetchError) as exc:
            _logger.warning("fetch.failed", url=url, error=str(exc))
            return []
        if not text:
            _logger.warning("fetch.empty", url=url)
            return []
        metadata = {"title": title or url, "url": url}
        return [
            Document(page_content=piece, metadata=dict(metadata))
            for piece in self._splitter.split_text(text)
            if piece.strip()
        ]

    async def _download(self, client: httpx.AsyncClient, url: str) -> tuple[str | None, str]:
        headers = {
            "user-agent": self._config.user_agent,
            "accept": "text/html,application/pdf,text/plain;q=0.9,*/*;q=0.1",
        }
        async with client.stream("GET", url, headers=headers) as response:
            status = response.status_code
            raw_type = str(response.headers.get("content-type", "") or "").split(";", 1)[0].strip().lower()
            if status >= 400:
                raise DocumentFetchError(f"Fetch failed ({status})")
            data, truncated = await _read_limited(response, self._config.max_bytes)
            encoding = response.encoding or "utf-8"

        is_pdf = raw_type == "application/pdf" or (
            raw_type in ("", "application/octet-stream") and urlparse(url).path.lower().endswith(".pdf")
        )
        if is_pdf:
            if truncated:
                raise DocumentFetchError("PDF exceeds the download size limit")
            try:
                text = await asyncio.to_thread(_pdf_to_text, data)
            except Exception as exc:
                raise DocumentFetchError(f"Could not parse PDF: {exc}") from exc
            return f"PDF: {url}", text[: self._config.max_chars]

        decoded = data.decode(encoding, errors="replace")
        if "html" in raw_type or not raw_type:
            title, text = html_to_text(decoded)
        elif raw_type.startswith("text/") or "json" in raw_type:
            title, text = None, _normalize_text(decoded)
        else:
            raise DocumentFetchError(f"Unsupported content-type: {raw_type}")
        return title, text[: self._config.max_chars]


async def summarize(documents: Sequence[Document], question: str, llm: ChatModel) -> list[Document]:
    """Summarize each merged document concurrently with respect to ``question``.

    Failed summaries are logged and dropped; the survivors keep the input order.
    Raises ``DocumentFetchError`` if every summary failed.
    """

    if not documents:
        return []

    async def _summarize_one(document: Document) -> Document:
        prompt = render_prompt(DOCUMENT_SUMMARIZER_PROMPT, {"query": question, "text": document.page_content})
        summary = await llm.invoke([{"role": "user", "content": prompt}])
        return Document(
            page_content=summary.strip(),
            metadata={"title": document.metadata.get("title", ""), "url": document.metadata.get("url", "")},
        )

    outcomes = await asyncio.gather(*(_summarize_one(doc) for doc in documents), return_exceptions=True)
    summaries: list[Document] = []
    for document, outcome in zip(documents, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            _logger.warning("fetch.summary_failed", url=document.metadata.get("url"), error=str(outcome))
            continue
        summaries.append(outcome)
    if not summaries:
        raise DocumentFetchError(f"Summarization failed for all {len(documents)} document(s)")
    _logger.info("fetch.summarized", documents=len(documents), summarized=len(summaries))
    return summaries
