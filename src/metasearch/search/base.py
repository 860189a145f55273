"""Common shapes and errors for web search backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence

import httpx

from metasearch.errors import MetaSearchError


class SearchError(MetaSearchError):
    """Base class for search failures."""


class SearchBackendError(SearchError):
    """A single backend failed; the caller may try the next one."""

    def __init__(self, backend: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{backend} search failed: {message}")
        self.backend = backend
        self.status_code = status_code


class SearchUnavailableError(SearchError):
    """Every configured backend failed for a query."""


@dataclass(frozen=True)
class SearchResult:
    """Normalized search hit; ``content`` is never None."""

    title: str
    url: str
    content: str = ""

    @classmethod
    def normalize(cls, title: Any, url: Any, content: Any) -> "SearchResult":
        return cls(title=str(title or ""), url=str(url or ""), content=str(content or ""))

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "content": self.content}


@dataclass(frozen=True)
class SearchResponse:
    results: Sequence[SearchResult]
    suggestions: Sequence[str] = field(default_factory=tuple)


class SearchBackend(Protocol):
    """One external web search provider."""

    name: str

    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        """Return normalized results or raise ``SearchBackendError``."""


async def request_json(
    backend: str,
    method: str,
    url: str,
    *,
    timeout_s: float,
    transport: httpx.AsyncBaseTransport | None = None,
    headers: Mapping[str, str] | None = None,
    json_body: Any = None,
    params: Mapping[str, Any] | None = None,
) -> Any:
    """Perform one backend call, mapping every transport or HTTP failure to ``SearchBackendError``."""

    async with httpx.AsyncClient(timeout=httpx.Timeout(timeout_s), transport=transport, follow_redirects=True) as client:
        try:
            resp = await client.request(method, url, headers=headers, json=json_body, params=params)
        except (httpx.TimeoutException, httpx.HTTPError) as exc:
            raise SearchBackendError(backend, f"{type(exc).__name__}: {exc}") from exc
    if resp.status_code >= 400:
        raise SearchBackendError(
            backend,
            f"HTTP {resp.status_code} {resp.reason_phrase}: {resp.text[:400]}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise SearchBackendError(backend, "response was not valid JSON") from exc
