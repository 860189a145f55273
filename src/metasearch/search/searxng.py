"""SearXNG metasearch backend."""

from __future__ import annotations

from typing import Sequence

import httpx

from metasearch.search.base import SearchBackendError, SearchResponse, SearchResult, request_json


class SearxngSearchBackend:
    """Queries a self-hosted SearXNG instance through its JSON API."""

    name = "searxng"

    def __init__(
        self,
        base_url: str,
        *,
        language: str | None = None,
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._language = language
        self._timeout_s = timeout_s
        self._transport = transport

    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        params: dict[str, str] = {"format": "json", "q": query}
        if engines:
            params["engines"] = ",".join(engines)
        if self._language:
            params["language"] = self._language
        data = await request_json(
            self.name,
            "GET",
            f"{self._base_url}/search",
            timeout_s=self._timeout_s,
            transport=self._transport,
            params=params,
        )
        if not isinstance(data, dict):
            raise SearchBackendError(self.name, "unexpected response shape")
        results = [
            SearchResult.normalize(item.get("title"), item.get("url"), item.get("content"))
            for item in data.get("results") or []
            if isinstance(item, dict)
        ]
        return SearchResponse(results=results[:max_results], suggestions=tuple(data.get("suggestions") or ()))
