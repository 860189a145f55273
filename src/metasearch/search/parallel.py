"""Parallel AI search backend."""

from __future__ import annotations

from typing import Sequence

import httpx

from metasearch.search.base import SearchBackendError, SearchResponse, SearchResult, request_json

PARALLEL_BETA_HEADER = "search-extract-2025-10-10"


class ParallelSearchBackend:
    """POSTs an ``objective`` to Parallel's search endpoint with bearer auth."""

    name = "parallel"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.parallel.ai",
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        data = await request_json(
            self.name,
            "POST",
            f"{self._base_url}/v1beta/search",
            timeout_s=self._timeout_s,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
                "parallel-beta": PARALLEL_BETA_HEADER,
            },
            json_body={"objective": query, "max_results": max_results},
        )
        if not isinstance(data, dict):
            raise SearchBackendError(self.name, "unexpected response shape")
        results = [
            SearchResult.normalize(
                item.get("title"),
                item.get("url"),
                item.get("content") or "\n".join(item.get("excerpts") or []),
            )
            for item in data.get("results") or []
            if isinstance(item, dict)
        ]
        return SearchResponse(results=results, suggestions=tuple(data.get("suggestions") or ()))
