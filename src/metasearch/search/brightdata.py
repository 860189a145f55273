"""BrightData SERP API backend (Google results, JSON or scraped HTML)."""

from __future__ import annotations

import json
from typing import Any, Sequence
from urllib.parse import parse_qs, quote_plus, urlparse

import httpx
from bs4 import BeautifulSoup

from metasearch.search.base import SearchBackendError, SearchResponse, SearchResult, request_json

_RESULT_SELECTOR = "div.g, div[jscontroller][lang]"
_SNIPPET_SELECTOR = 'div.VwiC3b, div[data-sncf="1"]'


class BrightDataSearchBackend:
    """Proxies a Google search through BrightData's ``/request`` endpoint."""

    name = "brightdata"

    def __init__(
        self,
        api_key: str,
        *,
        zone: str = "serp_api1",
        country: str = "us",
        base_url: str = "https://api.brightdata.com",
        timeout_s: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._zone = zone
        self._country = country
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._transport = transport

    async def search(self, query: str, max_results: int, *, engines: Sequence[str] = ()) -> SearchResponse:
        data = await request_json(
            self.name,
            "POST",
            f"{self._base_url}/request",
            timeout_s=self._timeout_s,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"},
            json_body={
                "zone": self._zone,
                "url": f"https://www.google.com/search?q={quote_plus(query)}&num={max_results}",
                "format": "json",
                "method": "GET",
                "country": self._country,
            },
        )
        if not isinstance(data, dict):
            raise SearchBackendError(self.name, "unexpected response shape")
        # the proxied upstream status is wrapped in the body
        upstream_status = data.get("status_code")
        if upstream_status != 200:
            headers = data.get("headers") or {}
            message = headers.get("x-brd-err-msg") or f"upstream returned status {upstream_status}"
            raise SearchBackendError(self.name, str(message), status_code=upstream_status)
        results = parse_serp_body(data.get("body"))
        return SearchResponse(results=results[:max_results])


def parse_serp_body(body: Any) -> list[SearchResult]:
    """Normalize a SERP body that may be structured JSON, a JSON string, or raw HTML."""

    parsed = body
    if isinstance(body, str):
        try:
            parsed = json.loads(body)
        except ValueError:
            parsed = {"organic_results": parse_html_results(body)}

    results: list[SearchResult] = []
    if isinstance(parsed, dict) and isinstance(parsed.get("organic_results"), list):
        for item in parsed["organic_results"]:
            if isinstance(item, dict) and item.get("url") and item.get("title"):
                results.append(
                    SearchResult.normalize(item.get("title"), item.get("url"), item.get("snippet") or item.get("description"))
                )
    if not results and isinstance(parsed, list):
        for item in parsed:
            if isinstance(item, dict) and (item.get("link") or item.get("url")):
                results.append(
                    SearchResult.normalize(
                        item.get("title") or item.get("heading"),
                        item.get("link") or item.get("url"),
                        item.get("snippet") or item.get("description") or item.get("text"),
                    )
                )
    if not results and isinstance(parsed, dict) and isinstance(parsed.get("results"), list):
        for item in parsed["results"]:
            if isinstance(item, dict) and (item.get("link") or item.get("url")):
                results.append(
                    SearchResult.normalize(
                        item.get("title"),
                        item.get("link") or item.get("url"),
                        item.get("snippet") or item.get("description"),
                    )
                )
    return results


def _unwrap_google_href(href: str) -> str:
    if "/url?q=" not in href:
        return href
    query = urlparse(href).query
    target = parse_qs(query).get("q", [None])[0]
    return target or href


def parse_html_results(html: str) -> list[dict[str, str]]:
    """Scrape organic results out of a Google results page."""

    soup = BeautifulSoup(html or "", "html.parser")
    results: list[dict[str, str]] = []
    for elem in soup.select(_RESULT_SELECTOR):
        link = elem.find("a")
        if link is None:
            continue
        url = _unwrap_google_href(str(link.get("href") or ""))
        heading = elem.find("h3")
        title = heading.get_text(strip=True) if heading is not None else ""
        snippet = "".join(node.get_text(strip=True) for node in elem.select(_SNIPPET_SELECTOR))
        if not url or not title or not url.startswith("http"):
            continue
        if "google.com" in url or "youtube.com/watch" in url:
            continue
        results.append({"url": url, "title": title, "snippet": snippet or title})
    return results
