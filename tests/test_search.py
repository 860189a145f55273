"""Search backends and the ordered fallback service, driven through httpx.MockTransport."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from metasearch.config import Settings
from metasearch.errors import ConfigurationError
from metasearch.search import (
    BrightDataSearchBackend,
    FallbackSearchService,
    ParallelSearchBackend,
    SearchBackendError,
    SearchUnavailableError,
    SearxngSearchBackend,
)
from metasearch.search.brightdata import parse_html_results, parse_serp_body

PARALLEL_RESULTS = {
    "results": [
        {"title": "Docker docs", "url": "https://docs.docker.com", "excerpts": ["Docker is", "a platform"]},
        {"title": "Wikipedia", "url": "https://en.wikipedia.org/wiki/Docker", "content": "Docker software"},
        {"title": None, "url": "https://example.com/untitled", "content": None},
    ]
}

GOOGLE_HTML = """
<html><body>
  <div class="g">
    <a href="/url?q=https://docs.docker.com/get-started/&sa=U"><h3>Get started with Docker</h3></a>
    <div class="VwiC3b">Docker is an open platform.</div>
  </div>
  <div jscontroller="abc" lang="en">
    <a href="https://www.docker.com/"><h3>Docker: Accelerated Container Application Development</h3></a>
    <div data-sncf="1">Build, share and run.</div>
  </div>
  <div class="g"><a href="https://www.google.com/maps"><h3>Maps</h3></a></div>
  <div class="g"><a href="https://www.youtube.com/watch?v=1"><h3>Video</h3></a></div>
</body></html>
"""


def test_parallel_request_shape_and_normalization():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=PARALLEL_RESULTS)

    backend = ParallelSearchBackend("secret", transport=httpx.MockTransport(handler))
    response = asyncio.run(backend.search("What is Docker", 20))

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1beta/search"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["parallel-beta"] == "search-extract-2025-10-10"
    assert json.loads(request.content) == {"objective": "What is Docker", "max_results": 20}

    first, second, third = response.results
    assert first.content == "Docker is\na platform"
    assert second.content == "Docker software"
    assert third.title == "" and third.content == ""


def test_parallel_http_error_carries_status():
    transport = httpx.MockTransport(lambda request: httpx.Response(403, text="forbidden"))
    backend = ParallelSearchBackend("secret", transport=transport)
    with pytest.raises(SearchBackendError) as excinfo:
        asyncio.run(backend.search("q", 5))
    assert excinfo.value.status_code == 403
    assert excinfo.value.backend == "parallel"


def test_brightdata_wraps_google_query_and_reads_json_body():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        body = {"organic_results": [{"title": "Docker", "url": "https://docker.com", "snippet": "Containers"}]}
        return httpx.Response(200, json={"status_code": 200, "headers": {}, "body": json.dumps(body)})

    backend = BrightDataSearchBackend("key", transport=httpx.MockTransport(handler))
    response = asyncio.run(backend.search("what is docker", 20))

    payload = seen[0]
    assert payload["zone"] == "serp_api1"
    assert payload["url"] == "https://www.google.com/search?q=what+is+docker&num=20"
    assert payload["country"] == "us"
    assert [r.to_dict() for r in response.results] == [
        {"title": "Docker", "url": "https://docker.com", "content": "Containers"}
    ]


def test_brightdata_upstream_failure_is_backend_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status_code": 429, "headers": {"x-brd-err-msg": "quota exceeded"}})

    backend = BrightDataSearchBackend("key", transport=httpx.MockTransport(handler))
    with pytest.raises(SearchBackendError) as excinfo:
        asyncio.run(backend.search("q", 10))
    assert excinfo.value.status_code == 429
    assert "quota exceeded" in str(excinfo.value)


def test_parse_html_results_unwraps_links_and_skips_google_and_youtube():
    results = parse_html_results(GOOGLE_HTML)
    assert results == [
        {
            "url": "https://docs.docker.com/get-started/",
            "title": "Get started with Docker",
            "snippet": "Docker is an open platform.",
        },
        {
            "url": "https://www.docker.com/",
            "title": "Docker: Accelerated Container Application Development",
            "snippet": "Build, share and run.",
        },
    ]


def test_parse_serp_body_accepts_list_and_results_shapes():
    listed = parse_serp_body([{"link": "https://a.example", "title": "A", "description": "alpha"}])
    assert [r.to_dict() for r in listed] == [{"title": "A", "url": "https://a.example", "content": "alpha"}]

    nested = parse_serp_body({"results": [{"url": "https://b.example", "title": "B"}]})
    assert nested[0].content == ""


def test_searxng_sends_engines_and_truncates():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        results = [{"title": f"t{i}", "url": f"https://r.example/{i}", "content": "c"} for i in range(5)]
        return httpx.Response(200, json={"results": results, "suggestions": ["docker compose"]})

    backend = SearxngSearchBackend("http://searx.local/", transport=httpx.MockTransport(handler))
    response = asyncio.run(backend.search("docker", 3, engines=("reddit", "youtube")))

    params = seen[0].url.params
    assert params["format"] == "json"
    assert params["q"] == "docker"
    assert params["engines"] == "reddit,youtube"
    assert len(response.results) == 3
    assert list(response.suggestions) == ["docker compose"]


@pytest.mark.parametrize("status", [429, 403, 500])
def test_fallback_uses_secondary_after_primary_rejects(status: int):
    calls: list[tuple[str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        calls.append((request.url.host, body))
        if request.url.host == "api.brightdata.com":
            return httpx.Response(status, text="rejected")
        results = [
            {"title": "One", "url": "https://one.example", "content": "1"},
            {"title": "Two", "url": "https://two.example", "excerpts": ["2"]},
            {"title": "Three", "url": "https://three.example", "content": None},
        ]
        return httpx.Response(200, json={"results": results})

    settings = Settings(environment="test", brightdata_api_key="bd", parallel_api_key="pk")
    service = FallbackSearchService.from_settings(settings, transport=httpx.MockTransport(handler))
    assert service.backend_names == ["brightdata", "parallel"]

    response = asyncio.run(service.search("What is Docker", 20))

    assert [host for host, _ in calls] == ["api.brightdata.com", "api.parallel.ai"]
    assert calls[1][1] == {"objective": "What is Docker", "max_results": 20}
    assert [r.to_dict() for r in response.results] == [
        {"title": "One", "url": "https://one.example", "content": "1"},
        {"title": "Two", "url": "https://two.example", "content": "2"},
        {"title": "Three", "url": "https://three.example", "content": ""},
    ]


def test_fallback_on_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.parallel.ai":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"results": [{"title": "S", "url": "https://s.example", "content": "s"}]})

    settings = Settings(environment="test", parallel_api_key="pk", searxng_url="http://searx.local")
    service = FallbackSearchService.from_settings(settings, transport=httpx.MockTransport(handler))
    response = asyncio.run(service.search("q", 20))
    assert [r.url for r in response.results] == ["https://s.example"]


def test_all_backends_failing_raises_unavailable():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    settings = Settings(environment="test", brightdata_api_key="bd", parallel_api_key="pk")
    service = FallbackSearchService.from_settings(settings, transport=transport)
    with pytest.raises(SearchUnavailableError):
        asyncio.run(service.search("q", 20))


def test_no_backend_configured_is_configuration_error():
    service = FallbackSearchService.from_settings(Settings(environment="test"))
    with pytest.raises(ConfigurationError):
        asyncio.run(service.search("q", 20))
