import asyncio

import httpx

from digg_rss.cache import MemoryCache
from digg_rss.crawler.http_fetcher import TldrFetcher, tldr_cache_key
from digg_rss.crawler.parser import extract_description, extract_meta_content
from digg_rss.metrics.metrics import Metrics

from conftest import FakeUpstream, page_html


POST_URL = "https://digg.com/tech/abc/post"


def _fetch_many(upstream: FakeUpstream, cache: MemoryCache, calls: list[tuple[str, int]], **kwargs) -> list[str]:
    async def run():
        fetcher = TldrFetcher(cache, "ua", 5, transport=upstream.transport, **kwargs)
        try:
            out = []
            for url, n in calls:
                out.append(await fetcher.fetch(url, n))
                await fetcher.drain()
            return out
        finally:
            await fetcher.aclose()

    return asyncio.run(run())


def test_parser_prefers_og_description():
    html = page_html(og="From OG", description="From meta")
    assert extract_description(html) == "From OG"


def test_parser_falls_back_to_description():
    assert extract_description(page_html(description="Only meta")) == "Only meta"
    assert extract_description(page_html()) == ""
    assert extract_description("") == ""


def test_parser_decodes_entities():
    html = page_html(og="Tom &amp; Jerry&#39;s")
    assert extract_meta_content(html, "og:description", is_property=True) == "Tom & Jerry's"


def test_fetch_truncates_and_caches():
    upstream = FakeUpstream(pages={POST_URL: page_html(og="word " * 60)})
    cache = MemoryCache()
    out = _fetch_many(upstream, cache, [(POST_URL, 80), (POST_URL, 80)])

    assert out[0] == out[1]
    assert out[0].endswith("…")
    assert len(out[0]) <= 81
    assert upstream.page_calls == [POST_URL]
    assert len(cache) == 1


def test_cache_key_includes_budget():
    upstream = FakeUpstream(pages={POST_URL: page_html(og="Short summary")})
    cache = MemoryCache()
    _fetch_many(upstream, cache, [(POST_URL, 80), (POST_URL, 220)])
    assert len(upstream.page_calls) == 2
    assert tldr_cache_key(POST_URL, 80) == POST_URL + "#tldr=80"


def test_missing_meta_is_cached_as_empty():
    upstream = FakeUpstream(pages={POST_URL: page_html()})
    cache = MemoryCache()
    out = _fetch_many(upstream, cache, [(POST_URL, 220), (POST_URL, 220)])
    assert out == ["", ""]
    assert len(upstream.page_calls) == 1


def test_http_error_degrades_silently_without_caching():
    upstream = FakeUpstream(pages={})
    cache = MemoryCache()
    metrics = Metrics()
    out = _fetch_many(upstream, cache, [(POST_URL, 220), (POST_URL, 220)], metrics=metrics)
    assert out == ["", ""]
    assert len(upstream.page_calls) == 2
    assert len(cache) == 0
    assert metrics.registry.get_sample_value("tldr_fetch_total", {"result": "error"}) == 2


def test_transport_error_degrades_silently():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async def run():
        fetcher = TldrFetcher(MemoryCache(), "ua", 5, transport=httpx.MockTransport(handler))
        try:
            return await fetcher.fetch(POST_URL, 220)
        finally:
            await fetcher.aclose()

    assert asyncio.run(run()) == ""


def test_transport_errors_retried_when_configured():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, text=page_html(og="Second time lucky"))

    async def run():
        fetcher = TldrFetcher(MemoryCache(), "ua", 5, max_attempts=2, transport=httpx.MockTransport(handler))
        try:
            return await fetcher.fetch(POST_URL, 220)
        finally:
            await fetcher.aclose()

    assert asyncio.run(run()) == "Second time lucky"
    assert len(calls) == 2


def test_invalid_url_degrades_silently():
    upstream = FakeUpstream()
    metrics = Metrics()
    out = _fetch_many(upstream, MemoryCache(), [("https://digg.com/tech/abc/bad\x01slug", 220)], metrics=metrics)
    assert out == [""]
    assert upstream.page_calls == []
    assert metrics.registry.get_sample_value("tldr_fetch_total", {"result": "error"}) == 1


def test_cache_write_runs_in_background():
    upstream = FakeUpstream(pages={POST_URL: page_html(og="Background write")})
    cache = MemoryCache()

    async def run():
        fetcher = TldrFetcher(cache, "ua", 5, transport=upstream.transport)
        try:
            snippet = await fetcher.fetch(POST_URL, 220)
            before = len(cache)
            await fetcher.drain()
            return snippet, before, len(cache)
        finally:
            await fetcher.aclose()

    snippet, before, after = asyncio.run(run())
    assert snippet == "Background write"
    assert (before, after) == (0, 1)
