"""
Request router and cache gateway.

Maps an incoming URL to a feed selector, serves cached responses, and on a
miss builds the feed and schedules the cache write in the background.
"""
from __future__ import annotations

import asyncio
import logging
import re
import traceback
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlsplit, urlunsplit

from digg_rss.jobs.pipeline import AppContext, build_feed
from digg_rss.storage.types import CacheEntry, FeedParams, FeedSelector
from digg_rss.upstream.errors import UpstreamExhausted
from digg_rss.utils import clamp_int, safe_json


logger = logging.getLogger(__name__)


LEGACY_PREFIX = "/rss/digg/"
CANONICAL_PREFIX = "/rss/"
ALL_FEED_PATH = "/rss/all-digg-trending.xml"
_COMMUNITY_PATH_RE = re.compile(r"^/rss/([a-z0-9-]+)\.xml$", re.IGNORECASE)

DEFAULT_LIMIT, MIN_LIMIT, MAX_LIMIT = 10, 1, 50
DEFAULT_TLDR, MIN_TLDR, MAX_TLDR = 220, 80, 500

RSS_CONTENT_TYPE = "application/rss+xml; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class FeedResponse:
    status: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def text(cls, status: int, message: str) -> "FeedResponse":
        return cls(status=status, body=message.encode("utf-8"), headers={"content-type": TEXT_CONTENT_TYPE})


def normalize_path(path: str) -> str:
    if path.startswith(LEGACY_PREFIX):
        return CANONICAL_PREFIX + path[len(LEGACY_PREFIX):]
    return path


def resolve_selector(path: str) -> FeedSelector | None:
    if path == ALL_FEED_PATH:
        return FeedSelector.all()
    m = _COMMUNITY_PATH_RE.match(path)
    if m:
        return FeedSelector.community(m.group(1))
    return None


def parse_params(query: str) -> FeedParams:
    qs = parse_qs(query, keep_blank_values=True)
    limit = (qs.get("limit") or [None])[0]
    tldr = (qs.get("tldr") or [None])[0]
    return FeedParams(
        limit=clamp_int(limit, DEFAULT_LIMIT, MIN_LIMIT, MAX_LIMIT),
        tldr_max=clamp_int(tldr, DEFAULT_TLDR, MIN_TLDR, MAX_TLDR),
    )


class FeedGateway:
    def __init__(self, ctx: AppContext) -> None:
        self._ctx = ctx
        self._pending: set[asyncio.Task] = set()

    def _outcome(self, outcome: str) -> None:
        self._ctx.metrics.feed_requests_total.labels(outcome=outcome).inc()

    async def handle(self, url: str) -> FeedResponse:
        try:
            return await self._handle(url)
        except Exception:
            logger.exception("unhandled error url=%s", url)
            self._outcome("error")
            return FeedResponse.text(500, "Worker error: " + traceback.format_exc())

    async def _handle(self, url: str) -> FeedResponse:
        parts = urlsplit(url)
        path = normalize_path(parts.path)

        selector = resolve_selector(path)
        if selector is None:
            self._outcome("not_found")
            return FeedResponse.text(404, "Not found")

        # Query string is part of the key: limit/tldr change the output.
        key = urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))

        cached = await self._cache_get(key)
        if cached is not None:
            self._ctx.metrics.cache_hits_total.inc()
            self._outcome("hit")
            return FeedResponse(status=cached.status, body=cached.body, headers=dict(cached.headers))
        self._ctx.metrics.cache_misses_total.inc()

        params = parse_params(parts.query)
        try:
            xml = await build_feed(self._ctx, selector, params)
        except UpstreamExhausted as e:
            self._outcome("upstream_error")
            dump = safe_json(e.last_error, self._ctx.config.error_dump_max_chars)
            return FeedResponse.text(502, "Upstream error: " + dump)

        ttl = self._ctx.config.feed_cache_ttl_seconds
        headers = {
            "content-type": RSS_CONTENT_TYPE,
            "cache-control": f"public, max-age={ttl}",
        }
        body = xml.encode("utf-8")
        self._schedule_write(key, CacheEntry(body=body, headers=headers), ttl)
        self._outcome("miss")
        return FeedResponse(status=200, body=body, headers=headers)

    async def _cache_get(self, key: str) -> CacheEntry | None:
        try:
            return await self._ctx.cache.get(key)
        except Exception:
            logger.warning("cache read failed key=%s", key, exc_info=True)
            return None

    def _schedule_write(self, key: str, entry: CacheEntry, ttl: int) -> None:
        task = asyncio.create_task(self._write(key, entry, ttl), name=f"cache_write:{key}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, key: str, entry: CacheEntry, ttl: int) -> None:
        try:
            await self._ctx.cache.put(key, entry, ttl)
        except Exception:
            self._ctx.metrics.cache_write_fail_total.inc()
            logger.warning("cache write failed key=%s", key, exc_info=True)

    async def drain(self) -> None:
        """Wait for in-flight cache writes, feed and TL;DR alike."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        if self._ctx.tldr is not None:
            await self._ctx.tldr.drain()
