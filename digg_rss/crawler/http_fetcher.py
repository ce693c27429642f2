from __future__ import annotations

import asyncio
import logging

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from digg_rss.cache import CacheBackend
from digg_rss.crawler.parser import extract_description
from digg_rss.metrics.metrics import Metrics
from digg_rss.storage.types import CacheEntry
from digg_rss.utils import truncate_snippet


logger = logging.getLogger(__name__)


_TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def tldr_cache_key(post_url: str, tldr_max: int) -> str:
    return f"{post_url}#tldr={tldr_max}"


class TldrFetcher:
    """Best-effort TL;DR scrape of a post page; never raises."""

    def __init__(
        self,
        cache: CacheBackend,
        user_agent: str,
        timeout_seconds: int,
        cache_ttl_seconds: int = 3600,
        max_attempts: int = 1,
        metrics: Metrics | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cache = cache
        self._cache_ttl = cache_ttl_seconds
        self._max_attempts = max(1, max_attempts)
        self._metrics = metrics
        self._pending: set[asyncio.Task] = set()
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,*/*",
            },
        )

    async def aclose(self) -> None:
        await self.drain()
        await self._client.aclose()

    def _count(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.tldr_fetch_total.labels(result=result).inc()

    async def _get(self, url: str) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential_jitter(initial=0.5, max=5),
            reraise=True,
        ):
            with attempt:
                return await self._client.get(url)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def fetch(self, post_url: str, tldr_max: int) -> str:
        key = tldr_cache_key(post_url, tldr_max)
        try:
            cached = await self._cache.get(key)
        except Exception:
            logger.warning("tldr cache read failed url=%s", post_url, exc_info=True)
            cached = None
        if cached is not None:
            self._count("cache_hit")
            return cached.body.decode("utf-8")

        try:
            resp = await self._get(post_url)
            if not resp.is_success:
                logger.debug("tldr fetch status=%s url=%s", resp.status_code, post_url)
                self._count("error")
                return ""
            raw = extract_description(resp.text)
            snippet = truncate_snippet(raw, tldr_max) if raw else ""
            body = snippet.encode("utf-8")
        except httpx.HTTPError as e:
            logger.debug("tldr fetch failed url=%s err=%s", post_url, e)
            self._count("error")
            return ""
        except Exception:
            logger.warning("tldr fetch failed url=%s", post_url, exc_info=True)
            self._count("error")
            return ""
        self._count("found" if snippet else "empty")

        entry = CacheEntry(
            body=body,
            headers={
                "content-type": _TEXT_CONTENT_TYPE,
                "cache-control": f"public, max-age={self._cache_ttl}",
            },
        )
        self._schedule_write(key, entry)
        return snippet

    def _schedule_write(self, key: str, entry: CacheEntry) -> None:
        task = asyncio.create_task(self._write(key, entry), name=f"tldr_cache_write:{key}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, key: str, entry: CacheEntry) -> None:
        try:
            await self._cache.put(key, entry, self._cache_ttl)
        except Exception:
            logger.warning("tldr cache write failed key=%s", key, exc_info=True)

    async def drain(self) -> None:
        """Wait for in-flight cache writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
