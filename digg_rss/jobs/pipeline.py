from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from digg_rss.cache import CacheBackend, MemoryCache
from digg_rss.config import Config
from digg_rss.crawler.http_fetcher import TldrFetcher
from digg_rss.metrics.metrics import Metrics
from digg_rss.rss.assembler import FeedAssembler
from digg_rss.rss.builder import build_rss
from digg_rss.storage.types import FeedParams, FeedSelector
from digg_rss.upstream.engine import QueryEngine
from digg_rss.upstream.graphql import GraphQLClient


logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: Config
    cache: CacheBackend
    graphql: GraphQLClient
    engine: QueryEngine
    tldr: TldrFetcher | None
    assembler: FeedAssembler
    metrics: Metrics

    async def aclose(self) -> None:
        await self.graphql.aclose()
        if self.tldr is not None:
            await self.tldr.aclose()


def build_app_context(
    config: Config,
    cache: CacheBackend | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AppContext:
    """Wire clients, cache and metrics; ``transport`` replaces the network in tests."""
    if cache is None:
        cache = MemoryCache()
    metrics = Metrics()

    graphql = GraphQLClient(
        endpoint=config.graphql_endpoint,
        user_agent=config.user_agent,
        timeout_seconds=config.http_timeout_seconds,
        preview_field=config.preview_field,
        transport=transport,
    )

    engine = QueryEngine(
        client=graphql,
        all_windows_hours=config.all_windows_hours,
        community_windows_hours=config.community_windows_hours,
        good_enough_min=config.good_enough_min,
        metrics=metrics,
    )

    tldr = None
    if config.tldr_enabled:
        tldr = TldrFetcher(
            cache=cache,
            user_agent=config.user_agent,
            timeout_seconds=config.http_timeout_seconds,
            cache_ttl_seconds=config.tldr_cache_ttl_seconds,
            max_attempts=config.tldr_fetch_attempts,
            metrics=metrics,
            transport=transport,
        )

    return AppContext(
        config=config,
        cache=cache,
        graphql=graphql,
        engine=engine,
        tldr=tldr,
        assembler=FeedAssembler(config.site_base_url, tldr),
        metrics=metrics,
    )


async def build_feed(ctx: AppContext, selector: FeedSelector, params: FeedParams) -> str:
    """Query upstream, assemble items and render the RSS document.

    Raises ``UpstreamExhausted`` when no attempt produced usable data.
    """
    with ctx.metrics.feed_build_seconds.time():
        result = await ctx.engine.fetch(selector, params.limit)
        channel = await ctx.assembler.assemble(selector, result.records, params.tldr_max)
        xml = build_rss(channel)

    logger.info(
        "feed built selector=%s items=%s attempts=%s accepted=%s",
        selector.community_slug or selector.kind,
        len(channel.items),
        result.attempts_made,
        result.accepted,
    )
    return xml
