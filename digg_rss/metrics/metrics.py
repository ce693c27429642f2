from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest


class Metrics:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.feed_requests_total = Counter(
            "feed_requests_total", "Feed requests by outcome", ["outcome"], registry=self.registry
        )
        self.cache_hits_total = Counter("feed_cache_hits_total", "Feed cache hits", registry=self.registry)
        self.cache_misses_total = Counter("feed_cache_misses_total", "Feed cache misses", registry=self.registry)
        self.cache_write_fail_total = Counter(
            "feed_cache_write_fail_total", "Failed background cache writes", registry=self.registry
        )

        self.upstream_attempts_total = Counter(
            "upstream_attempts_total", "GraphQL attempts by decision", ["decision"], registry=self.registry
        )
        self.tldr_fetch_total = Counter(
            "tldr_fetch_total", "TL;DR lookups by result", ["result"], registry=self.registry
        )

        self.feed_build_seconds = Histogram(
            "feed_build_seconds",
            "Time to build a feed on cache miss",
            buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
            registry=self.registry,
        )

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
