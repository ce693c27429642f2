from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from digg_rss.metrics.metrics import Metrics
from digg_rss.storage.types import FeedSelector, PostRecord
from digg_rss.upstream.errors import UpstreamExhausted
from digg_rss.upstream.graphql import GraphQLClient, PostsDecoded
from digg_rss.utils import iso_millis, now_utc


logger = logging.getLogger(__name__)


DECISION_ACCEPT = "accept"
DECISION_FALLBACK = "fallback"
DECISION_CONTINUE = "continue"


@dataclass(frozen=True)
class Attempt:
    window_hours: int
    variant: int
    where: dict


@dataclass(frozen=True)
class EngineResult:
    records: list[PostRecord]
    attempts_made: int
    accepted: bool


def community_where_variants(since: str, slug: str) -> list[dict]:
    # The community filter field is undocumented upstream; try each known shape.
    return [
        {"createdDate_GT": since, "communitySlug": slug},
        {"createdDate_GT": since, "communitySlug_EQ": slug},
        {"createdDate_GT": since, "community": {"slug": slug}},
        {"createdDate_GT": since, "community": {"slug_EQ": slug}},
    ]


def plan_attempts(
    selector: FeedSelector,
    windows_hours: tuple[int, ...],
    now: datetime,
) -> list[Attempt]:
    attempts: list[Attempt] = []
    for hours in windows_hours:
        since = iso_millis(now - timedelta(hours=hours))
        if selector.is_all:
            variants = [{"createdDate_GT": since}]
        else:
            variants = community_where_variants(since, selector.community_slug or "")
        for idx, where in enumerate(variants, start=1):
            attempts.append(Attempt(window_hours=hours, variant=idx, where=where))
    return attempts


class QueryEngine:
    """Walks the attempt plan until a good-enough page of posts turns up."""

    def __init__(
        self,
        client: GraphQLClient,
        all_windows_hours: tuple[int, ...],
        community_windows_hours: tuple[int, ...],
        good_enough_min: int = 5,
        metrics: Metrics | None = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._client = client
        self._all_windows = all_windows_hours
        self._community_windows = community_windows_hours
        self._good_enough_min = good_enough_min
        self._metrics = metrics
        self._clock = clock

    def threshold(self, limit: int) -> int:
        return min(limit, self._good_enough_min)

    def plan(self, selector: FeedSelector) -> list[Attempt]:
        windows = self._all_windows if selector.is_all else self._community_windows
        return plan_attempts(selector, windows, self._clock())

    async def fetch(self, selector: FeedSelector, limit: int) -> EngineResult:
        threshold = self.threshold(limit)
        best: list[PostRecord] | None = None
        last_error: object = None
        made = 0

        for attempt in self.plan(selector):
            made += 1
            result = await self._client.fetch_posts(limit, attempt.where)

            if isinstance(result, PostsDecoded):
                count = len(result.records)
                if count >= threshold:
                    decision = DECISION_ACCEPT
                else:
                    decision = DECISION_FALLBACK
                    if best is None or count > len(best):
                        best = result.records
            else:
                decision = DECISION_CONTINUE
                last_error = result.payload
                logger.info(
                    "upstream attempt failed window=%sh variant=%s type=%s",
                    attempt.window_hours,
                    attempt.variant,
                    result.error_type,
                )

            if self._metrics is not None:
                self._metrics.upstream_attempts_total.labels(decision=decision).inc()

            if decision == DECISION_ACCEPT:
                logger.debug(
                    "upstream accepted window=%sh variant=%s records=%s",
                    attempt.window_hours,
                    attempt.variant,
                    len(result.records),
                )
                return EngineResult(records=result.records[:limit], attempts_made=made, accepted=True)

        if best is None:
            logger.warning("upstream exhausted after %s attempts", made)
            raise UpstreamExhausted(last_error, made)

        logger.info("upstream fallback: %s records after %s attempts", len(best), made)
        return EngineResult(records=best[:limit], attempts_made=made, accepted=False)
