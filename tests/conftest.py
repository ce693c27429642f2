from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Callable

import httpx
import pytest

from digg_rss.config import Config


FIXED_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


def make_node(
    i: int,
    community: str = "tech",
    external: str | None = None,
    author: str | None = None,
    created: object = "2026-10-18T12:00:00.000Z",
) -> dict:
    return {
        "_id": f"{community}-abc{i}",
        "title": f"Post {i}",
        "slug": f"post-{i}",
        "createdDate": created,
        "externalContent": {"url": external} if external else None,
        "community": {"name": community.title(), "slug": community},
        "account": {"username": author} if author else None,
    }


def posts_response(nodes: list[dict]) -> httpx.Response:
    return httpx.Response(200, json={"data": {"posts": {"edges": [{"node": n} for n in nodes]}}})


def errors_response(message: str = "Unknown argument") -> httpx.Response:
    return httpx.Response(200, json={"errors": [{"message": message}]})


class FakeUpstream:
    """Stands in for both the GraphQL endpoint and the post pages."""

    def __init__(
        self,
        responder: Callable[[dict, int], httpx.Response] | None = None,
        pages: dict[str, str] | None = None,
    ) -> None:
        self.graphql_calls: list[dict] = []
        self.page_calls: list[str] = []
        self.pages = pages or {}
        self._responder = responder or (lambda payload, n: posts_response([make_node(i) for i in range(5)]))

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            payload = json.loads(request.content)
            self.graphql_calls.append(payload)
            return self._responder(payload, len(self.graphql_calls))

        url = str(request.url)
        self.page_calls.append(url)
        html = self.pages.get(url)
        if html is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=html, headers={"content-type": "text/html; charset=utf-8"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def wheres(self) -> list[dict]:
        return [c["variables"]["where"] for c in self.graphql_calls]


def page_html(og: str | None = None, description: str | None = None) -> str:
    metas = []
    if og is not None:
        metas.append(f'<meta property="og:description" content="{og}">')
    if description is not None:
        metas.append(f'<meta name="description" content="{description}">')
    return "<html><head><title>x</title>" + "".join(metas) + "</head><body></body></html>"


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()
