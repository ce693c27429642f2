from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union

import httpx

from digg_rss.storage.types import PostRecord
from digg_rss.upstream.errors import ERROR_DECODE, ERROR_GRAPHQL, ERROR_HTTP, ERROR_TRANSPORT


logger = logging.getLogger(__name__)


OPERATION_NAME = "PostsQuery"
SORT_TOP_N = "TOP_N"

_QUERY_TEMPLATE = """
query PostsQuery($first: Int, $where: PostWhere, $sort: PostSort) {
  posts(first: $first, where: $where, sort: $sort) {
    edges {
      node {
        _id
        title
        slug
        createdDate
        externalContent { url }
        community { name slug }
        account { username }%(extra)s
      }
    }
  }
}
"""

# Epoch values above this are milliseconds.
_EPOCH_MS_THRESHOLD = 100_000_000_000


@dataclass(frozen=True)
class PostsDecoded:
    records: list[PostRecord]
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class PostsDecodeError:
    error_type: str
    payload: object
    ok: bool = field(default=False, init=False)


PostsResult = Union[PostsDecoded, PostsDecodeError]


def build_posts_query(preview_field: str = "") -> str:
    extra = f"\n        {preview_field}" if preview_field else ""
    return (_QUERY_TEMPLATE % {"extra": extra}).strip()


def build_posts_payload(first: int, where: dict, preview_field: str = "") -> dict:
    return {
        "operationName": OPERATION_NAME,
        "query": build_posts_query(preview_field),
        "variables": {"first": first, "sort": SORT_TOP_N, "where": where},
    }


def parse_created(value: object) -> datetime | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _str_or_none(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _sub(node: dict, key: str) -> dict:
    value = node.get(key)
    return value if isinstance(value, dict) else {}


def decode_post_node(node: object, preview_field: str = "") -> PostRecord | None:
    if not isinstance(node, dict):
        return None
    raw_id = node.get("_id")
    if raw_id is None or str(raw_id) == "":
        return None

    community = _sub(node, "community")
    preview = node.get(preview_field) if preview_field else None

    return PostRecord(
        id=str(raw_id),
        title=str(node.get("title") or ""),
        slug=str(node.get("slug") or ""),
        created_at=parse_created(node.get("createdDate")),
        external_url=_str_or_none(_sub(node, "externalContent").get("url")) or "",
        community_slug=_str_or_none(community.get("slug")),
        community_name=_str_or_none(community.get("name")),
        author=_str_or_none(_sub(node, "account").get("username")),
        preview=preview if isinstance(preview, str) else "",
    )


def decode_posts_response(status_code: int, body: bytes | str, preview_field: str = "") -> PostsResult:
    """Decode a posts query response into records or a structured error."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        data = None

    if not isinstance(data, dict):
        return PostsDecodeError(ERROR_DECODE, {"status": status_code})

    if data.get("errors"):
        return PostsDecodeError(ERROR_GRAPHQL, data["errors"])

    if not 200 <= status_code < 300:
        return PostsDecodeError(ERROR_HTTP, data or {"status": status_code})

    edges = _sub(_sub(data, "data"), "posts").get("edges")
    if not isinstance(edges, list):
        return PostsDecodeError(ERROR_DECODE, data or {"status": status_code})

    records: list[PostRecord] = []
    for idx, edge in enumerate(edges):
        node = edge.get("node") if isinstance(edge, dict) else None
        record = decode_post_node(node, preview_field)
        if record is None:
            logger.warning("skipping malformed post edge index=%s", idx)
            continue
        records.append(record)
    return PostsDecoded(records=records)


class GraphQLClient:
    def __init__(
        self,
        endpoint: str,
        user_agent: str,
        timeout_seconds: int,
        preview_field: str = "",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._preview_field = preview_field
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_posts(self, first: int, where: dict) -> PostsResult:
        payload = build_posts_payload(first, where, self._preview_field)
        try:
            resp = await self._client.post(self._endpoint, json=payload)
        except httpx.HTTPError as e:
            detail = str(e).strip()[:240]
            return PostsDecodeError(ERROR_TRANSPORT, {"error": type(e).__name__, "detail": detail})
        return decode_posts_response(resp.status_code, resp.content, self._preview_field)
