from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


SELECTOR_ALL = "all"
SELECTOR_COMMUNITY = "community"


@dataclass(frozen=True)
class FeedSelector:
    kind: str
    community_slug: str | None = None

    @property
    def is_all(self) -> bool:
        return self.kind == SELECTOR_ALL

    @classmethod
    def all(cls) -> "FeedSelector":
        return cls(kind=SELECTOR_ALL)

    @classmethod
    def community(cls, slug: str) -> "FeedSelector":
        return cls(kind=SELECTOR_COMMUNITY, community_slug=slug.lower())


@dataclass(frozen=True)
class FeedParams:
    limit: int = 10
    tldr_max: int = 220


@dataclass(frozen=True)
class PostRecord:
    id: str
    title: str
    slug: str
    created_at: datetime | None
    external_url: str = ""
    community_slug: str | None = None
    community_name: str | None = None
    author: str | None = None
    preview: str = ""


@dataclass(frozen=True)
class Enclosure:
    url: str
    mime_type: str


@dataclass(frozen=True)
class FeedItem:
    title: str
    link: str
    guid: str
    pub_date: datetime | None
    description: str
    enclosure: Enclosure | None = None
    creator: str | None = None


@dataclass(frozen=True)
class FeedChannel:
    title: str
    link: str
    description: str
    items: list[FeedItem] = field(default_factory=list)


@dataclass(frozen=True)
class CacheEntry:
    body: bytes
    headers: dict[str, str]
    status: int = 200
