from __future__ import annotations

import asyncio
import logging

from digg_rss.crawler.http_fetcher import TldrFetcher
from digg_rss.media.youtube import THUMBNAIL_MIME_TYPE, extract_youtube_id, youtube_thumbnail_url
from digg_rss.storage.types import Enclosure, FeedChannel, FeedItem, FeedSelector, PostRecord
from digg_rss.utils import decode_entities, escape_xml_text, truncate_snippet


logger = logging.getLogger(__name__)


DEFAULT_COMMUNITY = "digg"
UNTITLED = "(untitled)"
DISCUSS_LABEL = "Discuss on Digg"


def canonical_post_url(site: str, record: PostRecord) -> str:
    comm = record.community_slug or DEFAULT_COMMUNITY
    prefix = comm + "-"
    short_id = record.id[len(prefix):] if record.id.startswith(prefix) else record.id
    return f"{site}/{comm}/{short_id}/{record.slug}"


def compose_description(text: str, canonical_url: str, has_external: bool) -> str:
    body = escape_xml_text(text)
    if not has_external:
        return body
    href = escape_xml_text(canonical_url)
    return f'{body}<br/><br/><a href="{href}">{DISCUSS_LABEL}</a>'


def detect_enclosure(link: str, canonical_url: str) -> Enclosure | None:
    video_id = extract_youtube_id(link) or extract_youtube_id(canonical_url)
    if not video_id:
        return None
    return Enclosure(url=youtube_thumbnail_url(video_id), mime_type=THUMBNAIL_MIME_TYPE)


def build_item(site: str, record: PostRecord, tldr: str, tldr_max: int) -> FeedItem:
    canonical = canonical_post_url(site, record)
    link = record.external_url or canonical

    base = tldr or record.preview or record.title
    text = truncate_snippet(decode_entities(base), tldr_max)

    return FeedItem(
        title=decode_entities(record.title) or UNTITLED,
        link=link,
        guid=canonical,
        pub_date=record.created_at,
        description=compose_description(text, canonical, bool(record.external_url)),
        enclosure=detect_enclosure(link, canonical),
        creator=record.author,
    )


def channel_meta(site: str, selector: FeedSelector) -> tuple[str, str]:
    if selector.is_all:
        return "Digg — All Digg", f"{site}/?feed=all-digg"
    return f"Digg — {selector.community_slug} (Newest)", f"{site}/{selector.community_slug}"


class FeedAssembler:
    def __init__(self, site_base_url: str, tldr_fetcher: TldrFetcher | None = None) -> None:
        self._site = site_base_url.rstrip("/")
        self._tldr = tldr_fetcher

    async def _tldr_for(self, record: PostRecord, tldr_max: int) -> str:
        if self._tldr is None:
            return ""
        return await self._tldr.fetch(canonical_post_url(self._site, record), tldr_max)

    async def assemble(self, selector: FeedSelector, records: list[PostRecord], tldr_max: int) -> FeedChannel:
        tldrs = await asyncio.gather(*(self._tldr_for(r, tldr_max) for r in records))
        items = [build_item(self._site, r, t, tldr_max) for r, t in zip(records, tldrs)]

        title, link = channel_meta(self._site, selector)
        logger.debug("assembled %s items for %s", len(items), title)
        return FeedChannel(title=title, link=link, description=title, items=items)
