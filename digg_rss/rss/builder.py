from __future__ import annotations

from datetime import datetime

from digg_rss.storage.types import FeedChannel, FeedItem
from digg_rss.utils import escape_xml_text, http_date, now_utc, sanitize_cdata


DC_NAMESPACE = "http://purl.org/dc/elements/1.1/"
CHANNEL_TTL_MINUTES = 10


def _cdata(text: str) -> str:
    return f"<![CDATA[{sanitize_cdata(text)}]]>"


def render_item(item: FeedItem) -> str:
    lines = [
        "  <item>",
        f"    <title>{_cdata(item.title)}</title>",
        f"    <link>{escape_xml_text(item.link)}</link>",
        f'    <guid isPermaLink="true">{escape_xml_text(item.guid)}</guid>',
    ]
    if item.pub_date is not None:
        lines.append(f"    <pubDate>{http_date(item.pub_date)}</pubDate>")
    lines.append(f"    <description>{_cdata(item.description)}</description>")
    if item.creator:
        lines.append(f"    <dc:creator>{_cdata(item.creator)}</dc:creator>")
    if item.enclosure is not None:
        lines.append(
            f'    <enclosure url="{escape_xml_text(item.enclosure.url)}"'
            f' type="{escape_xml_text(item.enclosure.mime_type)}" length="0" />'
        )
    lines.append("  </item>")
    return "\n".join(lines)


def build_rss(channel: FeedChannel, built_at: datetime | None = None) -> str:
    built_at = built_at or now_utc()
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<rss version="2.0" xmlns:dc="{DC_NAMESPACE}">',
        "<channel>",
        f"  <title>{_cdata(channel.title)}</title>",
        f"  <link>{escape_xml_text(channel.link)}</link>",
        f"  <description>{_cdata(channel.description)}</description>",
        f"  <ttl>{CHANNEL_TTL_MINUTES}</ttl>",
        f"  <lastBuildDate>{http_date(built_at)}</lastBuildDate>",
    ]
    parts.extend(render_item(it) for it in channel.items)
    parts.extend(["</channel>", "</rss>"])
    return "\n".join(parts)
