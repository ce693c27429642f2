import xml.etree.ElementTree as ET
from datetime import datetime, timezone

import feedparser

from digg_rss.rss.builder import DC_NAMESPACE, build_rss
from digg_rss.storage.types import Enclosure, FeedChannel, FeedItem


BUILT_AT = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _item(**overrides) -> FeedItem:
    fields = dict(
        title="Hello",
        link="https://example.com/a?x=1&y=2",
        guid="https://digg.com/tech/1/hello",
        pub_date=datetime(2026, 10, 18, 8, 30, tzinfo=timezone.utc),
        description="Snippet",
    )
    fields.update(overrides)
    return FeedItem(**fields)


def _channel(items) -> FeedChannel:
    return FeedChannel(title="Digg — tech (Newest)", link="https://digg.com/tech", description="Digg — tech", items=items)


def test_channel_header():
    xml = build_rss(_channel([]), built_at=BUILT_AT)
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    root = ET.fromstring(xml.encode("utf-8"))
    channel = root.find("channel")
    assert root.get("version") == "2.0"
    assert channel.findtext("title") == "Digg — tech (Newest)"
    assert channel.findtext("ttl") == "10"
    assert channel.findtext("lastBuildDate") == "Mon, 19 Oct 2026 12:00:00 GMT"
    assert channel.findall("item") == []


def test_item_fields_escaped_and_parsed():
    xml = build_rss(_channel([_item()]), built_at=BUILT_AT)
    assert "<link>https://example.com/a?x=1&amp;y=2</link>" in xml
    item = ET.fromstring(xml.encode("utf-8")).find("channel/item")
    assert item.findtext("link") == "https://example.com/a?x=1&y=2"
    guid = item.find("guid")
    assert guid.get("isPermaLink") == "true"
    assert guid.text == "https://digg.com/tech/1/hello"
    assert item.findtext("pubDate") == "Sun, 18 Oct 2026 08:30:00 GMT"
    assert item.find("enclosure") is None
    assert item.find(f"{{{DC_NAMESPACE}}}creator") is None


def test_cdata_cannot_be_broken_out_of():
    hostile = _item(title="x]]><script>alert(1)</script>", description="a]]>b")
    xml = build_rss(_channel([hostile]), built_at=BUILT_AT)
    item = ET.fromstring(xml.encode("utf-8")).find("channel/item")
    assert item.find("script") is None
    assert item.findtext("title").startswith("x]]")


def test_optional_creator_and_enclosure():
    it = _item(
        creator="alice",
        enclosure=Enclosure(url="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg", mime_type="image/jpeg"),
    )
    xml = build_rss(_channel([it]), built_at=BUILT_AT)
    item = ET.fromstring(xml.encode("utf-8")).find("channel/item")
    assert item.findtext(f"{{{DC_NAMESPACE}}}creator") == "alice"
    enc = item.find("enclosure")
    assert enc.get("url") == "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg"
    assert enc.get("type") == "image/jpeg"
    assert enc.get("length") == "0"


def test_pub_date_omitted_when_unknown():
    xml = build_rss(_channel([_item(pub_date=None)]), built_at=BUILT_AT)
    assert "<pubDate>" not in xml


def test_feed_readers_accept_output():
    items = [_item(guid=f"https://digg.com/tech/{i}/p", creator="bob") for i in range(3)]
    parsed = feedparser.parse(build_rss(_channel(items), built_at=BUILT_AT).encode("utf-8"))
    assert not parsed.bozo
    assert len(parsed.entries) == 3
    assert parsed.entries[0].id == "https://digg.com/tech/0/p"
    assert parsed.entries[0].author == "bob"
