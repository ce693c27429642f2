from __future__ import annotations

from selectolax.parser import HTMLParser

from digg_rss.utils import decode_entities


def extract_meta_content(html: str, key: str, is_property: bool = False) -> str:
    if not html:
        return ""
    attr = "property" if is_property else "name"
    tree = HTMLParser(html)
    for node in tree.css("meta"):
        value = (node.attributes.get(attr) or "").strip().lower()
        if value != key.lower():
            continue
        content = (node.attributes.get("content") or "").strip()
        if content:
            # Some pages double-escape; selectolax only undoes one level.
            return decode_entities(content)
    return ""


def extract_description(html: str) -> str:
    """Prefer og:description, fall back to the plain description meta tag."""
    return extract_meta_content(html, "og:description", is_property=True) or extract_meta_content(
        html, "description"
    )
