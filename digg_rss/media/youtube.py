from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse


_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{10,16}$")
_PATH_KINDS = {"shorts", "embed", "live"}

THUMBNAIL_MIME_TYPE = "image/jpeg"


def _is_valid_id(candidate: str | None) -> bool:
    return bool(candidate) and _VIDEO_ID_RE.match(candidate) is not None


def extract_youtube_id(url: str | None) -> str | None:
    """Return the video id for youtu.be / youtube.com links, else None."""
    if not url:
        return None
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not hostname:
        return None

    host = hostname.lower()
    if host.startswith("www."):
        host = host[len("www."):]
    parts = [p for p in parsed.path.split("/") if p]

    if host == "youtu.be":
        candidate = parts[0] if parts else None
        return candidate if _is_valid_id(candidate) else None

    if host.endswith("youtube.com"):
        v = (parse_qs(parsed.query).get("v") or [None])[0]
        if _is_valid_id(v):
            return v
        if len(parts) >= 2 and parts[0] in _PATH_KINDS and _is_valid_id(parts[1]):
            return parts[1]

    return None


def youtube_thumbnail_url(video_id: str) -> str:
    return f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"
