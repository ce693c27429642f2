from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from email.utils import format_datetime
from xml.sax.saxutils import escape


_WS_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

_NAMED_ENTITIES = {
    "&quot;": '"',
    "&apos;": "'",
    "&#39;": "'",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&nbsp;": " ",
}
_NAMED_RE = re.compile("|".join(re.escape(k) for k in _NAMED_ENTITIES))
_DEC_RE = re.compile(r"&#(\d+);")
_HEX_RE = re.compile(r"&#x([0-9a-fA-F]+);")
_LONE_SURROGATE_RE = re.compile(r"[\ud800-\udfff]")

# Minimum cut position for a word-boundary truncation.
_MIN_WORD_CUT = 40

ELLIPSIS = "…"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def http_date(dt: datetime) -> str:
    """RFC 1123 date in GMT, e.g. ``Mon, 19 Oct 2026 10:00:00 GMT``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def iso_millis(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def collapse_ws(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def truncate_snippet(text: str | None, max_len: int = 220) -> str:
    if not text:
        return ""
    clean = collapse_ws(str(text))
    if len(clean) <= max_len:
        return clean
    truncated = clean[:max_len]
    cut = truncated.rfind(" ")
    if cut > _MIN_WORD_CUT:
        truncated = truncated[:cut]
    return truncated + ELLIPSIS


def _code_point(value: int, original: str) -> str:
    try:
        return chr(value)
    except (ValueError, OverflowError):
        return original


def _join_surrogates(s: str) -> str:
    # &#xD83D;&#xDE00; style pairs decode to two halves; fold them into one
    # character and put any unpaired half back as its reference.
    s = s.encode("utf-16", "surrogatepass").decode("utf-16", "surrogatepass")
    return _LONE_SURROGATE_RE.sub(lambda m: f"&#x{ord(m.group(0)):X};", s)


def decode_entities(text: str | None) -> str:
    """Turn the handful of entities upstream emits back into characters."""
    if not text:
        return ""
    s = _NAMED_RE.sub(lambda m: _NAMED_ENTITIES[m.group(0)], str(text))
    s = _DEC_RE.sub(lambda m: _code_point(int(m.group(1)), m.group(0)), s)
    s = _HEX_RE.sub(lambda m: _code_point(int(m.group(1), 16), m.group(0)), s)
    return _join_surrogates(s)


def escape_xml_text(text: str | None) -> str:
    return escape(str(text or ""), {'"': "&quot;"})


def sanitize_cdata(text: str | None) -> str:
    return str(text or "").replace("]]>", "]]&gt;")


def clamp_int(value: str | int | None, default: int, lo: int, hi: int) -> int:
    if isinstance(value, int):
        n = value
    else:
        m = _LEADING_INT_RE.match(value or "")
        if not m:
            return default
        n = int(m.group(1))
    return max(lo, min(hi, n))


def safe_json(obj: object, max_len: int) -> str:
    try:
        s = json.dumps(obj, ensure_ascii=False)
    except (TypeError, ValueError):
        s = str(obj)
    if len(s) > max_len:
        return s[:max_len] + ELLIPSIS
    return s
