"""
Text utilities shared by fetchers and the normalizer.

``extract_text`` is the single place HTML is turned into plain text; the
rest of the pipeline only ever handles plain strings.
"""

import calendar
import html
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 10**11


def extract_text(markup: str | None) -> str:
    """
    Extract clean text from an HTML fragment.

    Script, style and page chrome elements are dropped, entities are
    unescaped and whitespace is collapsed. Plain text passes through
    with only the whitespace and entity cleanup applied.
    """
    if not markup:
        return ""

    if "<" not in markup:
        return clean_text(html.unescape(markup))

    soup = BeautifulSoup(markup, "html.parser")
    for element in soup(["script", "style", "nav", "footer", "header"]):
        element.decompose()

    text = soup.get_text(separator=" ")
    return clean_text(html.unescape(text))


def clean_text(text: str) -> str:
    """
    Clean text content by removing excessive whitespace and normalizing.

    Args:
        text: Raw text content

    Returns:
        Cleaned text
    """
    text = _CONTROL_CHARS.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    """Cut ``text`` to at most ``limit`` characters, suffix included."""
    if len(text) <= limit:
        return text
    if limit <= len(suffix):
        return text[:limit]
    return text[: limit - len(suffix)].rstrip() + suffix


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse the timestamp shapes seen across feeds and APIs.

    Handles datetimes, ``time.struct_time`` (feedparser ``*_parsed``),
    epoch seconds or milliseconds (numbers or numeric strings), ISO 8601
    and RFC 822 strings. Returns None when nothing matches.
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, time.struct_time):
        parsed = datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    elif isinstance(value, bool):
        return None
    elif isinstance(value, (int, float)):
        parsed = _from_epoch(value)
    elif isinstance(value, str):
        parsed = _parse_string(value.strip())
    else:
        return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _from_epoch(value: float) -> datetime | None:
    if value <= 0:
        return None
    if value > _EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _parse_string(value: str) -> datetime | None:
    if not value:
        return None

    if re.fullmatch(r"\d+(\.\d+)?", value):
        return _from_epoch(float(value))

    iso = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(iso)
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
