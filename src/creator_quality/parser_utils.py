"""Parsing utilities for scraped creator profile values."""

from __future__ import annotations

import math
import re
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup

TRUTHY_STRINGS = frozenset({"true", "yes", "1", "verified"})

COUNT_MULTIPLIERS = {
    "k": Decimal(1_000),
    "m": Decimal(1_000_000),
    "b": Decimal(1_000_000_000),
}

_COUNT_RE = re.compile(r"^(\d+(?:\.\d+)?)([kmb])?$")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")
_TAG_RE = re.compile(r"</?[a-zA-Z][^<>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_count(value: Any) -> Optional[int]:
    """Parse a follower-style count.

    Numbers are floored and clamped at zero. Strings may carry thousands
    separators, whitespace, a decimal point and a case-insensitive ``K``,
    ``M`` or ``B`` suffix. Anything unparseable returns ``None`` so that an
    unknown count never masquerades as zero.
    """
    if _is_number(value):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return max(0, math.floor(value))

    if not isinstance(value, str):
        return None

    cleaned = re.sub(r"[,\s]", "", value).lower()
    match = _COUNT_RE.match(cleaned)
    if not match:
        return None

    try:
        number = Decimal(match.group(1))
    except InvalidOperation:
        return None
    suffix = match.group(2)
    if suffix:
        number *= COUNT_MULTIPLIERS[suffix]
    return int(number.to_integral_value(rounding=ROUND_FLOOR))


def parse_percentage(value: Any) -> Optional[float]:
    """Parse a percentage (``4.5`` or ``"4.5%"``), clamped to [0, 100]."""
    if _is_number(value):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.replace("%", "").strip())
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return max(0.0, min(100.0, number))


def parse_boolean(value: Any) -> bool:
    """Interpret scraped verification flags; never raises."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_STRINGS
    if _is_number(value):
        return value > 0
    return False


def is_valid_url(url: Any) -> bool:
    """Return True for an absolute http(s) URL with a host."""
    if not isinstance(url, str) or not url or any(ch.isspace() for ch in url):
        return False
    try:
        parsed = urlparse(url)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return False
    if parsed.scheme.lower() not in ("http", "https"):
        return False
    return bool(parsed.hostname)


def normalize_url(value: Any) -> Optional[str]:
    """Trim a URL and add an ``https://`` scheme when it has none.

    Returns ``None`` when the result is not a valid absolute URL; malformed
    URLs are dropped rather than stored.
    """
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    if not cleaned:
        return None

    if cleaned.startswith("//"):
        cleaned = f"https:{cleaned}"
    elif not _SCHEME_RE.match(cleaned):
        cleaned = f"https://{cleaned}"

    return cleaned if is_valid_url(cleaned) else None


def strip_markup(text: str) -> str:
    """Remove HTML tags left behind by scrapers, keeping the text content."""
    if not _TAG_RE.search(text):
        return text
    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(" ")


def clean_text(value: Any, max_length: int) -> Optional[str]:
    """Strip markup, collapse whitespace and cap length; blank becomes None."""
    if not isinstance(value, str):
        return None
    cleaned = _WHITESPACE_RE.sub(" ", strip_markup(value)).strip()
    if not cleaned:
        return None
    return cleaned[:max_length].rstrip()


def first_present(data: Mapping[str, Any], keys: Sequence[str]) -> Tuple[Optional[str], Any]:
    """Return the first ``(key, value)`` whose value is not None."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return key, value
    return None, None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def unique_preserve_order(values: Iterable[str]) -> List[str]:
    """Return unique truthy values while preserving their first-seen order."""
    seen: Set[str] = set()
    result: List[str] = []
    for value in values:
        if not value:
            continue
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
