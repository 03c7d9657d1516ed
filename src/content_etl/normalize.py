"""Normalization functions for CSV cell values.

All parsing helpers accept str | None and return the parsed value or None
(callers decide on the fallback).
"""

from __future__ import annotations

import math
import re
import unicodedata
from datetime import date, datetime, timezone

_TRUE_TOKENS = frozenset({"true", "1", "yes"})

# JS Number() accepts these; Python float() also accepts "nan"/"inf" spellings
# that we reject to keep the two in line.
_NUMBER_RE = re.compile(
    r"^[+-]?(?:\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?|Infinity)$"
)
_HEX_RE = re.compile(r"^0[xX][0-9a-fA-F]+$")

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: normalize_space
# ---------------------------------------------------------------------------

def normalize_space(value: str | None) -> str | None:
    """Collapse internal runs of whitespace to single spaces, then trim."""
    v = trim(value)
    if v is None:
        return None
    return re.sub(r"\s+", " ", v)


# ---------------------------------------------------------------------------
# Rule 3: header cleanup
# ---------------------------------------------------------------------------

def clean_header(value: str) -> str:
    """Trim a raw header cell and drop any double quotes around/inside it."""
    return value.strip().replace('"', "")


def match_key(value: str | None) -> str:
    """Lower-cased, trimmed form used for fuzzy column matching."""
    return (value or "").strip().lower()


# ---------------------------------------------------------------------------
# Rule 4: slug_name  (for generated unique_key values)
# ---------------------------------------------------------------------------

def slug_name(value: str | None) -> str | None:
    """Lowercase alnum with '-' separators."""
    v = trim(value)
    if v is None:
        return None
    v = unicodedata.normalize("NFKD", v)
    v = "".join(c for c in v if not unicodedata.combining(c))
    v = v.lower()
    v = re.sub(r"[^a-z0-9]+", "-", v)
    v = v.strip("-")
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 5: parse_number
# ---------------------------------------------------------------------------

def parse_number(value: str | None) -> int | float | None:
    """Parse a number the way a browser's Number() would.

    Returns None for empty input and for anything unparsable.  Integral
    values come back as int so "30" round-trips as 30, not 30.0.
    """
    v = trim(value)
    if v is None:
        return None
    if _HEX_RE.match(v):
        return int(v, 16)
    if not _NUMBER_RE.match(v):
        return None
    sign = -1 if v.startswith("-") else 1
    if v.lstrip("+-") == "Infinity":
        return sign * math.inf
    num = float(v)
    if num.is_integer() and abs(num) < 2**53:
        return int(num)
    return num


# ---------------------------------------------------------------------------
# Rule 6: parse_bool
# ---------------------------------------------------------------------------

def parse_bool(value: str | None) -> bool:
    """True iff the trimmed, lower-cased value is one of true/1/yes."""
    v = trim(value)
    if v is None:
        return False
    return v.lower() in _TRUE_TOKENS


# ---------------------------------------------------------------------------
# Rule 7: split_list
# ---------------------------------------------------------------------------

def split_list(value: str | None, sep: str = ";") -> list[str]:
    """Split an in-cell list on sep, trimming each element and dropping empties."""
    v = trim(value)
    if v is None:
        return []
    return [part.strip() for part in v.split(sep) if part.strip()]


# ---------------------------------------------------------------------------
# Rule 8: parse_date
# ---------------------------------------------------------------------------

def parse_date(value: str | None) -> date | None:
    """Parse the date formats data producers commonly hand us.

    ISO dates and datetimes (including a trailing 'Z') are tried first, then
    a fixed list of US/long-form layouts.  Returns None when nothing fits.
    """
    v = normalize_space(value)
    if v is None:
        return None
    iso = v[:-1] + "+00:00" if v.endswith("Z") else v
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        pass
    else:
        # Offset datetimes are dated in UTC.
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc)
        return parsed.date()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(v, fmt).date()
        except ValueError:
            continue
    return None


def today_iso(now: datetime | None = None) -> str:
    """Return today's date (UTC unless `now` is given) as YYYY-MM-DD."""
    current = now or datetime.now(timezone.utc)
    return current.date().isoformat()
