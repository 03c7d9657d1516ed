"""content_etl.defaults

Per-entity-kind defaults applied to a coerced record just before it is
handed to the persistence sink.

A value counts as missing when the key is absent, None, or an empty
string.  False and 0 are present values and are never overwritten.
"""

from __future__ import annotations

import copy
import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from content_etl.normalize import slug_name, today_iso

ALL_PAGES = "all"

# Pages a document import may be pinned to with --target-page.
AVAILABLE_PAGES: dict[str, str] = {
    "accessory": "Accessory",
    "decoratebromide": "Decorate Bromide",
    "event": "Event",
    "festival": "Festival",
    "gacha": "Gacha",
    "girllist": "Girl List",
    "memories": "Memories",
    "ownerroom": "Owner Room",
    "shop": "Shop",
    "skill": "Skill",
}

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_id(now: datetime | None = None) -> str:
    """Millisecond timestamp followed by 7 random base-36 characters."""
    millis = int((now.timestamp() if now else time.time()) * 1000)
    suffix = "".join(random.choices(_ID_ALPHABET, k=7))
    return f"{millis}{suffix}"


def is_missing(record: dict[str, Any], key: str) -> bool:
    value = record.get(key)
    return value is None or value == ""


def page_label(target_page: str | None) -> str | None:
    """Display name for a target page, or None for 'all'/unset."""
    if not target_page or target_page == ALL_PAGES:
        return None
    return AVAILABLE_PAGES.get(target_page, target_page)


class DefaultsPolicy(Protocol):
    def apply(
        self,
        record: dict[str, Any],
        *,
        target_page: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Return a new record with missing fields filled in."""
        ...


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

@dataclass
class DocumentDefaults:
    author: str = "Admin"

    def apply(
        self,
        record: dict[str, Any],
        *,
        target_page: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        doc = dict(record)
        today = today_iso(now)
        if is_missing(doc, "id"):
            doc["id"] = generate_id(now)
        if is_missing(doc, "createdAt"):
            doc["createdAt"] = today
        if is_missing(doc, "updatedAt"):
            doc["updatedAt"] = today
        if is_missing(doc, "author"):
            doc["author"] = self.author
        if doc.get("isPublished") is None:
            doc["isPublished"] = False
        if doc.get("tags") is None:
            doc["tags"] = []
        if target_page and target_page != ALL_PAGES and is_missing(doc, "category"):
            doc["category"] = target_page
        if is_missing(doc, "unique_key"):
            doc["unique_key"] = slug_name(doc.get("title")) or f"document-{doc['id']}"
        return doc


# ---------------------------------------------------------------------------
# Update logs
# ---------------------------------------------------------------------------

_DEFAULT_METRICS = {
    "performanceImprovement": "0%",
    "userSatisfaction": "0%",
    "bugReports": 0,
}


@dataclass
class UpdateLogDefaults:
    version: str = "v1.0.0"
    title: str = "Untitled Update"

    def apply(
        self,
        record: dict[str, Any],
        *,
        target_page: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        entry = dict(record)
        today = today_iso(now)
        if is_missing(entry, "id"):
            entry["id"] = generate_id(now)
        if is_missing(entry, "version"):
            entry["version"] = self.version
        if is_missing(entry, "title"):
            entry["title"] = self.title
        if entry.get("content") is None:
            entry["content"] = ""
        if entry.get("description") is None:
            entry["description"] = ""
        if is_missing(entry, "date"):
            entry["date"] = today
        if entry.get("isPublished") is None:
            entry["isPublished"] = False
        for list_key in ("tags", "technicalDetails", "bugFixes", "screenshots"):
            if entry.get(list_key) is None:
                entry[list_key] = []
        if entry.get("metrics") is None:
            entry["metrics"] = dict(_DEFAULT_METRICS)
        if is_missing(entry, "createdAt"):
            entry["createdAt"] = today
        if is_missing(entry, "updatedAt"):
            entry["updatedAt"] = today
        return entry


# ---------------------------------------------------------------------------
# YAML-declared kinds
# ---------------------------------------------------------------------------

@dataclass
class LiteralDefaults:
    """Identity + timestamps, then literal per-field defaults from a schema file."""

    values: dict[str, Any] = field(default_factory=dict)

    def apply(
        self,
        record: dict[str, Any],
        *,
        target_page: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        out = dict(record)
        today = today_iso(now)
        if is_missing(out, "id"):
            out["id"] = generate_id(now)
        if is_missing(out, "createdAt"):
            out["createdAt"] = today
        if is_missing(out, "updatedAt"):
            out["updatedAt"] = today
        for key, value in self.values.items():
            if is_missing(out, key):
                out[key] = copy.deepcopy(value)
        return out
