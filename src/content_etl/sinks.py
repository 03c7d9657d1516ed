"""content_etl.sinks

Persistence collaborators.  The importer hands each completed entity to a
sink, one call per row; a sink either returns normally or raises, and no
return value is consulted.

  MemorySink    - collects entities in memory (dry runs, tests)
  RestApiSink   - POSTs to the content API (/documents, /update-logs, ...)
  PostgresSink  - inserts straight into the content tables, one SAVEPOINT
                  per entity so a failed row never poisons the transaction
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import psycopg
import requests

from content_etl.shared import ApiError, PersistenceError

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class EntitySink(Protocol):
    def persist(self, kind: str, entity: dict[str, Any]) -> None:
        """Persist exactly one entity; raise on failure."""
        ...


# ---------------------------------------------------------------------------
# MemorySink
# ---------------------------------------------------------------------------

@dataclass
class MemorySink:
    """Keeps persisted entities per kind.  `fail_on` makes chosen entities raise."""

    fail_on: Callable[[str, dict[str, Any]], bool] | None = None
    entities: dict[str, list[dict[str, Any]]] = field(
        default_factory=lambda: defaultdict(list)
    )

    def persist(self, kind: str, entity: dict[str, Any]) -> None:
        if self.fail_on is not None and self.fail_on(kind, entity):
            raise PersistenceError(f"rejected {kind} entity {entity.get('id')!r}")
        self.entities[kind].append(entity)

    def count(self, kind: str) -> int:
        return len(self.entities.get(kind, []))


# ---------------------------------------------------------------------------
# RestApiSink
# ---------------------------------------------------------------------------

def to_backend_document(doc: dict[str, Any]) -> dict[str, Any]:
    """Translate an imported document into the shape the documents API stores.

    Plain-text content is wrapped into a minimal rich-text JSON document.
    """
    content = doc.get("content") or ""
    if isinstance(content, (dict, list)):
        content_json = content
    else:
        content_json = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": para}]}
                for para in str(content).split("\n\n")
                if para.strip()
            ],
        }
    body = {
        "unique_key": doc.get("unique_key"),
        "title_en": doc.get("title"),
        "summary_en": doc.get("summary") or doc.get("description") or "",
        "content_json_en": content_json,
        "is_published": bool(doc.get("isPublished")),
    }
    for passthrough in ("category", "tags", "author", "createdAt", "updatedAt"):
        if passthrough in doc:
            body[passthrough] = doc[passthrough]
    return body


class RestApiSink:
    """requests-based client for the content API."""

    def __init__(
        self,
        base_url: str,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        endpoints: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.setdefault("Content-Type", "application/json")
        self.timeout = timeout
        self.endpoints = {"documents": "/documents", "update-logs": "/update-logs"}
        self.endpoints.update(endpoints or {})

    def _url(self, kind: str) -> str:
        path = self.endpoints.get(kind, f"/{kind}")
        return f"{self.base_url}{path}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(f"{method} {url} failed: {exc}", 0) from exc
        if not resp.ok:
            raise ApiError(_error_message(resp), resp.status_code)
        return resp

    def persist(self, kind: str, entity: dict[str, Any]) -> None:
        body = to_backend_document(entity) if kind == "documents" else entity
        self._request("POST", self._url(kind), data=json.dumps(body, default=str))
        log.debug("POST %s ok (id=%s)", self._url(kind), entity.get("id"))

    def fetch_all(self, kind: str) -> list[dict[str, Any]]:
        """GET the whole collection for `kind`, unwrapping a {"data": [...]} envelope."""
        resp = self._request("GET", self._url(kind))
        payload = resp.json()
        if isinstance(payload, dict):
            payload = payload.get("data", [])
        if not isinstance(payload, list):
            raise ApiError(f"unexpected payload for {kind}: {type(payload).__name__}", resp.status_code)
        return payload


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = {}
    if isinstance(data, dict):
        message = data.get("error") or data.get("message")
        if message:
            return str(message)
    return f"HTTP {resp.status_code}: {resp.reason}"


# ---------------------------------------------------------------------------
# PostgresSink
# ---------------------------------------------------------------------------

def _insert_document(conn: psycopg.Connection, doc: dict[str, Any]) -> None:
    body = to_backend_document(doc)
    conn.execute(
        """
        INSERT INTO documents
          (unique_key, title_en, summary_en, content_json_en, category,
           tags, author, is_published, created_at, updated_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            body["unique_key"],
            body["title_en"],
            body["summary_en"],
            json.dumps(body["content_json_en"]),
            doc.get("category"),
            json.dumps(doc.get("tags") or []),
            doc.get("author"),
            body["is_published"],
            doc.get("createdAt"),
            doc.get("updatedAt"),
        ),
    )


def _insert_update_log(conn: psycopg.Connection, entry: dict[str, Any]) -> None:
    conn.execute(
        """
        INSERT INTO update_logs
          (unique_key, version, title, content, description, date, tags,
           technical_details, bug_fixes, metrics, is_published,
           created_at, updated_at)
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            str(entry.get("id")),
            entry.get("version"),
            entry.get("title"),
            entry.get("content") or "",
            entry.get("description"),
            entry.get("date"),
            json.dumps(entry.get("tags") or []),
            json.dumps(entry.get("technicalDetails") or []),
            json.dumps(entry.get("bugFixes") or []),
            json.dumps(entry.get("metrics") or {}),
            bool(entry.get("isPublished")),
            entry.get("createdAt"),
            entry.get("updatedAt"),
        ),
    )


_INSERTERS: dict[str, Callable[[psycopg.Connection, dict[str, Any]], None]] = {
    "documents": _insert_document,
    "update-logs": _insert_update_log,
}


class PostgresSink:
    """Direct-to-database sink.  The caller owns commit/rollback of the run."""

    def __init__(self, conn: psycopg.Connection) -> None:
        self.conn = conn
        self._seq = 0

    def persist(self, kind: str, entity: dict[str, Any]) -> None:
        inserter = _INSERTERS.get(kind)
        if inserter is None:
            raise PersistenceError(f"no table mapping for entity kind {kind!r}")
        self._seq += 1
        sp_name = f"row_{self._seq}"
        self.conn.execute(f"SAVEPOINT {sp_name}")
        try:
            inserter(self.conn, entity)
        except psycopg.Error as exc:
            self.conn.execute(f"ROLLBACK TO SAVEPOINT {sp_name}")
            raise PersistenceError(f"db_error: {exc}") from exc
        self.conn.execute(f"RELEASE SAVEPOINT {sp_name}")

    def commit(self) -> None:
        self.conn.commit()

    def rollback(self) -> None:
        self.conn.rollback()

    def close(self) -> None:
        self.conn.close()
