"""SQLite-backed record store with post-commit mutation events.

RecordStore is the public API:
    store = RecordStore(".docsync/store.db")
    store.subscribe(TreeMirror(docs_dir))
    store.create("docs", {"slug": "guide/intro", "content": "---\\ntitle: Intro\\n---\\n..."})
    store.update("docs", "guide/intro", {"content": "..."})
    store.delete("docs", "guide/intro")

Collections:
    docs       key: slug   fields: slug, content
    meta       key: path   fields: path, content
    api-specs  key: name   fields: name, spec_url, version, base_url, description

After every committed write, listeners receive a MutationEvent. A per-key lock
is held across the write and its notification, so two mutations of the same
key reach listeners in commit order. Different keys never contend.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import weakref
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from docsync.db import ensure_schema, get_conn
from docsync.models import (
    API_SPECS,
    DOCS,
    META,
    ApiSpecRecord,
    ContentRecord,
    MetaRecord,
    MutationEvent,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from docsync.models import EventKind, Record

    Listener = Callable[[MutationEvent], None]

logger = logging.getLogger("docsync.store")


class RecordStoreError(Exception):
    """The store could not complete an operation (DB unreachable, corrupt, ...)."""


class ValidationError(RecordStoreError):
    """Rejected record data: missing/unknown field, bad key, duplicate key."""


class RecordNotFoundError(RecordStoreError):
    """No record with that key."""


@dataclass(frozen=True)
class _Collection:
    name: str
    table: str
    key: str
    fields: tuple[str, ...]
    required: tuple[str, ...]
    model: type


_COLLECTIONS: dict[str, _Collection] = {
    DOCS: _Collection(DOCS, "docs", "slug", ("slug", "content"), ("slug", "content"), ContentRecord),
    META: _Collection(META, "meta", "path", ("path", "content"), ("path", "content"), MetaRecord),
    API_SPECS: _Collection(
        API_SPECS,
        "api_specs",
        "name",
        ("name", "spec_url", "version", "base_url", "description"),
        ("name", "spec_url"),
        ApiSpecRecord,
    ),
}


def _collection(name: str) -> _Collection:
    try:
        return _COLLECTIONS[name]
    except KeyError:
        msg = f"Unknown collection: {name}"
        raise ValidationError(msg) from None


def validate_key(collection: str, key: str) -> None:
    """Reject keys that could not be mapped to a path under the content root."""
    if collection == META and key == ".":
        return
    if not key or key.strip() != key:
        msg = f"Invalid {collection} key: {key!r}"
        raise ValidationError(msg)
    try:
        key.encode("utf-8")
    except UnicodeEncodeError:
        msg = f"Invalid {collection} key, not valid UTF-8: {key!r}"
        raise ValidationError(msg) from None
    if collection in (DOCS, META):
        parts = key.split("/")
        if key.startswith("/") or "\\" in key or any(p in ("", ".", "..") for p in parts):
            msg = f"Invalid {collection} key: {key!r}"
            raise ValidationError(msg)


class _KeyLocks:
    """One lock per (collection, key), created on demand.

    Entries are weak: a lock lives only while some thread holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[tuple[str, str], threading.RLock] = (
            weakref.WeakValueDictionary()
        )

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, collection: str, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get((collection, key))
            if lock is None:
                lock = threading.RLock()
                self._locks[(collection, key)] = lock
            return lock


class RecordStore:
    """Record API: list/get/create/update/delete per collection."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self._listeners: list[Listener] = []
        self._locks = _KeyLocks()
        with self._conn() as conn:
            try:
                ensure_schema(conn)
            except sqlite3.Error as exc:
                msg = f"Cannot initialise record store {self.db_path}: {exc}"
                raise RecordStoreError(msg) from exc

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _publish(self, event: MutationEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                # The write already committed; a broken listener must not undo it.
                logger.exception("listener failed for %s %s/%s", event.kind, event.collection, event.key)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list(self, collection: str) -> list[Record]:
        col = _collection(collection)
        with self._conn() as conn:
            rows = self._execute(conn, f"SELECT * FROM {col.table} ORDER BY {col.key}").fetchall()
        return [col.model.from_dict(dict(row)) for row in rows]

    def get(self, collection: str, key: str) -> Record | None:
        col = _collection(collection)
        with self._conn() as conn:
            row = self._fetch(conn, col, key)
        return col.model.from_dict(dict(row)) if row else None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create(self, collection: str, data: dict[str, Any]) -> Record:
        col = _collection(collection)
        values = self._clean(col, data, partial=False)
        key = values[col.key]
        validate_key(collection, key)

        with self._locks.get(collection, key):
            values["updated_at"] = _now()
            names = ", ".join(values)
            marks = ", ".join("?" for _ in values)
            with self._conn() as conn:
                self._execute(
                    conn,
                    f"INSERT INTO {col.table} ({names}) VALUES ({marks})",
                    tuple(values.values()),
                    key=key,
                )
                conn.commit()
                row = self._fetch(conn, col, key)
            record = col.model.from_dict(dict(row))
            self._publish(MutationEvent("created", collection, key, record))
        return record

    def update(self, collection: str, key: str, data: dict[str, Any]) -> Record:
        """Partial update. Changing the key field renames the record."""
        col = _collection(collection)
        values = self._clean(col, data, partial=True)
        new_key = values.get(col.key, key)
        validate_key(collection, new_key)

        with self._locks.get(collection, key):
            with self._conn() as conn:
                before = self._fetch(conn, col, key)
                if before is None:
                    msg = f"{collection} record not found: {key}"
                    raise RecordNotFoundError(msg)
                values["updated_at"] = _now()
                assignments = ", ".join(f"{name} = ?" for name in values)
                self._execute(
                    conn,
                    f"UPDATE {col.table} SET {assignments} WHERE {col.key} = ?",
                    (*values.values(), key),
                    key=new_key,
                )
                conn.commit()
                row = self._fetch(conn, col, new_key)
            previous = col.model.from_dict(dict(before))
            record = col.model.from_dict(dict(row))
            self._publish(MutationEvent("updated", collection, new_key, record, previous=previous))
        return record

    def delete(self, collection: str, key: str) -> Record:
        col = _collection(collection)
        with self._locks.get(collection, key):
            with self._conn() as conn:
                row = self._fetch(conn, col, key)
                if row is None:
                    msg = f"{collection} record not found: {key}"
                    raise RecordNotFoundError(msg)
                self._execute(conn, f"DELETE FROM {col.table} WHERE {col.key} = ?", (key,))
                conn.commit()
            record = col.model.from_dict(dict(row))
            self._publish(MutationEvent("deleted", collection, key, record))
        return record

    def save(self, collection: str, data: dict[str, Any]) -> tuple[EventKind, Record]:
        """Create, or update the record with the same key."""
        col = _collection(collection)
        key = data.get(col.key)
        if isinstance(key, str) and self.get(collection, key) is not None:
            return "updated", self.update(collection, key, data)
        return "created", self.create(collection, data)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _conn(self) -> _Connection:
        return _Connection(self.db_path)

    @staticmethod
    def _fetch(conn: sqlite3.Connection, col: _Collection, key: str) -> sqlite3.Row | None:
        return RecordStore._execute(
            conn, f"SELECT * FROM {col.table} WHERE {col.key} = ?", (key,)
        ).fetchone()

    @staticmethod
    def _execute(
        conn: sqlite3.Connection,
        sql: str,
        params: tuple[Any, ...] = (),
        *,
        key: str | None = None,
    ) -> sqlite3.Cursor:
        try:
            return conn.execute(sql, params)
        except sqlite3.IntegrityError as exc:
            msg = f"Duplicate or invalid record {key!r}: {exc}"
            raise ValidationError(msg) from exc
        except sqlite3.Error as exc:
            raise RecordStoreError(str(exc)) from exc
        except UnicodeError as exc:
            msg = f"Record {key!r} holds text that is not valid UTF-8: {exc}"
            raise ValidationError(msg) from exc

    @staticmethod
    def _clean(col: _Collection, data: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        unknown = set(data) - set(col.fields) - {"id", "updated_at"}
        if unknown:
            msg = f"Unknown {col.name} field(s): {', '.join(sorted(unknown))}"
            raise ValidationError(msg)
        values = {name: data[name] for name in col.fields if name in data}
        for name, value in values.items():
            if value is not None and not isinstance(value, str):
                msg = f"{col.name}.{name} must be a string"
                raise ValidationError(msg)
        for name in col.required:
            if (not partial or name in values) and not values.get(name):
                msg = f"{col.name}.{name} is required"
                raise ValidationError(msg)
        return values


class _Connection:
    """Context manager: one sqlite connection per operation, errors as RecordStoreError."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> sqlite3.Connection:
        try:
            self.conn = get_conn(self.db_path)
        except (sqlite3.Error, OSError) as exc:
            msg = f"Cannot open record store {self.db_path}: {exc}"
            raise RecordStoreError(msg) from exc
        return self.conn

    def __exit__(self, *exc_info: object) -> None:
        if self.conn is not None:
            self.conn.close()


def _now() -> str:
    return datetime.now(UTC).isoformat()

