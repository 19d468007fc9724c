"""
SQLite implementation of the durable Dream store.

This module owns the on-disk persistence format. Object contexts and the
replication layer talk to it through `SqliteDreamStore`; nothing else issues
SQL.

Threading
---------
A new sqlite3 connection is opened for every operation and all operations are
serialised by a re-entrant lock, so the store may be called from the UI thread
and from the container's background worker. The in-memory variant uses a
shared-cache memory database kept alive by a keeper connection.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Mapping, Sequence

from ..clock import Clock, SystemClock, format_stamp
from ..data_models import (
    DREAM_FIELDS,
    ChangeKind,
    ChangeNotification,
    ChangeOrigin,
    DreamId,
    DreamRow,
    HistoryEntry,
    RecordChange,
)
from ..errors import SaveError, StoreOpenError, UnknownDreamError
from .notifications import NotificationCenter, Subscription
from .schema import SCHEMA_V1

logger = logging.getLogger(__name__)

_FIELD_DEFAULTS: Mapping[str, Any] = {"title": "", "description": "", "image_data": None}


def _coerce(name: str, value: Any) -> Any:
    if name == "image_data":
        return None if value is None else bytes(value)
    return "" if value is None else str(value)


class SqliteDreamStore:
    """
    SQLite-backed durable collection of Dream records.

    Parameters
    ----------
    db_path:
        Path to the SQLite database, or None for a throwaway in-memory store.
    clock:
        Source of field modification stamps for local commits.

    Raises
    ------
    StoreOpenError
        If the database cannot be created or opened.
    """

    def __init__(self, db_path: Path | None, *, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or SystemClock()
        self._lock = threading.RLock()
        self._events: NotificationCenter[ChangeNotification] = NotificationCenter("store")
        self._keeper: sqlite3.Connection | None = None

        if db_path is None:
            self._target = f"file:visionboard-{uuid.uuid4().hex}?mode=memory&cache=shared"
            self._uri = True
        else:
            self._target = str(db_path)
            self._uri = False

        try:
            if db_path is not None:
                db_path.parent.mkdir(parents=True, exist_ok=True)
            else:
                self._keeper = self._connect()
            with self._transaction() as conn:
                conn.executescript(SCHEMA_V1)
        except (sqlite3.Error, OSError) as exc:
            raise StoreOpenError(f"Unable to open store at {self.location}: {exc}") from exc

    @property
    def location(self) -> str:
        return ":memory:" if self._uri else self._target

    @property
    def in_memory(self) -> bool:
        return self._uri

    def close(self) -> None:
        """Release the keeper connection of an in-memory store."""
        self._events.clear()
        if self._keeper is not None:
            self._keeper.close()
            self._keeper = None

    def subscribe(self, callback: Callable[[ChangeNotification], None]) -> Subscription[ChangeNotification]:
        """Receive a notification after every commit that changed records."""
        return self._events.subscribe(callback)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._target, uri=self._uri, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    yield conn
            finally:
                conn.close()

    # ---------------- Reads ----------------

    def generation(self) -> int:
        """Return the current store generation."""
        with self._transaction() as conn:
            return _read_generation(conn)

    def count(self) -> int:
        """Return the number of durable Dreams."""
        with self._transaction() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM dreams").fetchone()[0])

    def fetch_rows(self) -> list[DreamRow]:
        """Return all durable Dreams ordered by title, then id."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT dream_id, title, description, image_data FROM dreams "
                "ORDER BY title ASC, dream_id ASC"
            ).fetchall()
            stamps: dict[str, dict[str, str]] = {}
            for r in conn.execute("SELECT dream_id, field, stamp FROM field_stamps"):
                stamps.setdefault(str(r["dream_id"]), {})[str(r["field"])] = str(r["stamp"])
        return [_row_to_dream_row(r, stamps.get(str(r["dream_id"]), {})) for r in rows]

    def fetch_row(self, dream_id: DreamId) -> DreamRow | None:
        """Return one durable Dream, or None if it does not exist."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT dream_id, title, description, image_data FROM dreams WHERE dream_id = ?",
                (dream_id,),
            ).fetchone()
            if row is None:
                return None
            return _row_to_dream_row(row, _read_stamps(conn, dream_id))

    def history_since(self, change_id: int, *, origin: ChangeOrigin) -> list[HistoryEntry]:
        """Return history entries after `change_id` for one origin, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT change_id, generation, dream_id, kind, origin FROM history "
                "WHERE change_id > ? AND origin = ? ORDER BY change_id ASC",
                (change_id, origin.value),
            ).fetchall()
        return [
            HistoryEntry(
                change_id=int(r["change_id"]),
                generation=int(r["generation"]),
                dream_id=str(r["dream_id"]),
                kind=ChangeKind(str(r["kind"])),
                origin=ChangeOrigin(str(r["origin"])),
            )
            for r in rows
        ]

    def get_meta(self, key: str) -> str | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return None if row is None else str(row["value"])

    def set_meta(self, key: str, value: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO meta(key, value) VALUES(?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    def get_or_create_device_id(self) -> str:
        """
        Return the persisted device id, creating it if missing.

        The device id tags exported changes so a device can skip its own
        entries when reading the cloud change feed.
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key = 'device_id'").fetchone()
            if row is not None:
                return str(row["value"])
            device_id = uuid.uuid4().hex
            conn.execute("INSERT INTO meta(key, value) VALUES('device_id', ?)", (device_id,))
            return device_id

    # ---------------- Writes ----------------

    def commit(
        self,
        changes: Sequence[RecordChange],
        *,
        origin: ChangeOrigin,
        author: object | None = None,
    ) -> ChangeNotification:
        """
        Apply a change set in one transaction.

        Local changes are stamped with the store clock. Remote upserts write
        only the fields whose incoming stamp is newer than the stored stamp,
        and never resurrect a Dream that has a recorded deletion.

        Parameters
        ----------
        changes:
            Record changes to apply, in order.
        origin:
            LOCAL for context saves, REMOTE for replication imports.
        author:
            Opaque token identifying the committing context.

        Returns
        -------
        ChangeNotification
            The effective changes. Non-empty notifications are also posted to
            subscribers.

        Raises
        ------
        UnknownDreamError
            If a local update or delete targets a missing Dream.
        SaveError
            If SQLite rejects the transaction.
        """
        if origin is ChangeOrigin.CONTEXT:
            raise ValueError("Context-only changes cannot be committed.")

        inserted: set[DreamId] = set()
        updated: set[DreamId] = set()
        deleted: set[DreamId] = set()

        try:
            with self._transaction() as conn:
                generation = _read_generation(conn) + 1
                stamp = format_stamp(self._clock.now())
                for change in changes:
                    effect = self._apply(conn, change, origin=origin, stamp=stamp)
                    if effect is None:
                        continue
                    conn.execute(
                        "INSERT INTO history(generation, dream_id, kind, origin) VALUES(?, ?, ?, ?)",
                        (generation, change.dream_id, effect.value, origin.value),
                    )
                    if effect is ChangeKind.INSERT:
                        inserted.add(change.dream_id)
                    elif effect is ChangeKind.UPDATE:
                        updated.add(change.dream_id)
                    else:
                        deleted.add(change.dream_id)
                        inserted.discard(change.dream_id)
                        updated.discard(change.dream_id)

                if inserted or updated or deleted:
                    _write_generation(conn, generation)
                else:
                    generation -= 1
        except sqlite3.Error as exc:
            raise SaveError(f"Commit failed: {exc}") from exc

        notification = ChangeNotification(
            generation=generation,
            origin=origin,
            inserted=frozenset(inserted),
            updated=frozenset(updated),
            deleted=frozenset(deleted),
            author=author,
        )
        if not notification.is_empty:
            logger.debug(
                "Committed %s generation %d (+%d ~%d -%d)",
                origin.value,
                generation,
                len(inserted),
                len(updated),
                len(deleted),
            )
            self._events.post(notification)
        return notification

    def _apply(
        self,
        conn: sqlite3.Connection,
        change: RecordChange,
        *,
        origin: ChangeOrigin,
        stamp: str,
    ) -> ChangeKind | None:
        if change.kind is ChangeKind.DELETE:
            cur = conn.execute("DELETE FROM dreams WHERE dream_id = ?", (change.dream_id,))
            if cur.rowcount == 0:
                if origin is ChangeOrigin.LOCAL:
                    raise UnknownDreamError(f"Unknown dream_id: {change.dream_id}")
                if _is_tombstoned(conn, change.dream_id):
                    return None
            return ChangeKind.DELETE

        if change.kind is ChangeKind.INSERT:
            values = {name: _coerce(name, change.values.get(name, _FIELD_DEFAULTS[name])) for name in DREAM_FIELDS}
            _insert_row(conn, change.dream_id, values)
            _write_stamps(conn, change.dream_id, {name: stamp for name in DREAM_FIELDS})
            return ChangeKind.INSERT

        if change.kind is ChangeKind.UPDATE:
            values = {k: _coerce(k, v) for k, v in change.values.items() if k in DREAM_FIELDS}
            exists = conn.execute(
                "SELECT 1 FROM dreams WHERE dream_id = ?", (change.dream_id,)
            ).fetchone()
            if exists is None:
                raise UnknownDreamError(f"Unknown dream_id: {change.dream_id}")
            if not values:
                return None
            _update_row(conn, change.dream_id, values)
            _write_stamps(conn, change.dream_id, {name: stamp for name in values})
            return ChangeKind.UPDATE

        if change.kind is ChangeKind.UPSERT:
            return _apply_remote_upsert(conn, change)

        raise ValueError(f"Unsupported change kind: {change.kind!r}")


def _apply_remote_upsert(conn: sqlite3.Connection, change: RecordChange) -> ChangeKind | None:
    """Insert a remote record, or merge it field by field by stamp (ties keep local)."""
    if _is_tombstoned(conn, change.dream_id):
        return None

    exists = conn.execute("SELECT 1 FROM dreams WHERE dream_id = ?", (change.dream_id,)).fetchone()
    if exists is None:
        values = {name: _coerce(name, change.values.get(name, _FIELD_DEFAULTS[name])) for name in DREAM_FIELDS}
        _insert_row(conn, change.dream_id, values)
        _write_stamps(
            conn,
            change.dream_id,
            {name: str(change.stamps[name]) for name in DREAM_FIELDS if name in change.stamps},
        )
        return ChangeKind.INSERT

    local = _read_stamps(conn, change.dream_id)
    winners = {
        name: _coerce(name, value)
        for name, value in change.values.items()
        if name in DREAM_FIELDS and str(change.stamps.get(name, "")) > local.get(name, "")
    }
    if not winners:
        return None
    _update_row(conn, change.dream_id, winners)
    _write_stamps(conn, change.dream_id, {name: str(change.stamps[name]) for name in winners})
    return ChangeKind.UPDATE


def _insert_row(conn: sqlite3.Connection, dream_id: DreamId, values: Mapping[str, Any]) -> None:
    conn.execute(
        "INSERT INTO dreams(dream_id, title, description, image_data) VALUES(?, ?, ?, ?)",
        (dream_id, values["title"], values["description"], values["image_data"]),
    )


def _update_row(conn: sqlite3.Connection, dream_id: DreamId, values: Mapping[str, Any]) -> None:
    # Column names come from DREAM_FIELDS only.
    assignments = ", ".join(f"{name} = ?" for name in values)
    conn.execute(
        f"UPDATE dreams SET {assignments} WHERE dream_id = ?",
        (*values.values(), dream_id),
    )


def _write_stamps(conn: sqlite3.Connection, dream_id: DreamId, stamps: Mapping[str, str]) -> None:
    for name, stamp in stamps.items():
        conn.execute(
            "INSERT INTO field_stamps(dream_id, field, stamp) VALUES(?, ?, ?) "
            "ON CONFLICT(dream_id, field) DO UPDATE SET stamp = excluded.stamp",
            (dream_id, name, stamp),
        )


def _read_stamps(conn: sqlite3.Connection, dream_id: DreamId) -> dict[str, str]:
    rows = conn.execute(
        "SELECT field, stamp FROM field_stamps WHERE dream_id = ?", (dream_id,)
    ).fetchall()
    return {str(r["field"]): str(r["stamp"]) for r in rows}


def _is_tombstoned(conn: sqlite3.Connection, dream_id: DreamId) -> bool:
    row = conn.execute(
        "SELECT 1 FROM history WHERE dream_id = ? AND kind = 'delete' LIMIT 1", (dream_id,)
    ).fetchone()
    return row is not None


def _read_generation(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT value FROM meta WHERE key = 'generation'").fetchone()
    return 0 if row is None else int(row["value"])


def _write_generation(conn: sqlite3.Connection, generation: int) -> None:
    conn.execute(
        "INSERT INTO meta(key, value) VALUES('generation', ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (str(generation),),
    )


def _row_to_dream_row(row: sqlite3.Row, stamps: Mapping[str, str]) -> DreamRow:
    image = row["image_data"]
    return DreamRow(
        dream_id=str(row["dream_id"]),
        title=str(row["title"]),
        description=str(row["description"]),
        image_data=None if image is None else bytes(image),
        stamps=dict(stamps),
    )
