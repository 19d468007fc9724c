"""
Object contexts: scoped handles for reading and writing Dreams.

A context keeps an identity map of the Dreams it has handed out, the pending
inserts and deletes made through it, and a snapshot of each Dream's last known
store values. Field edits are detected by comparing a Dream against its
snapshot, so editors may mutate Dream attributes directly.

Notes
-----
- A context is single-owner: only one thread uses it at a time.
- Saving is all-or-nothing for the context's pending change set.
- Save failures are logged and leave the pending changes in place.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from ..data_models import (
    DREAM_FIELDS,
    ChangeKind,
    ChangeNotification,
    ChangeOrigin,
    Dream,
    DreamId,
    DreamRow,
    RecordChange,
)
from ..errors import UnknownDreamError, VisionBoardError
from .notifications import NotificationCenter, Subscription
from .sqlite_store import SqliteDreamStore

logger = logging.getLogger(__name__)


class MergePolicy(str, Enum):
    """How a context resolves incoming changes against its unsaved edits."""

    # Edited fields keep their in-memory values; other fields take the store values.
    OBJECT_TRUMP = "object_trump"
    # Incoming store values overwrite in-memory edits.
    STORE_TRUMP = "store_trump"


class ObjectContext:
    """
    A scoped handle for reading and writing Dreams.

    Parameters
    ----------
    store:
        Durable store backing this context.
    name:
        Label used in log messages ("view", "background-1", ...).
    merge_policy:
        Conflict policy applied when merging incoming changes.
    """

    def __init__(
        self,
        store: SqliteDreamStore,
        *,
        name: str,
        merge_policy: MergePolicy = MergePolicy.OBJECT_TRUMP,
    ) -> None:
        self._store = store
        self.name = name
        self.merge_policy = merge_policy
        self._registered: dict[DreamId, Dream] = {}
        self._snapshots: dict[DreamId, dict[str, Any]] = {}
        self._inserted: dict[DreamId, Dream] = {}
        self._deleted: dict[DreamId, Dream] = {}
        self._query_generation: int | None = None
        self._events: NotificationCenter[ChangeNotification] = NotificationCenter(f"context:{name}")

    def __repr__(self) -> str:
        return f"ObjectContext(name={self.name!r})"

    # ---------------- Observation ----------------

    def subscribe(self, callback: Callable[[ChangeNotification], None]) -> Subscription[ChangeNotification]:
        """
        Receive a notification whenever the objects visible through this
        context change: pending inserts/deletes, saves, and merges.
        """
        return self._events.subscribe(callback)

    # ---------------- Reads ----------------

    def fetch_dreams(self) -> list[Dream]:
        """
        Return every Dream visible in this context, sorted by title ascending.

        Pending inserts are included and pending deletes excluded. Dreams the
        context already holds are returned as-is, with any unsaved edits.
        """
        results: dict[DreamId, Dream] = {}
        for row in self._store.fetch_rows():
            if row.dream_id in self._deleted:
                continue
            results[row.dream_id] = self._register_row(row)
        for dream_id, dream in self._inserted.items():
            results[dream_id] = dream
        return sorted(results.values(), key=lambda d: (d.title, d.dream_id))

    def count(self) -> int:
        """Return the number of Dreams visible in this context."""
        return len(self.fetch_dreams())

    def dream(self, dream_id: DreamId) -> Dream:
        """
        Return the Dream for `dream_id`, loading it from the store if needed.

        Raises
        ------
        UnknownDreamError
            If the Dream is neither registered nor durable, or is pending deletion.
        """
        if dream_id in self._deleted:
            raise UnknownDreamError(f"Dream is pending deletion: {dream_id}")
        existing = self._registered.get(dream_id)
        if existing is not None:
            return existing
        row = self._store.fetch_row(dream_id)
        if row is None:
            raise UnknownDreamError(f"Unknown dream_id: {dream_id}")
        return self._register_row(row)

    def is_inserted(self, dream: Dream) -> bool:
        """Return True if `dream` was created here and has not been saved yet."""
        return dream.dream_id in self._inserted

    def is_registered(self, dream: Dream) -> bool:
        return self._registered.get(dream.dream_id) is dream

    def changed_fields(self, dream: Dream) -> dict[str, Any]:
        """Return the fields of a durable Dream that differ from the store snapshot."""
        snapshot = self._snapshots.get(dream.dream_id)
        if snapshot is None:
            return {}
        return {
            name: getattr(dream, name)
            for name in DREAM_FIELDS
            if getattr(dream, name) != snapshot[name]
        }

    @property
    def has_changes(self) -> bool:
        if self._inserted or self._deleted:
            return True
        return any(self.changed_fields(d) for d in self._registered.values())

    # ---------------- Writes ----------------

    def insert_new_dream(self, *, title: str = "", description: str = "") -> Dream:
        """Create a pending Dream with empty defaults. It is not durable until saved."""
        dream = Dream(title=title, description=description)
        self._registered[dream.dream_id] = dream
        self._inserted[dream.dream_id] = dream
        self._post_pending(inserted={dream.dream_id})
        return dream

    def delete(self, dream: Dream) -> None:
        """
        Mark `dream` for deletion.

        A pending insert is discarded immediately and never reaches the store.
        """
        dream_id = dream.dream_id
        if dream_id in self._inserted:
            del self._inserted[dream_id]
            self._registered.pop(dream_id, None)
        elif dream_id in self._registered:
            self._deleted[dream_id] = dream
        else:
            raise UnknownDreamError(f"Dream is not registered in context {self.name}: {dream_id}")
        self._post_pending(deleted={dream_id})

    def save(self) -> bool:
        """
        Commit pending changes to durable storage.

        Returns
        -------
        bool
            True if the changes were committed or there was nothing to save;
            False if the commit failed. Failures are logged and the pending
            changes stay in memory.
        """
        if not self.has_changes:
            return True

        changes: list[RecordChange] = []
        for dream_id, dream in self._inserted.items():
            changes.append(RecordChange(dream_id, ChangeKind.INSERT, values=dream.field_values()))
        for dream_id, dream in self._registered.items():
            if dream_id in self._inserted or dream_id in self._deleted:
                continue
            edited = self.changed_fields(dream)
            if edited:
                changes.append(RecordChange(dream_id, ChangeKind.UPDATE, values=edited))
        for dream_id in self._deleted:
            changes.append(RecordChange(dream_id, ChangeKind.DELETE))

        try:
            notification = self._store.commit(changes, origin=ChangeOrigin.LOCAL, author=self)
        except VisionBoardError as exc:
            logger.error("Error saving context %s: %s", self.name, exc)
            return False

        for dream_id, dream in self._registered.items():
            if dream_id not in self._deleted:
                self._snapshots[dream_id] = dream.field_values()
        for dream_id in self._deleted:
            self._registered.pop(dream_id, None)
            self._snapshots.pop(dream_id, None)
        self._inserted.clear()
        self._deleted.clear()

        logger.info("Context %s saved successfully (generation %d).", self.name, notification.generation)
        self._events.post(notification)
        return True

    def rollback(self) -> None:
        """Discard every pending insert, delete, and field edit."""
        for dream_id in self._inserted:
            self._registered.pop(dream_id, None)
        self._inserted.clear()
        self._deleted.clear()
        for dream_id, dream in self._registered.items():
            dream.apply_values(self._snapshots[dream_id])
        self._post_pending()

    def refresh(self, dream: Dream, *, merge_changes: bool) -> None:
        """
        Reload a registered Dream from the store.

        Parameters
        ----------
        dream:
            The Dream to refresh.
        merge_changes:
            If True, unsaved edits survive according to the merge policy.
            If False, unsaved edits are discarded.

        Notes
        -----
        A Dream that no longer exists in the store is unregistered.
        """
        dream_id = dream.dream_id
        if dream_id in self._inserted:
            return
        row = self._store.fetch_row(dream_id)
        if row is None:
            self._forget(dream_id)
            return
        self._merge_row(dream, row, keep_edits=merge_changes)

    def merge_changes(self, notification: ChangeNotification) -> None:
        """
        Incorporate changes committed elsewhere (another context or a remote import).

        Deleted Dreams are dropped even if they carry unsaved edits. Updated
        Dreams are merged according to the merge policy.
        """
        if notification.author is self:
            return
        for dream_id in notification.deleted:
            if dream_id in self._registered and dream_id not in self._inserted:
                dream = self._registered[dream_id]
                if self.changed_fields(dream):
                    logger.warning(
                        "Dream %s was deleted elsewhere; discarding unsaved edits in %s.",
                        dream_id,
                        self.name,
                    )
                self._forget(dream_id)
        for dream_id in notification.updated | notification.inserted:
            dream = self._registered.get(dream_id)
            if dream is None or dream_id in self._inserted:
                continue
            row = self._store.fetch_row(dream_id)
            if row is None:
                self._forget(dream_id)
                continue
            self._merge_row(dream, row, keep_edits=self.merge_policy is MergePolicy.OBJECT_TRUMP)
        self._events.post(notification)

    # ---------------- Query generation ----------------

    @property
    def query_generation(self) -> int | None:
        return self._query_generation

    def set_query_generation_current(self) -> int:
        """
        Record the store's current generation as this context's query generation.

        Notes
        -----
        Reads are not snapshot-isolated: `fetch_dreams` and `dream` always read
        the latest committed state. The recorded generation marks the point a
        context last synchronised at; compare it with `store_has_advanced`.
        """
        self._query_generation = self._store.generation()
        return self._query_generation

    @property
    def store_has_advanced(self) -> bool:
        """True if the store has committed since `set_query_generation_current`."""
        if self._query_generation is None:
            return False
        return self._store.generation() != self._query_generation

    # ---------------- Internals ----------------

    def _register_row(self, row: DreamRow) -> Dream:
        existing = self._registered.get(row.dream_id)
        if existing is not None:
            return existing
        dream = row.to_dream()
        self._registered[row.dream_id] = dream
        self._snapshots[row.dream_id] = row.field_values()
        return dream

    def _merge_row(self, dream: Dream, row: DreamRow, *, keep_edits: bool) -> None:
        edited = self.changed_fields(dream) if keep_edits else {}
        incoming = row.field_values()
        dream.apply_values({k: v for k, v in incoming.items() if k not in edited})
        self._snapshots[dream.dream_id] = incoming

    def _forget(self, dream_id: DreamId) -> None:
        self._registered.pop(dream_id, None)
        self._snapshots.pop(dream_id, None)
        self._deleted.pop(dream_id, None)

    def _post_pending(
        self,
        *,
        inserted: set[DreamId] | None = None,
        deleted: set[DreamId] | None = None,
    ) -> None:
        self._events.post(
            ChangeNotification(
                generation=self._store.generation(),
                origin=ChangeOrigin.CONTEXT,
                inserted=frozenset(inserted or ()),
                deleted=frozenset(deleted or ()),
                author=self,
            )
        )
