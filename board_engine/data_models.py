"""
Core data models for the Vision Board engine.

Notes
-----
`Dream` is the only user-facing record type. It is deliberately mutable: an
editor mutates one Dream in place and the owning context detects the change by
comparing field values against its last known store snapshot.

Everything else in this module is an immutable value passed between the
store, its contexts, and the replication layer.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Final, Mapping

DreamId = str

# Persisted, user-editable fields in a stable order.
DREAM_FIELDS: Final[tuple[str, ...]] = ("title", "description", "image_data")


def new_dream_id() -> DreamId:
    """Return a fresh, immutable Dream identity."""
    return uuid.uuid4().hex


@dataclass(eq=False, slots=True)
class Dream:
    """
    A goal card on the board.

    Attributes
    ----------
    dream_id:
        Stable identity assigned at creation. Never changes.
    title:
        User-editable title; the sole sort key.
    description:
        User-editable multi-line description.
    image_data:
        Optional image payload in any encoding. Replaced wholesale on edit.

    Notes
    -----
    Equality is identity: two Dream objects are the same record only if a
    context hands out the same object for the same dream_id.
    """

    dream_id: DreamId = field(default_factory=new_dream_id)
    title: str = ""
    description: str = ""
    image_data: bytes | None = None

    def field_values(self) -> dict[str, Any]:
        """Return the persisted field values keyed by field name."""
        return {name: getattr(self, name) for name in DREAM_FIELDS}

    def apply_values(self, values: Mapping[str, Any]) -> None:
        """Overwrite the named fields from `values`."""
        for name, value in values.items():
            if name not in DREAM_FIELDS:
                raise KeyError(f"Unknown Dream field: {name}")
            setattr(self, name, value)

    @property
    def display_title(self) -> str:
        return self.title if self.title.strip() else "Untitled"

    @property
    def display_description(self) -> str:
        return self.description if self.description.strip() else "No Description"


@dataclass(frozen=True, slots=True)
class DreamRow:
    """
    Durable state of a Dream as read from the store.

    Attributes
    ----------
    dream_id:
        Record identity.
    title, description, image_data:
        Persisted field values.
    stamps:
        Per-field modification stamps (sortable UTC ISO strings).
    """

    dream_id: DreamId
    title: str
    description: str
    image_data: bytes | None
    stamps: Mapping[str, str] = field(default_factory=dict)

    def field_values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in DREAM_FIELDS}

    def to_dream(self) -> Dream:
        return Dream(
            dream_id=self.dream_id,
            title=self.title,
            description=self.description,
            image_data=self.image_data,
        )


class ChangeKind(str, Enum):
    """Kind of a single record change in a commit."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    # Remote records: insert when absent, otherwise stamp-guarded update.
    UPSERT = "upsert"


class ChangeOrigin(str, Enum):
    """Where a change came from."""

    LOCAL = "local"
    REMOTE = "remote"
    # Uncommitted, in-context change (pending insert or delete).
    CONTEXT = "context"


@dataclass(frozen=True, slots=True)
class RecordChange:
    """
    One record-level change submitted to the store.

    Attributes
    ----------
    dream_id:
        Target record.
    kind:
        Insert, update, delete, or remote upsert.
    values:
        Field values to write. Ignored for deletes.
    stamps:
        Per-field stamps for remote changes. Local commits are stamped by the
        store clock.
    """

    dream_id: DreamId
    kind: ChangeKind
    values: Mapping[str, Any] = field(default_factory=dict)
    stamps: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ChangeNotification:
    """
    Notification posted after records change.

    Attributes
    ----------
    generation:
        Store generation after the change.
    origin:
        Local commit, remote import, or uncommitted context change.
    inserted, updated, deleted:
        Affected dream_ids.
    author:
        The context that produced a local commit, if any. Contexts use this
        to skip merging their own saves.
    """

    generation: int
    origin: ChangeOrigin
    inserted: frozenset[DreamId] = frozenset()
    updated: frozenset[DreamId] = frozenset()
    deleted: frozenset[DreamId] = frozenset()
    author: object | None = field(default=None, compare=False)

    @property
    def is_empty(self) -> bool:
        return not (self.inserted or self.updated or self.deleted)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """A persistent history record of one committed change."""

    change_id: int
    generation: int
    dream_id: DreamId
    kind: ChangeKind
    origin: ChangeOrigin
