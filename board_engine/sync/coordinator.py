"""
Replication between the local store and a cloud transport.

Export walks the store's persistent history for local changes not yet
published and pushes the latest state of each touched Dream. Import reads the
transport's change feed and commits the result as a remote-origin transaction,
which the container then merges into the view context.

Sync state lives in the store's meta table:

- ``device_id``: identity of this device in the change feed
- ``sync.last_exported_change_id``: newest history entry already published
- ``sync.remote_token``: feed position already imported
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..data_models import ChangeKind, ChangeOrigin, DreamId, RecordChange
from ..store.sqlite_store import SqliteDreamStore
from .records import RemoteRecord
from .transport import CloudTransport

logger = logging.getLogger(__name__)

LAST_EXPORTED_KEY = "sync.last_exported_change_id"
REMOTE_TOKEN_KEY = "sync.remote_token"


@dataclass(frozen=True, slots=True)
class SyncReport:
    """
    Result of one replication pass.

    Attributes
    ----------
    imported:
        Remote records and deletions read from the feed.
    exported:
        Local records and deletions published.
    token:
        Feed position after the pass.
    """

    imported: int
    exported: int
    token: str | None


class SyncCoordinator:
    """
    Moves changes between a store and a cloud transport.

    Parameters
    ----------
    store:
        Local durable store.
    transport:
        Cloud transport.
    """

    def __init__(self, store: SqliteDreamStore, transport: CloudTransport) -> None:
        self._store = store
        self._transport = transport
        self.device_id = store.get_or_create_device_id()

    def import_changes(self) -> int:
        """
        Apply remote changes made since the last import.

        Returns
        -------
        int
            Number of remote records and deletions read.

        Raises
        ------
        SyncError
            If the transport cannot be read.
        """
        token = self._store.get_meta(REMOTE_TOKEN_KEY)
        batch = self._transport.fetch_changes(token, exclude_device=self.device_id)

        changes: list[RecordChange] = [record.to_change() for record in batch.records]
        changes.extend(RecordChange(dream_id, ChangeKind.DELETE) for dream_id in batch.deletions)
        if changes:
            self._store.commit(changes, origin=ChangeOrigin.REMOTE)

        self._store.set_meta(REMOTE_TOKEN_KEY, batch.token)
        return len(changes)

    def export_changes(self) -> int:
        """
        Publish local changes committed since the last export.

        Returns
        -------
        int
            Number of records and deletions published.

        Raises
        ------
        SyncError
            If the transport cannot be written.
        """
        last = int(self._store.get_meta(LAST_EXPORTED_KEY) or 0)
        entries = self._store.history_since(last, origin=ChangeOrigin.LOCAL)
        if not entries:
            return 0

        touched: dict[DreamId, None] = {}
        for entry in entries:
            touched.pop(entry.dream_id, None)
            touched[entry.dream_id] = None

        records: list[RemoteRecord] = []
        deletions: list[DreamId] = []
        for dream_id in touched:
            row = self._store.fetch_row(dream_id)
            if row is None:
                deletions.append(dream_id)
            else:
                records.append(RemoteRecord.from_row(row))

        self._transport.push(records, deletions, device_id=self.device_id)
        self._store.set_meta(LAST_EXPORTED_KEY, str(entries[-1].change_id))
        return len(records) + len(deletions)

    def sync(self) -> SyncReport:
        """Run one pass: import first, then export."""
        imported = self.import_changes()
        exported = self.export_changes()
        token = self._store.get_meta(REMOTE_TOKEN_KEY)
        logger.debug("Sync pass complete: imported=%d exported=%d token=%s", imported, exported, token)
        return SyncReport(imported=imported, exported=exported, token=token)
