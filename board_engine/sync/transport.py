"""
Cloud transports for Dream replication.

`FolderTransport` replicates through a directory that a cloud drive client
keeps in sync between devices. Layout::

    <root>/
      changes.jsonl          append-only change feed, one JSON object per line
      records/<dream_id>.json
      blobs/<sha256>.zst     zstandard-compressed image payloads

The sync token is the number of complete feed lines already consumed. A line
without a trailing newline is still being written (or still being downloaded)
and is ignored until it is complete.
Lines that cannot be decoded or parsed, and entries with an unknown kind or an
unsafe record id, are logged and skipped so they never stall later imports.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from ..clock import Clock, SystemClock, format_stamp
from ..data_models import DreamId
from ..errors import SyncError
from .records import (
    RemoteRecord,
    blob_digest,
    compress_blob,
    decompress_blob,
    record_from_payload,
    record_to_payload,
)

logger = logging.getLogger(__name__)

FEED_FILE_NAME = "changes.jsonl"
FEED_KINDS = frozenset({"upsert", "delete"})


@dataclass(frozen=True, slots=True)
class RemoteChangeBatch:
    """
    Remote changes read since a token.

    Attributes
    ----------
    records:
        Latest state of every Dream upserted by other devices.
    deletions:
        Dreams deleted by other devices.
    token:
        Token to pass to the next fetch.
    """

    records: tuple[RemoteRecord, ...]
    deletions: tuple[DreamId, ...]
    token: str


class CloudTransport(Protocol):
    """Replication surface used by the sync coordinator."""

    def fetch_changes(self, since_token: str | None, *, exclude_device: str) -> RemoteChangeBatch:
        """
        Return changes made by other devices after `since_token`.

        Raises
        ------
        SyncError
            If the remote state cannot be read.
        """
        ...

    def push(
        self,
        records: Sequence[RemoteRecord],
        deletions: Sequence[DreamId],
        *,
        device_id: str,
    ) -> None:
        """
        Publish local records and deletions.

        Raises
        ------
        SyncError
            If the remote state cannot be written.
        """
        ...


class FolderTransport:
    """Replicate through a cloud-synced folder."""

    def __init__(self, root: Path, *, clock: Clock | None = None) -> None:
        self.root = root
        self.records_root = root / "records"
        self.blobs_root = root / "blobs"
        self.feed_path = root / FEED_FILE_NAME
        self._clock: Clock = clock or SystemClock()

    def fetch_changes(self, since_token: str | None, *, exclude_device: str) -> RemoteChangeBatch:
        try:
            start = int(since_token) if since_token else 0
        except ValueError as exc:
            raise SyncError(f"Invalid sync token: {since_token!r}") from exc

        try:
            lines = self._read_feed_lines()
        except OSError as exc:
            raise SyncError(f"Unable to read change feed {self.feed_path}: {exc}") from exc

        if start > len(lines):
            # The feed was replaced or truncated; replay it from the start.
            logger.warning("Sync token %d is past the end of the feed; replaying.", start)
            start = 0

        latest: dict[DreamId, str] = {}
        for index, raw in enumerate(lines[start:], start=start):
            if not raw.strip():
                continue
            try:
                entry = json.loads(raw.decode("utf-8"))
                dream_id = str(entry["dream_id"])
                kind = str(entry["kind"])
                device = str(entry["device"])
            except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError):
                logger.warning("Skipping malformed change feed line %d.", index + 1)
                continue
            if kind not in FEED_KINDS or not _is_valid_record_id(dream_id):
                logger.warning("Skipping invalid change feed entry on line %d: %r", index + 1, dream_id)
                continue
            if device == exclude_device:
                continue
            latest.pop(dream_id, None)
            latest[dream_id] = kind

        records: list[RemoteRecord] = []
        deletions: list[DreamId] = []
        for dream_id, kind in latest.items():
            if kind == "delete":
                deletions.append(dream_id)
                continue
            record = self._read_record(dream_id)
            if record is not None:
                records.append(record)

        return RemoteChangeBatch(records=tuple(records), deletions=tuple(deletions), token=str(len(lines)))

    def push(
        self,
        records: Sequence[RemoteRecord],
        deletions: Sequence[DreamId],
        *,
        device_id: str,
    ) -> None:
        if not records and not deletions:
            return
        ts = format_stamp(self._clock.now())
        entries: list[Mapping[str, Any]] = []
        try:
            for record in records:
                if record.image_data is not None:
                    self._write_blob(record.image_data)
                _write_json_atomic(
                    self._record_path(record.dream_id),
                    record_to_payload(record, device_id=device_id),
                )
                entries.append({"device": device_id, "dream_id": record.dream_id, "kind": "upsert", "ts": ts})
            for dream_id in deletions:
                self._record_path(dream_id).unlink(missing_ok=True)
                entries.append({"device": device_id, "dream_id": dream_id, "kind": "delete", "ts": ts})
            self._append_feed(entries)
        except OSError as exc:
            raise SyncError(f"Unable to write to cloud folder {self.root}: {exc}") from exc

    # ---------------- Internals ----------------

    def _record_path(self, dream_id: DreamId) -> Path:
        if not _is_valid_record_id(dream_id):
            raise SyncError(f"Invalid dream_id for cloud record: {dream_id!r}")
        return self.records_root / f"{dream_id}.json"

    def _blob_path(self, digest: str) -> Path:
        return self.blobs_root / f"{digest}.zst"

    def _read_feed_lines(self) -> list[bytes]:
        if not self.feed_path.exists():
            return []
        data = self.feed_path.read_bytes()
        # Everything after the last newline is an incomplete line.
        return data.split(b"\n")[:-1]

    def _append_feed(self, entries: Sequence[Mapping[str, Any]]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        payload = "".join(
            json.dumps(entry, ensure_ascii=False, sort_keys=True, separators=(",", ":")) + "\n"
            for entry in entries
        )
        with self.feed_path.open("a", encoding="utf-8", newline="\n") as handle:
            handle.write(payload)
            handle.flush()

    def _write_blob(self, data: bytes) -> None:
        path = self._blob_path(blob_digest(data))
        if path.exists():
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_bytes(compress_blob(data))
        os.replace(temp_path, path)

    def _read_record(self, dream_id: DreamId) -> RemoteRecord | None:
        path = self._record_path(dream_id)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            raise SyncError(f"Unable to read cloud record {path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise SyncError(f"Cloud record is not an object: {path}")

        image_data: bytes | None = None
        digest = payload.get("image_sha256")
        if digest:
            blob_path = self._blob_path(str(digest))
            try:
                image_data = decompress_blob(blob_path.read_bytes())
            except OSError as exc:
                raise SyncError(f"Unable to read image blob {blob_path}: {exc}") from exc
            if blob_digest(image_data) != digest:
                raise SyncError(f"Image blob digest mismatch: {blob_path}")
        return record_from_payload(payload, image_data=image_data)


def _is_valid_record_id(dream_id: str) -> bool:
    return bool(dream_id) and not any(ch in dream_id for ch in r"\/:.")


def _write_json_atomic(json_path: Path, payload: Mapping[str, Any]) -> None:
    """Write JSON atomically (temp file + replace)."""
    json_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = json_path.with_suffix(json_path.suffix + ".tmp")
    try:
        with temp_path.open("w", encoding="utf-8", newline="\n") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=False)
            handle.write("\n")
        os.replace(temp_path, json_path)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise
