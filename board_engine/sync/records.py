"""
Replicated record format for the cloud folder.

A record file carries the full state of one Dream plus its per-field stamps.
Image payloads are stored separately as content-addressed, zstandard-compressed
blobs so that unchanged images are never rewritten.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Final, Mapping

import zstandard as zstd

from ..data_models import DREAM_FIELDS, ChangeKind, DreamId, DreamRow, RecordChange
from ..errors import SyncError

RECORD_SCHEMA: Final[str] = "visionboard_record_v1"
BLOB_COMPRESSION_LEVEL: Final[int] = 10


@dataclass(frozen=True, slots=True)
class RemoteRecord:
    """
    Full replicated state of one Dream.

    Attributes
    ----------
    dream_id:
        Record identity.
    title, description, image_data:
        Field values.
    stamps:
        Per-field modification stamps.
    """

    dream_id: DreamId
    title: str
    description: str
    image_data: bytes | None
    stamps: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_row(cls, row: DreamRow) -> "RemoteRecord":
        return cls(
            dream_id=row.dream_id,
            title=row.title,
            description=row.description,
            image_data=row.image_data,
            stamps=dict(row.stamps),
        )

    def to_change(self) -> RecordChange:
        """Return the stamp-guarded upsert that applies this record locally."""
        return RecordChange(
            dream_id=self.dream_id,
            kind=ChangeKind.UPSERT,
            values={name: getattr(self, name) for name in DREAM_FIELDS},
            stamps=dict(self.stamps),
        )


def blob_digest(data: bytes) -> str:
    """Return the content address (SHA-256 hex) of an image payload."""
    return hashlib.sha256(data).hexdigest()


def compress_blob(data: bytes) -> bytes:
    return zstd.ZstdCompressor(level=BLOB_COMPRESSION_LEVEL).compress(data)


def decompress_blob(data: bytes) -> bytes:
    try:
        return zstd.ZstdDecompressor().decompress(data)
    except zstd.ZstdError as exc:
        raise SyncError(f"Corrupt image blob: {exc}") from exc


def record_to_payload(record: RemoteRecord, *, device_id: str) -> dict[str, Any]:
    """Convert a record to its JSON payload. The image is referenced by digest."""
    return {
        "schema": RECORD_SCHEMA,
        "dream_id": record.dream_id,
        "title": record.title,
        "description": record.description,
        "image_sha256": None if record.image_data is None else blob_digest(record.image_data),
        "stamps": {name: record.stamps[name] for name in DREAM_FIELDS if name in record.stamps},
        "device": device_id,
    }


def record_from_payload(payload: Mapping[str, Any], *, image_data: bytes | None) -> RemoteRecord:
    """
    Build a record from its JSON payload and resolved image bytes.

    Raises
    ------
    SyncError
        If the payload does not match the record schema.
    """
    if payload.get("schema") != RECORD_SCHEMA:
        raise SyncError(f"Unsupported record schema: {payload.get('schema')!r}")
    try:
        stamps = payload["stamps"]
        if not isinstance(stamps, Mapping):
            raise TypeError("stamps must be an object")
        return RemoteRecord(
            dream_id=str(payload["dream_id"]),
            title=str(payload["title"]),
            description=str(payload["description"]),
            image_data=image_data,
            stamps={str(k): str(v) for k, v in stamps.items() if k in DREAM_FIELDS},
        )
    except (KeyError, TypeError) as exc:
        raise SyncError(f"Malformed record payload: {exc}") from exc
