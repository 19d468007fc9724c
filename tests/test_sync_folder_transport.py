from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest
import zstandard as zstd

from board_engine.clock import SteppingClock
from board_engine.errors import SyncError
from board_engine.store.container import PersistentContainer, StoreOptions, open_container
from board_engine.sync.records import RemoteRecord, blob_digest
from board_engine.sync.transport import FolderTransport

STAMP = "2026-01-01T00:00:00.000000+00:00"


def _device(cloud: Path, start: datetime) -> PersistentContainer:
    return open_container(
        in_memory=True,
        options=StoreOptions(cloud_root=cloud),
        clock=SteppingClock(start),
    )


@pytest.fixture
def cloud(tmp_path: Path) -> Path:
    root = tmp_path / "cloud"
    root.mkdir()
    return root


def test_two_devices_converge_through_a_shared_folder(cloud: Path) -> None:
    with _device(cloud, datetime(2026, 1, 1, tzinfo=timezone.utc)) as a, _device(
        cloud, datetime(2026, 1, 2, tzinfo=timezone.utc)
    ) as b:
        dream = a.view_context.insert_new_dream(title="From A", description="Desc")
        a.save_context()

        report_a = a.sync_now()
        report_b = b.sync_now()

        assert report_a is not None and report_a.exported == 1
        assert report_b is not None and report_b.imported == 1
        copies = b.view_context.fetch_dreams()
        assert [(d.dream_id, d.title, d.description) for d in copies] == [(dream.dream_id, "From A", "Desc")]

        # Imported records are not echoed back to the feed.
        assert b.sync_now().exported == 0  # type: ignore[union-attr]


def test_deletions_propagate(cloud: Path) -> None:
    with _device(cloud, datetime(2026, 1, 1, tzinfo=timezone.utc)) as a, _device(
        cloud, datetime(2026, 1, 2, tzinfo=timezone.utc)
    ) as b:
        a.view_context.insert_new_dream(title="Short-lived")
        a.save_context()
        a.sync_now()
        b.sync_now()

        b.view_context.delete(b.view_context.fetch_dreams()[0])
        b.save_context()
        b.sync_now()
        a.sync_now()

        assert a.durable_count() == 0
        assert a.view_context.fetch_dreams() == []


def test_concurrent_edits_resolve_per_field_by_stamp(cloud: Path) -> None:
    with _device(cloud, datetime(2026, 1, 1, tzinfo=timezone.utc)) as a, _device(
        cloud, datetime(2026, 6, 1, tzinfo=timezone.utc)
    ) as b:
        original = a.view_context.insert_new_dream(title="Shared", description="Original")
        a.save_context()
        a.sync_now()
        b.sync_now()

        original.description = "A description"
        a.save_context()
        a.sync_now()

        b.view_context.dream(original.dream_id).title = "B title"
        b.save_context()
        b.sync_now()
        a.sync_now()

        for device in (a, b):
            row = device.store.fetch_row(original.dream_id)
            assert row is not None
            assert (row.title, row.description) == ("B title", "A description")


def test_image_blobs_are_compressed_and_round_trip(cloud: Path) -> None:
    image = b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 64
    with _device(cloud, datetime(2026, 1, 1, tzinfo=timezone.utc)) as a, _device(
        cloud, datetime(2026, 1, 2, tzinfo=timezone.utc)
    ) as b:
        dream = a.view_context.insert_new_dream(title="Picture")
        dream.image_data = image
        a.save_context()
        a.sync_now()
        b.sync_now()

        blob = cloud / "blobs" / f"{blob_digest(image)}.zst"
        assert blob.exists()
        raw = blob.read_bytes()
        assert raw[:4] == b"\x28\xb5\x2f\xfd"
        assert len(raw) < len(image)
        assert zstd.ZstdDecompressor().decompress(raw) == image

        copy = b.view_context.dream(dream.dream_id)
        assert copy.image_data == image


def _record(dream_id: str, title: str) -> RemoteRecord:
    return RemoteRecord(
        dream_id=dream_id,
        title=title,
        description="",
        image_data=None,
        stamps={"title": STAMP, "description": STAMP, "image_data": STAMP},
    )


def test_fetch_skips_own_device_and_counts_complete_lines(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    transport.push([_record("d1", "One")], [], device_id="dev-a")
    transport.push([_record("d2", "Two")], [], device_id="dev-b")

    batch = transport.fetch_changes(None, exclude_device="dev-b")

    assert [r.dream_id for r in batch.records] == ["d1"]
    assert batch.token == "2"
    assert transport.fetch_changes(batch.token, exclude_device="dev-b").records == ()


def test_incomplete_trailing_line_is_ignored(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    transport.push([_record("d1", "One")], [], device_id="dev-a")
    with transport.feed_path.open("a", encoding="utf-8") as handle:
        handle.write('{"device":"dev-a","dream_id":"d2"')

    batch = transport.fetch_changes(None, exclude_device="dev-z")

    assert [r.dream_id for r in batch.records] == ["d1"]
    assert batch.token == "1"


def test_malformed_feed_lines_are_skipped(cloud: Path, caplog: pytest.LogCaptureFixture) -> None:
    transport = FolderTransport(cloud)
    transport.feed_path.write_text("not json\n", encoding="utf-8")
    transport.push([_record("d1", "One")], [], device_id="dev-a")

    with caplog.at_level(logging.WARNING):
        batch = transport.fetch_changes(None, exclude_device="dev-z")

    assert [r.dream_id for r in batch.records] == ["d1"]
    assert "malformed" in caplog.text


def test_latest_feed_entry_per_dream_wins(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    transport.push([_record("d1", "One")], [], device_id="dev-a")
    transport.push([], ["d1"], device_id="dev-a")

    batch = transport.fetch_changes(None, exclude_device="dev-z")

    assert batch.records == ()
    assert batch.deletions == ("d1",)
    assert not (transport.records_root / "d1.json").exists()


def test_token_past_end_replays_feed(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    transport.push([_record("d1", "One")], [], device_id="dev-a")

    batch = transport.fetch_changes("99", exclude_device="dev-z")

    assert [r.title for r in batch.records] == ["One"]


def test_record_file_has_versioned_schema_and_image_reference(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    transport.push([_record("d1", "One")], [], device_id="dev-a")

    payload = json.loads((transport.records_root / "d1.json").read_text(encoding="utf-8"))

    assert payload["schema"] == "visionboard_record_v1"
    assert payload["image_sha256"] is None
    assert payload["device"] == "dev-a"


def test_unsafe_record_ids_are_rejected(cloud: Path) -> None:
    transport = FolderTransport(cloud)
    with pytest.raises(SyncError):
        transport.push([_record("../escape", "Bad")], [], device_id="dev-a")


def test_invalid_token_raises_sync_error(cloud: Path) -> None:
    with pytest.raises(SyncError):
        FolderTransport(cloud).fetch_changes("abc", exclude_device="dev-a")


def test_undecodable_feed_lines_are_skipped(cloud: Path, caplog: pytest.LogCaptureFixture) -> None:
    transport = FolderTransport(cloud)
    transport.feed_path.write_bytes(b"\xff\xfe garbage\n")
    transport.push([_record("d1", "One")], [], device_id="dev-a")

    with caplog.at_level(logging.WARNING):
        batch = transport.fetch_changes(None, exclude_device="dev-z")

    assert [r.dream_id for r in batch.records] == ["d1"]
    assert batch.token == "2"
    assert "Skipping malformed change feed line 1" in caplog.text


def test_unsafe_feed_entry_does_not_block_other_changes(cloud: Path, caplog: pytest.LogCaptureFixture) -> None:
    transport = FolderTransport(cloud)
    bad = {"device": "other", "dream_id": "../x", "kind": "upsert", "ts": STAMP}
    bad_delete = {"device": "other", "dream_id": "../y", "kind": "delete", "ts": STAMP}
    unknown_kind = {"device": "other", "dream_id": "d9", "kind": "rename", "ts": STAMP}
    transport.feed_path.write_text(
        "".join(json.dumps(entry) + "\n" for entry in (bad, bad_delete, unknown_kind)),
        encoding="utf-8",
    )
    transport.push([_record("d1", "Good")], [], device_id="other")

    with caplog.at_level(logging.WARNING):
        batch = transport.fetch_changes(None, exclude_device="me")

    assert [r.title for r in batch.records] == ["Good"]
    assert batch.deletions == ()
    assert batch.token == "4"
    assert "Skipping invalid change feed entry" in caplog.text


def test_unsafe_feed_entry_does_not_stall_device_sync(cloud: Path) -> None:
    bad = {"device": "other", "dream_id": "../x", "kind": "upsert", "ts": STAMP}
    (cloud / "changes.jsonl").write_text(json.dumps(bad) + "\n", encoding="utf-8")
    FolderTransport(cloud).push([_record("d1", "Good")], [], device_id="other")

    with _device(cloud, datetime(2026, 1, 1, tzinfo=timezone.utc)) as device:
        first = device.sync_now()
        second = device.sync_now()

        assert first is not None and first.imported == 1
        assert first.token == "2"
        assert second is not None and second.imported == 0
        assert [d.title for d in device.view_context.fetch_dreams()] == ["Good"]
