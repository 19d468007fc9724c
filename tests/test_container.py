from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from board_engine.data_models import ChangeNotification, ChangeOrigin
from board_engine.errors import SafetyViolationError
from board_engine.store.container import StoreOptions, open_board_container, open_container


def test_open_container_requires_a_path_unless_in_memory() -> None:
    with pytest.raises(ValueError):
        open_container()


def test_open_board_container_creates_store_under_board(tmp_path: Path) -> None:
    with open_board_container("main", data_root=tmp_path) as container:
        container.view_context.insert_new_dream(title="Persisted")
        assert container.save_context() is True
        location = container.store.location

    assert Path(location) == tmp_path.resolve() / "boards" / "main" / "store" / "visionboard.sqlite"
    with open_board_container("main", data_root=tmp_path) as reopened:
        assert [d.title for d in reopened.view_context.fetch_dreams()] == ["Persisted"]


def test_background_context_changes_are_invisible_until_saved() -> None:
    with open_container(in_memory=True) as container:
        bg = container.new_background_context()
        bg.insert_new_dream(title="Hidden")

        assert container.view_context.fetch_dreams() == []
        assert container.durable_count() == 0

        bg.save()
        assert [d.title for d in container.view_context.fetch_dreams()] == ["Hidden"]


def test_background_contexts_get_distinct_names() -> None:
    with open_container(in_memory=True) as container:
        first = container.new_background_context()
        second = container.new_background_context()

        assert first.name != second.name
        assert container.view_context.name == "view"


def test_view_merges_go_through_injected_dispatch() -> None:
    queued: list[Callable[[], None]] = []
    with open_container(in_memory=True, dispatch=queued.append) as container:
        view = container.view_context
        dream = view.insert_new_dream(title="Before")
        view.save()
        assert queued == []

        bg = container.new_background_context()
        bg.dream(dream.dream_id).title = "After"
        bg.save()

        assert len(queued) == 1
        assert dream.title == "Before"
        queued.pop()()
        assert dream.title == "After"


def test_container_subscription_sees_every_commit() -> None:
    seen: list[ChangeNotification] = []
    with open_container(in_memory=True) as container:
        sub = container.subscribe(seen.append)
        container.view_context.insert_new_dream(title="One")
        container.save_context()
        sub.unsubscribe()
        container.view_context.insert_new_dream(title="Two")
        container.save_context()

    assert len(seen) == 1
    assert seen[0].origin is ChangeOrigin.LOCAL


def test_force_sync_without_cloud_resolves_and_logs(caplog: pytest.LogCaptureFixture) -> None:
    with open_container(in_memory=True) as container:
        assert container.sync_enabled is False
        assert container.sync_now() is None

        with caplog.at_level(logging.INFO):
            future = container.force_sync()
            assert future.result(timeout=10) is None

    assert "Forced sync at generation" in caplog.text


def test_force_sync_failure_is_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    cloud = tmp_path / "cloud"
    cloud.mkdir()
    with open_container(in_memory=True, options=StoreOptions(cloud_root=cloud)) as container:
        (cloud / "changes.jsonl").write_text("", encoding="utf-8")
        container.store.set_meta("sync.remote_token", "not-a-number")

        with caplog.at_level(logging.WARNING):
            assert container.force_sync().result(timeout=10) is None

    assert "Error forcing sync" in caplog.text


def test_missing_cloud_folder_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        open_container(in_memory=True, options=StoreOptions(cloud_root=tmp_path / "missing"))


def test_close_is_idempotent() -> None:
    container = open_container(in_memory=True)
    container.close()
    container.close()


def test_force_sync_logs_unexpected_errors(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    with open_container(in_memory=True) as container:

        def _boom() -> None:
            raise ValueError("unexpected")

        monkeypatch.setattr(container, "sync_now", _boom)

        with caplog.at_level(logging.ERROR):
            future = container.force_sync()
            assert future.result(timeout=10) is None
            assert future.exception() is None

    assert "Error forcing sync" in caplog.text
    assert "unexpected" in caplog.text


def test_force_sync_survives_undecodable_feed(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    cloud = tmp_path / "cloud"
    cloud.mkdir()
    (cloud / "changes.jsonl").write_bytes(b"\xff\xfe garbage\n")

    with open_container(in_memory=True, options=StoreOptions(cloud_root=cloud)) as container:
        with caplog.at_level(logging.INFO):
            future = container.force_sync()
            assert future.result(timeout=10) is None
            assert future.exception() is None
        assert container.store.get_meta("sync.remote_token") == "1"

    assert "Skipping malformed change feed line 1" in caplog.text
    assert "Forced sync at generation" in caplog.text


def test_query_generation_marks_store_progress() -> None:
    with open_container(in_memory=True) as container:
        bg = container.new_background_context()
        assert bg.query_generation is None
        assert bg.store_has_advanced is False

        pinned = bg.set_query_generation_current()
        assert pinned == container.store.generation()
        assert bg.store_has_advanced is False

        container.view_context.insert_new_dream(title="Later")
        container.save_context()

        assert bg.store_has_advanced is True
        assert bg.query_generation == pinned
