from __future__ import annotations

import logging

import pytest

from board_engine.data_models import ChangeKind, ChangeOrigin, RecordChange
from board_engine.store.container import PersistentContainer, StoreOptions, open_container
from board_engine.store.context import MergePolicy

FAR_FUTURE = "2999-01-01T00:00:00.000000+00:00"


@pytest.fixture
def container() -> PersistentContainer:
    c = open_container(in_memory=True)
    yield c
    c.close()


def _remote_update(container: PersistentContainer, dream_id: str, **values: object) -> None:
    container.store.commit(
        [RecordChange(dream_id, ChangeKind.UPSERT, values=values, stamps={k: FAR_FUTURE for k in values})],
        origin=ChangeOrigin.REMOTE,
    )


def test_local_title_edit_trumps_remote_update(container: PersistentContainer) -> None:
    ctx = container.view_context
    dream = ctx.insert_new_dream(title="Original")
    ctx.save()

    dream.title = "Local"
    _remote_update(container, dream.dream_id, title="Remote")

    assert dream.title == "Local"
    assert ctx.save() is True
    row = container.store.fetch_row(dream.dream_id)
    assert row is not None
    assert row.title == "Local"


def test_untouched_fields_take_remote_values(container: PersistentContainer) -> None:
    ctx = container.view_context
    dream = ctx.insert_new_dream(title="T", description="D")
    ctx.save()

    dream.title = "Local title"
    _remote_update(container, dream.dream_id, description="Remote description")

    assert dream.title == "Local title"
    assert dream.description == "Remote description"
    assert ctx.changed_fields(dream) == {"title": "Local title"}

    ctx.save()
    row = container.store.fetch_row(dream.dream_id)
    assert row is not None
    assert (row.title, row.description) == ("Local title", "Remote description")


def test_background_save_merges_into_view_context(container: PersistentContainer) -> None:
    view = container.view_context
    dream = view.insert_new_dream(title="Before")
    view.save()

    bg = container.new_background_context()
    bg_dream = bg.dream(dream.dream_id)
    bg_dream.title = "After"

    assert dream.title == "Before"
    bg.save()
    assert dream.title == "After"
    assert view.has_changes is False


def test_remote_delete_wins_over_local_edits(
    container: PersistentContainer, caplog: pytest.LogCaptureFixture
) -> None:
    ctx = container.view_context
    dream = ctx.insert_new_dream(title="Doomed")
    ctx.save()
    dream.title = "Edited"

    with caplog.at_level(logging.WARNING):
        container.store.commit([RecordChange(dream.dream_id, ChangeKind.DELETE)], origin=ChangeOrigin.REMOTE)

    assert "deleted elsewhere" in caplog.text
    assert ctx.fetch_dreams() == []
    assert ctx.has_changes is False


def test_store_trump_policy_discards_local_edits() -> None:
    with open_container(in_memory=True, options=StoreOptions(merge_policy=MergePolicy.STORE_TRUMP)) as container:
        ctx = container.view_context
        dream = ctx.insert_new_dream(title="Original")
        ctx.save()

        dream.title = "Local"
        _remote_update(container, dream.dream_id, title="Remote")

        assert dream.title == "Remote"
        assert ctx.has_changes is False


def test_automatic_merge_can_be_disabled() -> None:
    options = StoreOptions(automatically_merges_changes=False)
    with open_container(in_memory=True, options=options) as container:
        ctx = container.view_context
        dream = ctx.insert_new_dream(title="Original")
        ctx.save()

        _remote_update(container, dream.dream_id, title="Remote")
        assert dream.title == "Original"

        ctx.refresh(dream, merge_changes=True)
        assert dream.title == "Remote"
