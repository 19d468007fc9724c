from __future__ import annotations

from pathlib import Path

import pytest

from board_engine.data_models import Dream
from board_engine.editor import EditorSession, sniff_image_format
from board_engine.errors import InvalidImageError
from board_engine.store.container import PersistentContainer, open_container

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


@pytest.fixture
def container() -> PersistentContainer:
    c = open_container(in_memory=True)
    yield c
    c.close()


@pytest.mark.parametrize(
    ("data", "expected"),
    [
        (PNG_BYTES, "png"),
        (b"\xff\xd8\xff\xe0rest", "jpeg"),
        (b"GIF89a....", "gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "webp"),
        (b"\x00\x00\x00\x18ftypheic", "heic"),
        (b"plain text", None),
        (b"", None),
    ],
)
def test_sniff_image_format(data: bytes, expected: str | None) -> None:
    assert sniff_image_format(data) == expected


def test_cancelling_empty_new_dream_discards_it(container: PersistentContainer) -> None:
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream())
    assert session.is_new

    session.cancel()

    assert session.is_closed
    assert ctx.has_changes is False
    assert ctx.save() is True
    assert container.durable_count() == 0


def test_cancelling_titled_new_dream_keeps_it_pending(container: PersistentContainer) -> None:
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream())
    session.title = "Keep me"

    session.cancel()

    assert ctx.is_inserted(session.dream)
    assert [d.title for d in ctx.fetch_dreams()] == ["Keep me"]


def test_cancelling_edit_of_existing_dream_restores_values(container: PersistentContainer) -> None:
    ctx = container.view_context
    dream = ctx.insert_new_dream(title="Stored", description="Stored description")
    ctx.save()

    session = EditorSession(ctx, dream)
    session.title = "Changed"
    session.description = "Changed description"
    session.cancel()

    assert (dream.title, dream.description) == ("Stored", "Stored description")
    assert ctx.has_changes is False


def test_save_commits_new_dream_and_closes_session(container: PersistentContainer) -> None:
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream())
    session.title = "Goal A"
    session.description = "Run a marathon"

    assert session.save() is True

    assert session.is_closed
    assert not session.is_new
    row = container.store.fetch_row(session.dream.dream_id)
    assert row is not None
    assert (row.title, row.description) == ("Goal A", "Run a marathon")


def test_load_image_file_stores_bytes_unchanged(container: PersistentContainer, tmp_path: Path) -> None:
    image_path = tmp_path / "photo.png"
    image_path.write_bytes(PNG_BYTES)
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream(title="Picture"))

    assert session.load_image_file(image_path) == "png"
    session.save()

    row = container.store.fetch_row(session.dream.dream_id)
    assert row is not None
    assert row.image_data == PNG_BYTES


def test_unreadable_or_unsupported_images_are_rejected(container: PersistentContainer, tmp_path: Path) -> None:
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream())
    text_file = tmp_path / "notes.txt"
    text_file.write_text("hello", encoding="utf-8")

    with pytest.raises(InvalidImageError):
        session.load_image_file(tmp_path / "missing.png")
    with pytest.raises(InvalidImageError):
        session.load_image_file(text_file)
    with pytest.raises(InvalidImageError):
        session.set_image_bytes(b"not an image")

    assert session.image_data is None


def test_set_and_clear_image_bytes(container: PersistentContainer) -> None:
    ctx = container.view_context
    session = EditorSession(ctx, ctx.insert_new_dream())

    assert session.set_image_bytes(bytearray(PNG_BYTES)) == "png"
    assert session.image_data == PNG_BYTES
    session.clear_image()
    assert session.image_data is None


def test_session_requires_a_registered_dream(container: PersistentContainer) -> None:
    with pytest.raises(ValueError):
        EditorSession(container.view_context, Dream(title="Stray"))
