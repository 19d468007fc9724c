"""
Editor session for a single Dream.

The session is the UI-independent part of the editor sheet: it is bound to one
Dream in a context, exposes the editable fields, acquires images from files or
raw bytes, and commits or discards the edits when the sheet is dismissed.

Notes
-----
- Image payloads are stored as given; no re-encoding is performed.
- Cancelling a brand-new Dream with an empty title discards it. Cancelling an
  edit of an existing Dream restores its stored values.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .data_models import Dream
from .errors import InvalidImageError
from .store.context import ObjectContext

logger = logging.getLogger(__name__)

# (format, offset, signature)
_SIGNATURES: tuple[tuple[str, int, bytes], ...] = (
    ("png", 0, b"\x89PNG\r\n\x1a\n"),
    ("jpeg", 0, b"\xff\xd8\xff"),
    ("gif", 0, b"GIF87a"),
    ("gif", 0, b"GIF89a"),
    ("bmp", 0, b"BM"),
    ("tiff", 0, b"II*\x00"),
    ("tiff", 0, b"MM\x00*"),
    ("heic", 4, b"ftypheic"),
    ("heic", 4, b"ftypheix"),
    ("heic", 4, b"ftypmif1"),
    ("avif", 4, b"ftypavif"),
)


def sniff_image_format(data: bytes) -> str | None:
    """
    Identify an image encoding from its leading bytes.

    Returns
    -------
    str | None
        A short format name ("png", "jpeg", ...), or None if unrecognised.
    """
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    for name, offset, signature in _SIGNATURES:
        if data[offset : offset + len(signature)] == signature:
            return name
    return None


class EditorSession:
    """
    Bind one Dream for editing.

    Parameters
    ----------
    context:
        Context that owns `dream`.
    dream:
        The Dream being edited. It is mutated in place.
    """

    def __init__(self, context: ObjectContext, dream: Dream) -> None:
        if not context.is_registered(dream):
            raise ValueError(f"Dream {dream.dream_id} is not registered in context {context.name}")
        self._context = context
        self.dream = dream
        self._closed = False

    @property
    def is_new(self) -> bool:
        """True while the Dream has never been saved."""
        return self._context.is_inserted(self.dream)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def title(self) -> str:
        return self.dream.title

    @title.setter
    def title(self, value: str) -> None:
        self.dream.title = value

    @property
    def description(self) -> str:
        return self.dream.description

    @description.setter
    def description(self, value: str) -> None:
        self.dream.description = value

    @property
    def image_data(self) -> bytes | None:
        return self.dream.image_data

    def set_image_bytes(self, data: bytes) -> str:
        """
        Replace the image with `data` (photo picker path).

        Returns
        -------
        str
            The detected image format.

        Raises
        ------
        InvalidImageError
            If `data` is not a recognised image encoding.
        """
        fmt = sniff_image_format(data)
        if fmt is None:
            raise InvalidImageError("Selected data is not a supported image.")
        self.dream.image_data = bytes(data)
        return fmt

    def load_image_file(self, path: Path) -> str:
        """
        Replace the image with the contents of `path` (file picker and drag-drop path).

        Raises
        ------
        InvalidImageError
            If the file cannot be read or is not a recognised image encoding.
        """
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise InvalidImageError(f"Unable to read image file {path}: {exc}") from exc
        fmt = sniff_image_format(data)
        if fmt is None:
            raise InvalidImageError(f"Not a supported image file: {path}")
        self.dream.image_data = data
        return fmt

    def clear_image(self) -> None:
        self.dream.image_data = None

    def save(self) -> bool:
        """
        Commit the edits.

        Returns
        -------
        bool
            True when saved. On failure the error is logged, the edits stay in
            memory, and the session remains open.
        """
        ok = self._context.save()
        if ok:
            self._closed = True
        return ok

    def cancel(self) -> None:
        """
        Abandon the edits.

        A never-saved Dream with an empty title is discarded. A never-saved
        Dream with a title stays pending in the context. An existing Dream is
        restored to its stored values.
        """
        if self.is_new:
            if not self.dream.title.strip():
                self._context.delete(self.dream)
                logger.debug("Discarded empty new dream %s", self.dream.dream_id)
        elif self._context.is_registered(self.dream):
            self._context.refresh(self.dream, merge_changes=False)
        self._closed = True
