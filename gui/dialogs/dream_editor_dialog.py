"""
Dream editor dialog.

Purpose
-------
- Edit one Dream's title, description, and image.
- Acquire images by clicking to browse or by dropping an image file.
- Save or cancel through the engine EditorSession.

Notes
-----
- Fields are written to the Dream as the user types; the session decides
  whether they are committed or reverted.
- Save failures are logged by the engine and not shown to the user.
"""

from __future__ import annotations

from pathlib import Path

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QDragEnterEvent, QDropEvent, QMouseEvent, QPixmap
from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QLabel,
    QLineEdit,
    QPlainTextEdit,
    QVBoxLayout,
    QWidget,
)

from board_engine.editor import EditorSession
from board_engine.errors import InvalidImageError

IMAGE_FILE_FILTER = "Images (*.png *.jpg *.jpeg *.gif *.bmp *.tif *.tiff *.webp *.heic *.avif)"
PREVIEW_HEIGHT = 150


class ImageDropArea(QLabel):
    """Image preview that accepts dropped files and opens a file picker on click."""

    file_chosen = Signal(object)  # Path

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setAcceptDrops(True)
        self.setAlignment(Qt.AlignCenter)
        self.setMinimumHeight(PREVIEW_HEIGHT)
        self.setCursor(Qt.PointingHandCursor)
        self._set_idle_style(False)

    def show_image(self, data: bytes | None) -> None:
        pixmap = QPixmap()
        if data and pixmap.loadFromData(data):
            self.setPixmap(pixmap.scaledToHeight(PREVIEW_HEIGHT, Qt.SmoothTransformation))
            return
        self.setPixmap(QPixmap())
        self.setText("Drop image or Click to Browse")

    def show_error(self, message: str) -> None:
        self.setPixmap(QPixmap())
        self.setText(message)

    def _set_idle_style(self, targeted: bool) -> None:
        border = "#4a90d9" if targeted else "#777"
        self.setStyleSheet(
            f"background: rgba(128,128,128,0.2); border: 1px dashed {border}; border-radius: 8px;"
        )

    def mousePressEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if event.button() != Qt.LeftButton:
            super().mousePressEvent(event)
            return
        path, _ = QFileDialog.getOpenFileName(self, "Choose image", str(Path.home()), IMAGE_FILE_FILTER)
        if path:
            self.file_chosen.emit(Path(path))

    def dragEnterEvent(self, event: QDragEnterEvent) -> None:  # type: ignore[override]
        if event.mimeData().hasUrls() and any(u.isLocalFile() for u in event.mimeData().urls()):
            self._set_idle_style(True)
            event.acceptProposedAction()
            return
        event.ignore()

    def dragLeaveEvent(self, event) -> None:  # type: ignore[override]
        self._set_idle_style(False)
        super().dragLeaveEvent(event)

    def dropEvent(self, event: QDropEvent) -> None:  # type: ignore[override]
        self._set_idle_style(False)
        for url in event.mimeData().urls():
            if url.isLocalFile():
                self.file_chosen.emit(Path(url.toLocalFile()))
                event.acceptProposedAction()
                return
        event.ignore()


class DreamEditorDialog(QDialog):
    """
    Modal editor bound to an EditorSession.

    Closing the dialog in any way other than Save cancels the session.
    """

    def __init__(self, session: EditorSession, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._session = session
        self.setWindowTitle("New Dream" if session.is_new else "Edit Dream")
        self.setModal(True)
        self.setMinimumSize(350, 400)

        root = QVBoxLayout(self)
        root.setContentsMargins(12, 12, 12, 12)
        root.setSpacing(10)

        details = QGroupBox("Details")
        form = QFormLayout(details)

        self.title_edit = QLineEdit(session.title)
        self.title_edit.setPlaceholderText("Title")
        self.title_edit.textChanged.connect(self._on_title_changed)
        form.addRow("Title", self.title_edit)

        self.description_edit = QPlainTextEdit(session.description)
        self.description_edit.setPlaceholderText("Description")
        self.description_edit.setMinimumHeight(50)
        self.description_edit.textChanged.connect(self._on_description_changed)
        form.addRow("Description", self.description_edit)

        root.addWidget(details)

        image_box = QGroupBox("Image")
        image_layout = QVBoxLayout(image_box)
        self.image_area = ImageDropArea()
        self.image_area.file_chosen.connect(self._on_image_file)
        self.image_area.show_image(session.image_data)
        image_layout.addWidget(self.image_area)
        root.addWidget(image_box, 1)

        self.buttons = QDialogButtonBox(QDialogButtonBox.Cancel)
        self.btn_save = self.buttons.addButton("Save", QDialogButtonBox.AcceptRole)
        self.btn_save.setDefault(True)
        self.buttons.rejected.connect(self.reject)
        self.btn_save.clicked.connect(self._on_save)
        root.addWidget(self.buttons)

    def _on_title_changed(self, text: str) -> None:
        self._session.title = text

    def _on_description_changed(self) -> None:
        self._session.description = self.description_edit.toPlainText()

    def _on_image_file(self, path: Path) -> None:
        try:
            self._session.load_image_file(path)
        except InvalidImageError as exc:
            self.image_area.show_error(str(exc))
            return
        self.image_area.show_image(self._session.image_data)

    def _on_save(self) -> None:
        self._session.save()
        self.accept()

    def reject(self) -> None:  # type: ignore[override]
        if not self._session.is_closed:
            self._session.cancel()
        super().reject()
