"""
Dream card widget.

The front shows the image with the title over a dark gradient; clicking flips
the card to show the description. Right-click opens Edit/Delete.
"""

from __future__ import annotations

from PySide6.QtCore import QPointF, QRectF, Qt, Signal
from PySide6.QtGui import QAction, QColor, QContextMenuEvent, QLinearGradient, QMouseEvent, QPainter, QPainterPath, QPixmap
from PySide6.QtWidgets import QMenu, QWidget

from board_engine.data_models import Dream
from board_engine.layout import CardState

CORNER_RADIUS = 12.0


def _pixmap_from_dream(dream: Dream) -> QPixmap | None:
    if not dream.image_data:
        return None
    pixmap = QPixmap()
    if not pixmap.loadFromData(dream.image_data):
        return None
    return pixmap


class DreamCardWidget(QWidget):
    """A flippable card for one Dream."""

    edit_requested = Signal(object)  # Dream
    delete_requested = Signal(object)  # Dream

    def __init__(self, dream: Dream, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._dream = dream
        self._state = CardState()
        self._pixmap = _pixmap_from_dream(dream)
        self.setCursor(Qt.PointingHandCursor)
        self.setToolTip(dream.display_title)

    @property
    def dream(self) -> Dream:
        return self._dream

    @property
    def is_flipped(self) -> bool:
        return self._state.is_flipped

    def set_dream(self, dream: Dream) -> None:
        self._dream = dream
        self._pixmap = _pixmap_from_dream(dream)
        self.setToolTip(dream.display_title)
        self.update()

    # ---------------- Events ----------------

    def mousePressEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        if event.button() == Qt.LeftButton:
            self._state.toggle()
            self.update()
            event.accept()
            return
        super().mousePressEvent(event)

    def contextMenuEvent(self, event: QContextMenuEvent) -> None:  # type: ignore[override]
        menu = QMenu(self)
        act_edit = QAction("Edit", menu)
        act_delete = QAction("Delete", menu)
        act_edit.triggered.connect(lambda: self.edit_requested.emit(self._dream))
        act_delete.triggered.connect(lambda: self.delete_requested.emit(self._dream))
        menu.addAction(act_edit)
        menu.addAction(act_delete)
        menu.exec(event.globalPos())

    def paintEvent(self, event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.Antialiasing)
        rect = QRectF(self.rect()).adjusted(2, 2, -4, -4)

        # Shadow
        shadow = QPainterPath()
        shadow.addRoundedRect(rect.translated(2, 2), CORNER_RADIUS, CORNER_RADIUS)
        painter.fillPath(shadow, QColor(128, 128, 128, 100))

        clip = QPainterPath()
        clip.addRoundedRect(rect, CORNER_RADIUS, CORNER_RADIUS)
        painter.setClipPath(clip)

        if self._state.is_flipped:
            self._paint_back(painter, rect)
        else:
            self._paint_front(painter, rect)
        painter.end()

    # ---------------- Faces ----------------

    def _paint_front(self, painter: QPainter, rect: QRectF) -> None:
        if self._pixmap is not None:
            scaled = self._pixmap.scaled(
                rect.size().toSize(), Qt.KeepAspectRatioByExpanding, Qt.SmoothTransformation
            )
            x = rect.x() + (rect.width() - scaled.width()) / 2
            y = rect.y() + (rect.height() - scaled.height()) / 2
            painter.drawPixmap(int(x), int(y), scaled)
        else:
            painter.fillRect(rect, QColor("#3a3a3a"))
            painter.setPen(QColor("#999"))
            painter.drawText(rect, Qt.AlignCenter, "No image")

        gradient = QLinearGradient(rect.center(), QPointF(rect.center().x(), rect.bottom()))
        gradient.setColorAt(0.0, QColor(0, 0, 0, 0))
        gradient.setColorAt(1.0, QColor(0, 0, 0, 128))
        painter.fillRect(rect, gradient)

        font = painter.font()
        font.setBold(True)
        font.setPointSize(12)
        painter.setFont(font)
        painter.setPen(Qt.white)
        painter.drawText(
            rect.adjusted(14, 14, -14, -14),
            Qt.AlignLeft | Qt.AlignBottom | Qt.TextWordWrap,
            self._dream.display_title,
        )

    def _paint_back(self, painter: QPainter, rect: QRectF) -> None:
        painter.fillRect(rect, self.palette().window())
        painter.setPen(self.palette().windowText().color())
        painter.drawText(
            rect.adjusted(14, 14, -14, -14),
            Qt.AlignCenter | Qt.TextWordWrap,
            self._dream.display_description,
        )
