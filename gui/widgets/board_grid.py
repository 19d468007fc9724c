"""
Scrollable card grid.

Card geometry comes from the engine layout; this widget only places card
widgets at the computed positions and rebuilds them when Dreams change.
"""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtGui import QResizeEvent
from PySide6.QtWidgets import QFrame, QScrollArea, QWidget

from board_engine.data_models import Dream
from board_engine.layout import DESKTOP, DisplayProfile, compute_grid, normalize_scale
from gui.widgets.card_widget import DreamCardWidget


class BoardGrid(QScrollArea):
    """Adaptive grid of DreamCardWidgets."""

    edit_requested = Signal(object)  # Dream
    delete_requested = Signal(object)  # Dream

    def __init__(self, *, profile: DisplayProfile = DESKTOP, scale: float = 1.0) -> None:
        super().__init__()
        self._profile = profile
        self._scale = normalize_scale(scale)
        self._cards: list[DreamCardWidget] = []

        self.setWidgetResizable(False)
        self.setFrameShape(QFrame.NoFrame)
        self._canvas = QWidget()
        self.setWidget(self._canvas)

    @property
    def scale(self) -> float:
        return self._scale

    def set_scale(self, scale: float) -> None:
        self._scale = normalize_scale(scale)
        self._relayout()

    def set_dreams(self, dreams: list[Dream]) -> None:
        """Replace the displayed cards, keeping the widgets of Dreams still present."""
        existing = {card.dream.dream_id: card for card in self._cards}
        cards: list[DreamCardWidget] = []
        for dream in dreams:
            card = existing.pop(dream.dream_id, None)
            if card is None:
                card = DreamCardWidget(dream, self._canvas)
                card.edit_requested.connect(self.edit_requested)
                card.delete_requested.connect(self.delete_requested)
            else:
                card.set_dream(dream)
            card.show()
            cards.append(card)
        for stale in existing.values():
            stale.deleteLater()
        self._cards = cards
        self._relayout()

    def resizeEvent(self, event: QResizeEvent) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._relayout()

    def _relayout(self) -> None:
        width = self.viewport().width()
        metrics = compute_grid(width, self._profile, self._scale)
        for index, card in enumerate(self._cards):
            x, y = metrics.cell_origin(index)
            card.setGeometry(int(x), int(y), int(metrics.card_width), int(metrics.card_height))
        content_width = max(
            width,
            int(2 * metrics.padding + metrics.columns * metrics.card_width + (metrics.columns - 1) * metrics.spacing),
        )
        self._canvas.resize(content_width, int(metrics.content_height(len(self._cards))))
