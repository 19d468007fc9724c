"""
Vision Board GUI app.

Single window: header, toolbar (add, sync, zoom, settings), and the card grid.
The composition root opens the store and injects it; nothing here is a global.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QMessageBox,
    QPushButton,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from board_engine.data_models import Dream
from board_engine.errors import SafetyViolationError, VisionBoardError
from board_engine.layout import MAX_SCALE, MIN_SCALE, SCALE_STEP, normalize_scale
from board_engine.logging_setup import configure_logging
from board_engine.paths_and_safety import ensure_board_directories, resolve_board_paths, validate_cloud_root
from board_engine.store.container import StoreOptions, open_container
from gui.adapters.store_adapter import BoardAdapter, QtDispatcher
from gui.dialogs.dream_editor_dialog import DreamEditorDialog
from gui.dialogs.settings_dialog import SettingsDialog
from gui.settings_store import GuiSettings, load_gui_settings, save_gui_settings
from gui.widgets.board_grid import BoardGrid

logger = logging.getLogger(__name__)


def _slider_value(scale: float) -> int:
    return int(round(normalize_scale(scale) / SCALE_STEP))


class AppWindow(QWidget):
    """
    Main window for the Vision Board GUI.

    Responsibilities
    ----------------
    - Host the card grid and its toolbar
    - Open the editor for create/edit; delete immediately from the card menu
    - Persist the zoom level and shut the store down cleanly on close
    """

    def __init__(self, adapter: BoardAdapter, settings: GuiSettings, *, data_root: Path | None) -> None:
        super().__init__()
        self._adapter = adapter
        self._settings = settings
        self._data_root = data_root
        self.setWindowTitle("Vision Board")
        self.setMinimumSize(600, 400)
        self.resize(1000, 720)

        root = QVBoxLayout(self)
        root.setContentsMargins(8, 8, 8, 8)

        header = QWidget()
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(8, 8, 8, 8)

        title = QLabel("Vision Board")
        f = title.font()
        f.setPointSize(22)
        f.setBold(True)
        title.setFont(f)
        header_layout.addWidget(title)
        header_layout.addStretch(1)

        header_layout.addWidget(QLabel("Zoom"))
        self.zoom_slider = QSlider(Qt.Horizontal)
        self.zoom_slider.setRange(_slider_value(MIN_SCALE), _slider_value(MAX_SCALE))
        self.zoom_slider.setSingleStep(1)
        self.zoom_slider.setPageStep(1)
        self.zoom_slider.setFixedWidth(160)
        self.zoom_slider.setValue(_slider_value(settings.card_scale))
        self.zoom_slider.valueChanged.connect(self._on_zoom_changed)
        header_layout.addWidget(self.zoom_slider)

        self.btn_sync = QPushButton("Sync")
        self.btn_sync.setToolTip("Force a sync with the cloud folder")
        self.btn_sync.setEnabled(adapter.sync_enabled)
        self.btn_sync.clicked.connect(adapter.force_sync)
        header_layout.addWidget(self.btn_sync)

        btn_settings = QPushButton("Settings…")
        btn_settings.clicked.connect(self._open_settings)
        header_layout.addWidget(btn_settings)

        self.btn_add = QPushButton("+ Add Dream")
        self.btn_add.clicked.connect(self._create_dream)
        header_layout.addWidget(self.btn_add)

        root.addWidget(header)

        self.grid = BoardGrid(scale=settings.card_scale)
        self.grid.edit_requested.connect(self._edit_dream)
        self.grid.delete_requested.connect(self._delete_dream)
        root.addWidget(self.grid, 1)

        adapter.dreams_changed.connect(self.grid.set_dreams)
        self.grid.set_dreams(adapter.dreams)

    # ---------------- Actions ----------------

    def _create_dream(self) -> None:
        DreamEditorDialog(self._adapter.create_dream(), self).exec()
        self._adapter.refresh()

    def _edit_dream(self, dream: Dream) -> None:
        DreamEditorDialog(self._adapter.edit_dream(dream), self).exec()
        self._adapter.refresh()

    def _delete_dream(self, dream: Dream) -> None:
        self._adapter.delete_dream(dream)

    def _on_zoom_changed(self, value: int) -> None:
        scale = normalize_scale(value * SCALE_STEP)
        self.grid.set_scale(scale)
        self._settings = GuiSettings(
            board_name=self._settings.board_name,
            cloud_root=self._settings.cloud_root,
            card_scale=scale,
            sync_interval_seconds=self._settings.sync_interval_seconds,
        )

    def _open_settings(self) -> None:
        dialog = SettingsDialog(self._settings, data_root=self._data_root, parent=self)
        if dialog.exec():
            self._settings = dialog.settings

    def closeEvent(self, event) -> None:  # type: ignore[override]
        """
        Handle window close by persisting the zoom level and closing the store.

        Parameters
        ----------
        event:
            Qt close event.
        """
        try:
            try:
                save_gui_settings(data_root=self._data_root, settings=self._settings)
            except OSError as exc:
                logger.warning("Failed to save settings on exit: %s", exc)
            self._adapter.shutdown()
        finally:
            super().closeEvent(event)


def main() -> int:
    """
    Run the Vision Board GUI application.

    Returns
    -------
    int
        Qt application exit code, or 1 if the store cannot be opened.
    """
    app = QApplication(sys.argv)

    data_root: Path | None = None
    settings = load_gui_settings(data_root=data_root)
    try:
        paths = resolve_board_paths(settings.board_name, data_root)
        ensure_board_directories(paths)
    except (VisionBoardError, OSError) as exc:
        configure_logging(None)
        logger.critical("Unable to prepare board directories: %s", exc)
        QMessageBox.critical(None, "Vision Board", f"Unable to prepare board directories:\n{exc}")
        return 1
    configure_logging(paths.logs_root)

    dispatcher = QtDispatcher()
    cloud_root = settings.cloud_root
    if cloud_root is not None:
        try:
            cloud_root = validate_cloud_root(cloud_root)
        except SafetyViolationError as exc:
            logger.warning("Sync disabled: %s", exc)
            QMessageBox.warning(None, "Vision Board", f"Sync is disabled for this session:\n{exc}")
            cloud_root = None
    try:
        container = open_container(
            paths.store_path,
            options=StoreOptions(cloud_root=cloud_root),
            dispatch=dispatcher.dispatch,
        )
    except VisionBoardError as exc:
        logger.critical("Unresolved error loading persistent store: %s", exc)
        QMessageBox.critical(None, "Vision Board", f"Unable to open the board store:\n{exc}")
        return 1

    adapter = BoardAdapter(container, sync_interval_seconds=settings.sync_interval_seconds)
    w = AppWindow(adapter, settings, data_root=data_root)
    w.show()
    if container.sync_enabled:
        adapter.force_sync()
    return app.exec()


if __name__ == "__main__":
    raise SystemExit(main())
