from __future__ import annotations

import logging
from pathlib import Path

from PySide6.QtWidgets import (
    QDialog,
    QDialogButtonBox,
    QFileDialog,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QSpinBox,
    QVBoxLayout,
    QWidget,
)

from gui.settings_store import GuiSettings, save_gui_settings

logger = logging.getLogger(__name__)


class SettingsDialog(QDialog):
    """
    Settings dialog for the Vision Board GUI.

    Responsibilities
    ----------------
    - Configure the board name, cloud folder, and periodic sync interval.
    - Persist settings to disk in a small JSON file under the data root.
    """

    def __init__(self, settings: GuiSettings, *, data_root: Path | None, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Settings")
        self.setModal(True)
        self._settings = settings
        self._data_root = data_root

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)

        box = QGroupBox("Board")
        box_layout = QVBoxLayout(box)

        self.board_edit = QLineEdit(settings.board_name)
        row = QHBoxLayout()
        row.addWidget(QLabel("Board name:"))
        row.addWidget(self.board_edit, 1)
        box_layout.addLayout(row)

        self.cloud_root_edit = QLineEdit("" if settings.cloud_root is None else str(settings.cloud_root))
        self.cloud_root_edit.setPlaceholderText("Cloud-synced folder (blank = this device only)")
        btn_cloud = QPushButton("Browse…")
        btn_cloud.clicked.connect(self._browse_cloud_root)
        row2 = QHBoxLayout()
        row2.addWidget(QLabel("Cloud folder:"))
        row2.addWidget(self.cloud_root_edit, 1)
        row2.addWidget(btn_cloud)
        box_layout.addLayout(row2)

        self.interval_spin = QSpinBox()
        self.interval_spin.setRange(0, 24 * 3600)
        self.interval_spin.setSuffix(" s")
        self.interval_spin.setSpecialValueText("Off")
        self.interval_spin.setValue(settings.sync_interval_seconds)
        row3 = QHBoxLayout()
        row3.addWidget(QLabel("Sync every:"))
        row3.addWidget(self.interval_spin, 1)
        box_layout.addLayout(row3)

        hint = QLabel("Changes take effect the next time Vision Board starts.")
        hint.setStyleSheet("color: #666;")
        box_layout.addWidget(hint)

        layout.addWidget(box)

        buttons = QDialogButtonBox(QDialogButtonBox.Save | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self._save)
        buttons.rejected.connect(self.reject)
        layout.addWidget(buttons)

    @property
    def settings(self) -> GuiSettings:
        return self._settings

    def _browse_cloud_root(self) -> None:
        start_dir = self.cloud_root_edit.text().strip() or str(Path.home())
        directory = QFileDialog.getExistingDirectory(self, "Select cloud folder", start_dir)
        if directory:
            self.cloud_root_edit.setText(directory)

    def _save(self) -> None:
        board_name = self.board_edit.text().strip()
        if not board_name:
            QMessageBox.warning(self, "Settings", "Board name must not be empty.")
            return
        cloud_text = self.cloud_root_edit.text().strip()

        settings = GuiSettings(
            board_name=board_name,
            cloud_root=Path(cloud_text) if cloud_text else None,
            card_scale=self._settings.card_scale,
            sync_interval_seconds=self.interval_spin.value(),
        )
        try:
            save_gui_settings(data_root=self._data_root, settings=settings)
        except OSError as exc:
            logger.error("Failed to save settings: %s", exc)
            QMessageBox.critical(self, "Settings", f"Failed to save settings: {exc}")
            return

        self._settings = settings
        self.accept()
