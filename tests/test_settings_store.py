from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from gui.settings_store import GuiSettings, load_gui_settings, save_gui_settings


def test_missing_settings_file_yields_defaults(tmp_path: Path) -> None:
    assert load_gui_settings(data_root=tmp_path) == GuiSettings.defaults()


def test_settings_round_trip(tmp_path: Path) -> None:
    settings = GuiSettings(
        board_name="travel",
        cloud_root=tmp_path / "Dropbox" / "VisionBoard",
        card_scale=1.5,
        sync_interval_seconds=60,
    )

    save_gui_settings(data_root=tmp_path, settings=settings)

    assert load_gui_settings(data_root=tmp_path) == settings


def test_corrupt_settings_file_is_logged_and_ignored(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (tmp_path / "gui_settings.json").write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.WARNING):
        settings = load_gui_settings(data_root=tmp_path)

    assert settings == GuiSettings.defaults()
    assert "Ignoring unreadable settings file" in caplog.text


def test_invalid_fields_fall_back_individually(tmp_path: Path) -> None:
    payload = {
        "board_name": "   ",
        "cloud_root": "",
        "card_scale": 9.0,
        "sync_interval_seconds": -5,
    }
    (tmp_path / "gui_settings.json").write_text(json.dumps(payload), encoding="utf-8")

    settings = load_gui_settings(data_root=tmp_path)

    assert settings.board_name == "default"
    assert settings.cloud_root is None
    assert settings.card_scale == 2.0
    assert settings.sync_interval_seconds == 300


def test_boolean_values_are_not_treated_as_numbers(tmp_path: Path) -> None:
    payload = {"card_scale": True, "sync_interval_seconds": False}
    (tmp_path / "gui_settings.json").write_text(json.dumps(payload), encoding="utf-8")

    settings = load_gui_settings(data_root=tmp_path)

    assert settings.card_scale == 1.0
    assert settings.sync_interval_seconds == 300
