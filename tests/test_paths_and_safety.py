from __future__ import annotations

import sys
from pathlib import Path

import pytest

from board_engine.errors import SafetyViolationError
from board_engine.paths_and_safety import (
    default_data_root,
    ensure_board_directories,
    resolve_board_paths,
    validate_cloud_root,
)


def test_default_data_root_prefers_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VISIONBOARD_DATA_ROOT", str(tmp_path / "override"))

    assert default_data_root() == tmp_path / "override"


def test_default_data_root_prefers_local_appdata_on_windows(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("VISIONBOARD_DATA_ROOT", raising=False)
    monkeypatch.setattr(sys, "platform", "win32")
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "Local"))
    monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))

    assert default_data_root() == tmp_path / "Local" / "visionboard"


def test_default_data_root_falls_back_to_roaming_on_windows(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("VISIONBOARD_DATA_ROOT", raising=False)
    monkeypatch.setattr(sys, "platform", "win32")
    monkeypatch.delenv("LOCALAPPDATA", raising=False)
    monkeypatch.setenv("APPDATA", str(tmp_path / "Roaming"))

    assert default_data_root() == tmp_path / "Roaming" / "visionboard"


def test_default_data_root_uses_xdg_on_linux(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("VISIONBOARD_DATA_ROOT", raising=False)
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))

    assert default_data_root() == tmp_path / "xdg" / "visionboard"


def test_board_paths_resolve_within_data_root(tmp_path: Path) -> None:
    paths = resolve_board_paths("default", data_root=tmp_path)
    ensure_board_directories(paths)

    assert paths.board_root == (tmp_path / "boards" / "default").resolve()
    assert paths.store_path.parent == paths.store_root
    assert paths.store_root.is_dir()
    assert paths.logs_root.is_dir()


@pytest.mark.parametrize("name", ["", "   ", ".", "..", "a/b", r"a\b", "c:", "what?"])
def test_board_name_rejects_unsafe_values(name: str, tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        resolve_board_paths(name, data_root=tmp_path)


def test_validate_cloud_root_requires_existing_directory(tmp_path: Path) -> None:
    with pytest.raises(SafetyViolationError):
        validate_cloud_root(tmp_path / "missing")

    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")
    with pytest.raises(SafetyViolationError):
        validate_cloud_root(file_path)

    assert validate_cloud_root(tmp_path) == tmp_path.resolve()
