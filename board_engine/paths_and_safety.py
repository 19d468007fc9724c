"""
Filesystem path policy for Vision Board data.

This module is the single choke point for deciding where a board keeps its
local store and logs:

- Runtime data lives under a data root (``VISIONBOARD_DATA_ROOT`` when set,
  otherwise the platform application-data directory).
- Each board is a simple folder name under ``<data_root>/boards``.
- The cloud folder is user-supplied and only validated, never created here.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

from .errors import SafetyViolationError

APP_DIR_NAME = "visionboard"
STORE_FILE_NAME = "visionboard.sqlite"


@dataclass(frozen=True, slots=True)
class BoardPaths:
    """
    Concrete resolved paths for a board.

    Attributes
    ----------
    data_root:
        The root directory for all Vision Board runtime data.
    board_root:
        Root for the named board within `data_root`.
    store_root:
        Directory holding the SQLite store.
    store_path:
        The SQLite database file.
    logs_root:
        Rotating application logs.
    """

    data_root: Path
    board_root: Path
    store_root: Path
    store_path: Path
    logs_root: Path


def default_data_root() -> Path:
    """
    Resolve the default data root.

    Preference order:
    1) %VISIONBOARD_DATA_ROOT% if set
    2) %LOCALAPPDATA% then %APPDATA% on Windows
    3) ~/Library/Application Support on macOS
    4) $XDG_DATA_HOME, falling back to ~/.local/share
    """
    override = os.environ.get("VISIONBOARD_DATA_ROOT")
    if override:
        return Path(override)

    if sys.platform == "win32":
        for var in ("LOCALAPPDATA", "APPDATA"):
            value = os.environ.get(var)
            if value:
                return Path(value) / APP_DIR_NAME
        raise SafetyViolationError("Neither LOCALAPPDATA nor APPDATA environment variables are set.")

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME

    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME


def resolve_board_paths(board_name: str, data_root: Path | None = None) -> BoardPaths:
    """
    Resolve and return all filesystem paths for a given board.

    Parameters
    ----------
    board_name:
        Name of the board. Must be a non-empty, simple folder name.
    data_root:
        Optional override for the data root.

    Returns
    -------
    BoardPaths
        Resolved board paths.

    Raises
    ------
    SafetyViolationError
        If board_name is unsafe.
    """
    board = board_name.strip()
    if not board:
        raise SafetyViolationError("Board name must not be empty.")
    if any(ch in board for ch in r'\/:*?"<>|'):
        raise SafetyViolationError(f"Board name contains invalid characters: {board!r}")
    if board in {".", ".."}:
        raise SafetyViolationError("Board name must not be '.' or '..'.")

    root = (data_root or default_data_root()).resolve()
    board_root = (root / "boards" / board).resolve()
    store_root = board_root / "store"

    _assert_within(root, board_root, purpose="board root")
    return BoardPaths(
        data_root=root,
        board_root=board_root,
        store_root=store_root,
        store_path=store_root / STORE_FILE_NAME,
        logs_root=board_root / "logs",
    )


def ensure_board_directories(paths: BoardPaths) -> None:
    """Create the directory structure for a board if it does not already exist."""
    for directory in (paths.board_root, paths.store_root, paths.logs_root):
        directory.mkdir(parents=True, exist_ok=True)


def validate_cloud_root(cloud_root: Path) -> Path:
    """
    Validate a user-supplied cloud folder and return its resolved form.

    The folder must already exist (it is normally created by a cloud drive
    client) and must not be a filesystem root.

    Raises
    ------
    SafetyViolationError
        If the folder does not exist, is not a directory, or is a root.
    """
    candidate = Path(cloud_root).expanduser()
    try:
        resolved = candidate.resolve(strict=True)
    except FileNotFoundError as exc:
        raise SafetyViolationError(f"Cloud folder does not exist: {candidate}") from exc

    if not resolved.is_dir():
        raise SafetyViolationError(f"Cloud folder is not a directory: {resolved}")
    if len(resolved.parts) <= 1:
        raise SafetyViolationError(f"Refusing to use filesystem root as cloud folder: {resolved}")
    return resolved


def _assert_within(base: Path, candidate: Path, purpose: str) -> None:
    """Ensure candidate is within base after resolution."""
    try:
        candidate.relative_to(base)
    except ValueError as exc:
        raise SafetyViolationError(
            f"Unsafe path for {purpose}: {candidate} is not within {base}"
        ) from exc
