"""Board initialization operations.

Creates the on-disk folder structure for a board inside the data root and
renders the resolved paths for display. No file deletion is performed here.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

from .paths_and_safety import BoardPaths, ensure_board_directories, resolve_board_paths


def init_board(board_name: str, data_root: Path | None = None) -> BoardPaths:
    """Initialize (create) the directory structure for a board.

    Parameters
    ----------
    board_name:
        Name of the board to initialize.
    data_root:
        Optional override for the data root.

    Returns
    -------
    BoardPaths
        The resolved board paths that were initialized.
    """
    paths = resolve_board_paths(board_name=board_name, data_root=data_root)
    ensure_board_directories(paths)
    return paths


def board_paths_as_text(paths: BoardPaths) -> str:
    """Render BoardPaths as a readable multi-line string."""
    items = asdict(paths)
    return "\n".join(
        f"{key}: {items[key]}"
        for key in ("data_root", "board_root", "store_root", "store_path", "logs_root")
    )
