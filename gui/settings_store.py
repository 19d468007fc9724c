from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from board_engine.layout import normalize_scale
from board_engine.paths_and_safety import default_data_root

logger = logging.getLogger(__name__)

DEFAULT_BOARD_NAME = "default"
DEFAULT_SYNC_INTERVAL_SECONDS = 300


@dataclass(frozen=True, slots=True)
class GuiSettings:
    """
    Persisted GUI settings.

    Notes
    -----
    Settings only control defaults for the next launch. The board's store and
    cloud folder remain the source of truth for Dreams.
    """

    board_name: str
    cloud_root: Path | None
    card_scale: float
    sync_interval_seconds: int  # 0 disables periodic sync

    @staticmethod
    def defaults() -> "GuiSettings":
        return GuiSettings(
            board_name=DEFAULT_BOARD_NAME,
            cloud_root=None,
            card_scale=1.0,
            sync_interval_seconds=DEFAULT_SYNC_INTERVAL_SECONDS,
        )


def _settings_path(data_root: Path | None) -> Path:
    root = default_data_root() if data_root is None else data_root
    return root / "gui_settings.json"


def load_gui_settings(*, data_root: Path | None) -> GuiSettings:
    """
    Load GUI settings from disk.

    Parameters
    ----------
    data_root:
        Data root. If None, the default data root is used.

    Returns
    -------
    GuiSettings
        Loaded settings, or defaults if missing/unreadable. Individual invalid
        values fall back to their defaults.
    """
    path = _settings_path(data_root)
    defaults = GuiSettings.defaults()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return defaults
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return defaults
    if not isinstance(payload, dict):
        return defaults

    board_name = payload.get("board_name")
    if not isinstance(board_name, str) or not board_name.strip():
        board_name = defaults.board_name

    cloud_root_raw = payload.get("cloud_root")
    cloud_root = Path(cloud_root_raw) if isinstance(cloud_root_raw, str) and cloud_root_raw.strip() else None

    card_scale = payload.get("card_scale", defaults.card_scale)
    if isinstance(card_scale, bool) or not isinstance(card_scale, (int, float)):
        card_scale = defaults.card_scale

    interval = payload.get("sync_interval_seconds", defaults.sync_interval_seconds)
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 0:
        interval = defaults.sync_interval_seconds

    return GuiSettings(
        board_name=board_name.strip(),
        cloud_root=cloud_root,
        card_scale=normalize_scale(float(card_scale)),
        sync_interval_seconds=interval,
    )


def save_gui_settings(*, data_root: Path | None, settings: GuiSettings) -> None:
    """
    Save GUI settings to disk.

    Parameters
    ----------
    data_root:
        Data root. If None, the default data root is used.
    settings:
        Settings to persist.
    """
    path = _settings_path(data_root)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = {
        "board_name": settings.board_name,
        "cloud_root": str(settings.cloud_root) if settings.cloud_root is not None else None,
        "card_scale": normalize_scale(settings.card_scale),
        "sync_interval_seconds": settings.sync_interval_seconds,
    }
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
