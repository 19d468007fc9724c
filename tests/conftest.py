from __future__ import annotations

import logging
from typing import Iterator

import pytest


@pytest.fixture(autouse=True)
def _reset_app_logging() -> Iterator[None]:
    """Remove handlers installed by entry points so they do not outlive capsys."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if getattr(handler, "_visionboard_handler", False):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
