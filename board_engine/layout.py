"""
Grid layout arithmetic for the board.

One layout engine serves every device class. It is parameterised by a
`DisplayProfile` rather than by platform:

- pointer profiles (desktop) use adaptive columns with a minimum card width
  scaled by the zoom factor, and golden-ratio portrait cards;
- touch profiles use one column on compact widths and two otherwise, with
  3:4 cards.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Final

GOLDEN_RATIO: Final[float] = (1 + math.sqrt(5)) / 2

MIN_SCALE: Final[float] = 0.5
MAX_SCALE: Final[float] = 2.0
SCALE_STEP: Final[float] = 0.1

MIN_CARD_WIDTH: Final[int] = 200
GRID_SPACING: Final[int] = 16
GRID_PADDING: Final[int] = 16
TOUCH_TWO_COLUMN_WIDTH: Final[int] = 600
TOUCH_ASPECT_RATIO: Final[float] = 3 / 4


class ScreenClass(str, Enum):
    COMPACT = "compact"
    REGULAR = "regular"


@dataclass(frozen=True, slots=True)
class DisplayProfile:
    """
    Capabilities of the display the board is shown on.

    Attributes
    ----------
    screen_class:
        Compact (phone-sized) or regular.
    pointer:
        True for mouse/trackpad input, False for touch.
    """

    screen_class: ScreenClass
    pointer: bool


DESKTOP: Final[DisplayProfile] = DisplayProfile(ScreenClass.REGULAR, pointer=True)
TABLET: Final[DisplayProfile] = DisplayProfile(ScreenClass.REGULAR, pointer=False)
PHONE: Final[DisplayProfile] = DisplayProfile(ScreenClass.COMPACT, pointer=False)


@dataclass(frozen=True, slots=True)
class GridMetrics:
    """Computed grid geometry for one container width."""

    columns: int
    card_width: float
    card_height: float
    spacing: int
    padding: int

    def cell_origin(self, index: int) -> tuple[float, float]:
        """Return the top-left corner of card `index`, relative to the container."""
        row, col = divmod(index, self.columns)
        x = self.padding + col * (self.card_width + self.spacing)
        y = self.padding + row * (self.card_height + self.spacing)
        return x, y

    def content_height(self, count: int) -> float:
        """Return the total height needed for `count` cards."""
        if count <= 0:
            return 2 * self.padding
        rows = math.ceil(count / self.columns)
        return 2 * self.padding + rows * self.card_height + (rows - 1) * self.spacing


def normalize_scale(value: float) -> float:
    """
    Clamp a zoom factor to [0.5, 2.0] and snap it to the 0.1 step.

    Non-finite values fall back to 1.0.
    """
    if not math.isfinite(value):
        return 1.0
    clamped = min(MAX_SCALE, max(MIN_SCALE, value))
    return round(round(clamped / SCALE_STEP) * SCALE_STEP, 1)


def compute_grid(width: float, profile: DisplayProfile, scale: float = 1.0) -> GridMetrics:
    """
    Compute grid geometry for a container of `width` pixels.

    Parameters
    ----------
    width:
        Container width in pixels. Negative widths are treated as zero.
    profile:
        Display capabilities.
    scale:
        Zoom factor; normalised with `normalize_scale`. Touch profiles ignore it.

    Returns
    -------
    GridMetrics
        Column count and card geometry. There is always at least one column.
    """
    usable = max(0.0, float(width) - 2 * GRID_PADDING)

    if profile.pointer:
        min_width = MIN_CARD_WIDTH * normalize_scale(scale)
        columns = max(1, int((usable + GRID_SPACING) // (min_width + GRID_SPACING)))
        card_width = _card_width(usable, columns, floor=min_width)
        return GridMetrics(
            columns=columns,
            card_width=card_width,
            card_height=card_width * GOLDEN_RATIO,
            spacing=GRID_SPACING,
            padding=GRID_PADDING,
        )

    columns = 1 if width < TOUCH_TWO_COLUMN_WIDTH or profile.screen_class is ScreenClass.COMPACT else 2
    card_width = _card_width(usable, columns, floor=0.0)
    return GridMetrics(
        columns=columns,
        card_width=card_width,
        card_height=card_width / TOUCH_ASPECT_RATIO,
        spacing=GRID_SPACING,
        padding=GRID_PADDING,
    )


def _card_width(usable: float, columns: int, *, floor: float) -> float:
    width = (usable - (columns - 1) * GRID_SPACING) / columns
    return max(floor, width)


class CardFace(str, Enum):
    FRONT = "front"
    BACK = "back"


@dataclass(slots=True)
class CardState:
    """Flip state of one card. The front shows image and title, the back the description."""

    face: CardFace = CardFace.FRONT

    @property
    def is_flipped(self) -> bool:
        return self.face is CardFace.BACK

    def toggle(self) -> CardFace:
        self.face = CardFace.BACK if self.face is CardFace.FRONT else CardFace.FRONT
        return self.face
