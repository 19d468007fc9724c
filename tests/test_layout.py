from __future__ import annotations

import math

import pytest

from board_engine.layout import (
    DESKTOP,
    GOLDEN_RATIO,
    PHONE,
    TABLET,
    CardFace,
    CardState,
    compute_grid,
    normalize_scale,
)


def test_desktop_grid_fits_as_many_minimum_width_columns_as_possible() -> None:
    grid = compute_grid(1000, DESKTOP)

    assert grid.columns == 4
    assert grid.card_width == pytest.approx(230.0)
    assert grid.card_height == pytest.approx(230.0 * GOLDEN_RATIO)


@pytest.mark.parametrize(
    ("scale", "columns", "card_width"),
    [
        (0.5, 8, 107.0),
        (1.0, 4, 230.0),
        (2.0, 2, 476.0),
    ],
)
def test_zoom_scales_minimum_card_width(scale: float, columns: int, card_width: float) -> None:
    grid = compute_grid(1000, DESKTOP, scale)

    assert grid.columns == columns
    assert grid.card_width == pytest.approx(card_width)


def test_narrow_desktop_window_keeps_one_minimum_width_column() -> None:
    grid = compute_grid(100, DESKTOP)

    assert grid.columns == 1
    assert grid.card_width == 200


def test_negative_width_is_treated_as_empty() -> None:
    assert compute_grid(-50, DESKTOP).columns == 1


def test_touch_grid_uses_two_columns_on_regular_width() -> None:
    grid = compute_grid(800, TABLET)

    assert grid.columns == 2
    assert grid.card_width == pytest.approx(376.0)
    assert grid.card_height == pytest.approx(376.0 * 4 / 3)


def test_touch_grid_collapses_to_one_column_when_narrow() -> None:
    grid = compute_grid(500, TABLET)

    assert grid.columns == 1
    assert grid.card_width == pytest.approx(468.0)
    assert grid.card_height == pytest.approx(624.0)


def test_compact_screens_always_use_one_column() -> None:
    assert compute_grid(800, PHONE).columns == 1


def test_touch_grid_ignores_zoom() -> None:
    assert compute_grid(800, TABLET, 2.0) == compute_grid(800, TABLET, 1.0)


def test_cell_origin_and_content_height() -> None:
    grid = compute_grid(1000, DESKTOP)

    assert grid.cell_origin(0) == (16, 16)
    x, y = grid.cell_origin(5)
    assert x == pytest.approx(16 + 230 + 16)
    assert y == pytest.approx(16 + grid.card_height + 16)
    assert grid.content_height(0) == 32
    assert grid.content_height(5) == pytest.approx(32 + 2 * grid.card_height + 16)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (1.0, 1.0),
        (3.0, 2.0),
        (0.1, 0.5),
        (1.26, 1.3),
        (1.04, 1.0),
        (math.nan, 1.0),
        (math.inf, 1.0),
    ],
)
def test_normalize_scale(value: float, expected: float) -> None:
    assert normalize_scale(value) == expected


def test_card_state_toggles_between_faces() -> None:
    state = CardState()
    assert state.face is CardFace.FRONT
    assert not state.is_flipped

    assert state.toggle() is CardFace.BACK
    assert state.is_flipped
    assert state.toggle() is CardFace.FRONT
