"""Tests for tooltip placement against the viewport."""

from __future__ import annotations

import pytest

from lorelink.ui.domain.positioning import Viewport, clamp_to_viewport, compute_position

VIEWPORT = Viewport(1000, 800)


def test_places_below_right_of_pointer() -> None:
    assert compute_position(100, 100, 200, 150, VIEWPORT) == (110, 110)


def test_flips_left_when_overflowing_right_edge() -> None:
    left, top = compute_position(950, 100, 200, 150, VIEWPORT)

    assert left == 950 - 200 - 10
    assert top == 110


def test_flips_up_when_overflowing_bottom_edge() -> None:
    assert compute_position(100, 750, 200, 150, VIEWPORT)[1] == 750 - 150 - 10


def test_falls_back_to_viewport_edge_when_flip_overflows() -> None:
    left, _top = compute_position(150, 100, 900, 150, VIEWPORT)

    assert left == 1000 - 900 - 10


@pytest.mark.parametrize(("x", "y"), [(0, 0), (999, 799), (500, 400), (-50, 2000)])
def test_result_stays_inside_margins(x: int, y: int) -> None:
    left, top = compute_position(x, y, 300, 200, VIEWPORT)

    assert 10 <= left <= 1000 - 300 - 10
    assert 10 <= top <= 800 - 200 - 10


def test_oversized_popup_clamps_to_margin() -> None:
    assert compute_position(500, 400, 2000, 2000, VIEWPORT) == (10, 10)


def test_clamp_to_viewport() -> None:
    assert clamp_to_viewport(-20, 900, 200, 100, VIEWPORT) == (0, 700)
    assert clamp_to_viewport(50, 60, 200, 100, VIEWPORT) == (50, 60)
    assert clamp_to_viewport(50, 60, 2000, 100, VIEWPORT) == (0, 60)
