import dataclasses

import numpy as np
import pytest

from mandelview import DEFAULT_BOUNDS, SelectionRect, Viewport


def test_default_bounds():
    viewport = Viewport()
    assert viewport.bounds == DEFAULT_BOUNDS == (-2.5, 1.0, -1.0, 1.0)


@pytest.mark.parametrize(
    "bounds",
    [
        (1.0, 1.0, -1.0, 1.0),
        (1.0, -1.0, -1.0, 1.0),
        (-1.0, 1.0, 0.5, 0.5),
    ],
)
def test_invalid_bounds_are_rejected(bounds):
    with pytest.raises(ValueError):
        Viewport(*bounds)


def test_viewport_is_immutable():
    viewport = Viewport()
    with pytest.raises(dataclasses.FrozenInstanceError):
        viewport.x_start = 0.0


@pytest.mark.parametrize("bounds", [DEFAULT_BOUNDS, (-0.75, -0.74, 0.1, 0.11), (-3.0, 3.0, -2.0, 2.0)])
@pytest.mark.parametrize("size", [(320, 240), (1, 1), (17, 911)])
def test_to_plane_maps_corners(bounds, size):
    viewport = Viewport(*bounds)
    width, height = size

    assert viewport.to_plane(0, 0, width, height) == (viewport.x_start, viewport.y_start)
    x_end, y_end = viewport.to_plane(width, height, width, height)
    assert x_end == pytest.approx(viewport.x_end)
    assert y_end == pytest.approx(viewport.y_end)


def test_to_plane_extrapolates_outside_the_framebuffer():
    viewport = Viewport()
    x0, y0 = viewport.to_plane(-320, 480, 320, 240)
    assert x0 == pytest.approx(-6.0)
    assert y0 == pytest.approx(3.0)


def test_to_plane_accepts_arrays():
    viewport = Viewport()
    xs, ys = viewport.to_plane(np.array([0.0, 160.0]), np.array([0.0, 120.0]), 320, 240)
    np.testing.assert_allclose(xs, [-2.5, -0.75])
    np.testing.assert_allclose(ys, [-1.0, 0.0])


def test_selection_is_normalized():
    selection = SelectionRect(start=(240, 180), end=(80, 60))
    assert (selection.left, selection.top) == (80, 60)
    assert (selection.width, selection.height) == (160, 120)
    assert (selection.right, selection.bottom) == (240, 180)
    assert not selection.is_degenerate()


@pytest.mark.parametrize("end", [(50, 10), (10, 50), (10, 10)])
def test_selection_degenerate(end):
    assert SelectionRect(start=(10, 10), end=end).is_degenerate()


def test_zoom_to_selection():
    viewport = Viewport().zoom(SelectionRect(start=(80, 60), end=(240, 180)), 320, 240)

    assert viewport.x_start == pytest.approx(-1.625)
    assert viewport.x_end == pytest.approx(0.125)
    assert viewport.y_start == pytest.approx(-0.5)
    assert viewport.y_end == pytest.approx(0.5)


def test_zoom_ignores_drag_direction():
    forward = Viewport().zoom(SelectionRect(start=(80, 60), end=(240, 180)), 320, 240)
    backward = Viewport().zoom(SelectionRect(start=(240, 180), end=(80, 60)), 320, 240)
    assert forward == backward


def test_zoom_returns_new_viewport():
    original = Viewport()
    zoomed = original.zoom(SelectionRect(start=(0, 0), end=(160, 120)), 320, 240)
    assert original.bounds == DEFAULT_BOUNDS
    assert zoomed.bounds == pytest.approx((-2.5, -0.75, -1.0, 0.0))


def test_reset_restores_defaults():
    zoomed = Viewport(-0.5, 0.5, -0.25, 0.25)
    assert zoomed.reset() == Viewport()
