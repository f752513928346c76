"""Mapping between framebuffer pixels and the complex plane."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_BOUNDS = (-2.5, 1.0, -1.0, 1.0)


@dataclass(frozen=True)
class SelectionRect:
    """Pixel rectangle spanned by a drag gesture, normalized like ``from_two_points``."""

    start: tuple[int, int]
    end: tuple[int, int]

    @property
    def left(self) -> int:
        return min(self.start[0], self.end[0])

    @property
    def top(self) -> int:
        return min(self.start[1], self.end[1])

    @property
    def width(self) -> int:
        return abs(self.end[0] - self.start[0])

    @property
    def height(self) -> int:
        return abs(self.end[1] - self.start[1])

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def with_end(self, x: int, y: int) -> SelectionRect:
        return SelectionRect(start=self.start, end=(x, y))


@dataclass(frozen=True)
class Viewport:
    """Rectangle of the complex plane currently mapped onto the framebuffer."""

    x_start: float = DEFAULT_BOUNDS[0]
    x_end: float = DEFAULT_BOUNDS[1]
    y_start: float = DEFAULT_BOUNDS[2]
    y_end: float = DEFAULT_BOUNDS[3]

    def __post_init__(self) -> None:
        if not (self.x_start < self.x_end and self.y_start < self.y_end):
            raise ValueError(
                f"Viewport bounds must satisfy x_start < x_end and y_start < y_end, got "
                f"x=[{self.x_start}, {self.x_end}] y=[{self.y_start}, {self.y_end}]."
            )

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (self.x_start, self.x_end, self.y_start, self.y_end)

    def to_plane(self, px, py, width, height):
        """Linearly map pixel coordinates to the plane.

        No clamping is done: coordinates outside ``[0, width) x [0, height)``
        extrapolate, which is what ``zoom`` needs for the far selection corner.
        Scalars and numpy arrays are both accepted.
        """

        x0 = px * (self.x_end - self.x_start) / width + self.x_start
        y0 = py * (self.y_end - self.y_start) / height + self.y_start
        return x0, y0

    def zoom(self, selection: SelectionRect, width: int, height: int) -> Viewport:
        """Return the viewport covering ``selection``.

        Degenerate selections must be filtered out by the caller.
        """

        x_start, y_start = self.to_plane(selection.left, selection.top, width, height)
        x_end, y_end = self.to_plane(selection.right, selection.bottom, width, height)
        return Viewport(x_start=float(x_start), x_end=float(x_end), y_start=float(y_start), y_end=float(y_end))

    def reset(self) -> Viewport:
        return Viewport()
