"""Public API for the Mandelbrot explorer core."""

from .renderer import (
    HORIZON,
    MAX_ITERATIONS,
    Framebuffer,
    color_for,
    colorize,
    escape_count,
    escape_counts,
    hsv_color,
    hue_for,
    hues,
    render,
)
from .session import ExplorerSession, MouseButton, SessionState
from .viewport import DEFAULT_BOUNDS, SelectionRect, Viewport

__all__ = [
    "DEFAULT_BOUNDS",
    "ExplorerSession",
    "Framebuffer",
    "HORIZON",
    "MAX_ITERATIONS",
    "MouseButton",
    "SelectionRect",
    "SessionState",
    "Viewport",
    "color_for",
    "colorize",
    "escape_count",
    "escape_counts",
    "hsv_color",
    "hue_for",
    "hues",
    "render",
]
