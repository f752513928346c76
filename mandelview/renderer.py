"""Escape-time evaluation and colouring of Mandelbrot frames."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import PIL.Image
import tensorflow as tf
from matplotlib import colors as mcolors

from .viewport import Viewport

HORIZON = 4
MAX_ITERATIONS = 100


def escape_count(x0: float, y0: float, max_iterations: int) -> int:
    """Count the steps of ``z <- z**2 + c`` that stay within the horizon.

    The components and their squares are tracked separately; ``y`` is updated
    before ``x`` and the squares are always those of the previous step.
    """

    if max_iterations < 0:
        raise ValueError("max_iterations must be non-negative.")

    x = y = x2 = y2 = 0.0
    iterations = 0
    while iterations < max_iterations:
        y = 2 * x * y + y0
        x = x2 - y2 + x0
        x2 = x * x
        y2 = y * y
        if x2 + y2 > HORIZON:
            break
        iterations += 1
    return iterations


def hues(iterations, max_iterations: int) -> np.ndarray:
    """Hue in degrees for each count; a full circle wraps back to 0."""

    if max_iterations <= 0:
        raise ValueError("max_iterations must be positive.")
    hue = np.asarray(iterations) * 360.0 / max_iterations
    return np.where(hue == 360.0, 0.0, hue)


def hue_for(iterations: int, max_iterations: int) -> float:
    return float(hues(iterations, max_iterations))


def hsv_color(hue, saturation, value) -> np.ndarray:
    """Convert hue in degrees plus saturation/value in [0, 1] to ``uint8`` RGB."""

    hue = np.asarray(hue, dtype=np.float64) % 360.0
    hsv = np.stack(
        np.broadcast_arrays(hue / 360.0, np.asarray(saturation, dtype=np.float64), np.asarray(value, dtype=np.float64)),
        axis=-1,
    )
    return np.uint8(np.clip(mcolors.hsv_to_rgb(hsv), 0.0, 1.0) * 255)


def colorize(iterations: np.ndarray, max_iterations: int) -> np.ndarray:
    iterations = np.asarray(iterations)
    hue = hues(iterations, max_iterations)
    value = np.where(iterations < max_iterations, 1.0, 0.0)
    return hsv_color(hue, 1.0, value)


def color_for(iterations: int, max_iterations: int) -> tuple[int, int, int]:
    rgb = colorize(np.array([iterations]), max_iterations)[0]
    return int(rgb[0]), int(rgb[1]), int(rgb[2])


@dataclass
class Framebuffer:
    """Owned RGB pixel grid; hosts only read from it."""

    pixels: np.ndarray

    @classmethod
    def allocate(cls, width: int, height: int) -> Framebuffer:
        if width < 0 or height < 0:
            raise ValueError(f"Framebuffer size must be non-negative, got {width}x{height}.")
        return cls(pixels=np.zeros((int(height), int(width), 3), dtype=np.uint8))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0

    def pixel(self, px: int, py: int) -> tuple[int, int, int]:
        r, g, b = self.pixels[py, px]
        return int(r), int(g), int(b)

    def to_image(self) -> PIL.Image.Image:
        return PIL.Image.fromarray(self.pixels)


@tf.function(reduce_retracing=True)
def _escape_step(
    x: tf.Tensor,
    y: tf.Tensor,
    x2: tf.Tensor,
    y2: tf.Tensor,
    x0: tf.Tensor,
    y0: tf.Tensor,
    ns: tf.Tensor,
    active: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Advance every point that has not escaped yet by one step."""

    y_next = 2.0 * x * y + y0
    x_next = x2 - y2 + x0
    x = tf.where(active, x_next, x)
    y = tf.where(active, y_next, y)
    x2 = x * x
    y2 = y * y
    horizon = tf.cast(HORIZON, x2.dtype)
    active = tf.logical_and(active, x2 + y2 <= horizon)
    ns = ns + tf.cast(active, tf.int32)
    return x, y, x2, y2, ns, active


@tf.function(reduce_retracing=True)
def _escape_run(x0: tf.Tensor, y0: tf.Tensor, max_iterations: tf.Tensor) -> tf.Tensor:
    max_iterations = tf.cast(max_iterations, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    zeros = tf.zeros_like(x0)
    ns = tf.zeros_like(x0, tf.int32)
    active = tf.ones_like(ns, tf.bool)

    def cond(i, x, y, x2, y2, ns, active):
        return tf.logical_and(tf.less(i, max_iterations), tf.reduce_any(active))

    def body(i, x, y, x2, y2, ns, active):
        x, y, x2, y2, ns, active = _escape_step(x, y, x2, y2, x0, y0, ns, active)
        return i + 1, x, y, x2, y2, ns, active

    _, _, _, _, _, ns, _ = tf.while_loop(cond, body, (i, zeros, zeros, zeros, zeros, ns, active))
    return ns


def escape_counts(
    viewport: Viewport,
    width: int,
    height: int,
    max_iterations: int = MAX_ITERATIONS,
    *,
    device: Optional[str] = None,
) -> np.ndarray:
    """Escape counts for every pixel of a ``height x width`` grid."""

    if max_iterations < 0:
        raise ValueError("max_iterations must be non-negative.")

    xs, _ = viewport.to_plane(np.arange(width, dtype=np.float64), 0.0, width, height)
    _, ys = viewport.to_plane(0.0, np.arange(height, dtype=np.float64), width, height)
    X, Y = np.meshgrid(xs, ys)

    with tf.device(device if device is not None else "/CPU:0"):
        x0 = tf.convert_to_tensor(X, dtype=tf.float64)
        y0 = tf.convert_to_tensor(Y, dtype=tf.float64)
        ns = _escape_run(x0, y0, tf.constant(max_iterations, dtype=tf.int32))

    return ns.numpy()


def render(
    framebuffer: Optional[Framebuffer],
    viewport: Viewport,
    max_iterations: int = MAX_ITERATIONS,
    *,
    device: Optional[str] = None,
) -> Optional[np.ndarray]:
    """Recompute every pixel of ``framebuffer`` for ``viewport``.

    Returns the iteration counts, or ``None`` when there was nothing to draw.
    """

    if framebuffer is None or not framebuffer.has_area():
        return None

    iterations = escape_counts(viewport, framebuffer.width, framebuffer.height, max_iterations, device=device)
    framebuffer.pixels[...] = colorize(iterations, max_iterations)
    return iterations
