"""Interactive explore session: reacts to host resize and pointer events."""

from __future__ import annotations

import enum
from typing import Callable, Optional

from .log import log
from .renderer import MAX_ITERATIONS, Framebuffer, render
from .viewport import SelectionRect, Viewport


class SessionState(enum.Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


class MouseButton(enum.Enum):
    LEFT = "left"
    RIGHT = "right"
    MIDDLE = "middle"


class ExplorerSession:
    """Own the viewport and framebuffer and drive recomputes from host events.

    Every handler runs to completion before returning and reports whether the
    host should repaint.
    """

    def __init__(
        self,
        max_iterations: int = MAX_ITERATIONS,
        *,
        viewport: Optional[Viewport] = None,
        device: Optional[str] = None,
    ) -> None:
        self.max_iterations = max_iterations
        self.device = device
        self._viewport = viewport if viewport is not None else Viewport()
        self._framebuffer: Optional[Framebuffer] = None
        self._state = SessionState.IDLE
        self._selection: Optional[SelectionRect] = None
        self.render_count = 0
        self._handlers: dict[str, Callable[..., bool]] = {
            "resize": self.on_resize,
            "pointer_down": self.on_pointer_down,
            "pointer_move": self.on_pointer_move,
            "pointer_up": self.on_pointer_up,
        }

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def framebuffer(self) -> Optional[Framebuffer]:
        return self._framebuffer

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def selection(self) -> Optional[SelectionRect]:
        return self._selection

    def dispatch(self, event: str, *args) -> bool:
        return self._handlers[event](*args)

    def recompute(self) -> None:
        if render(self._framebuffer, self._viewport, self.max_iterations, device=self.device) is not None:
            self.render_count += 1

    def on_resize(self, width: int, height: int) -> bool:
        try:
            self._framebuffer = Framebuffer.allocate(width, height)
        except MemoryError:
            log(f"Could not allocate a {width}x{height} framebuffer")
            self._framebuffer = None
            return False
        log(f"Resized framebuffer to {width}x{height}")
        self.recompute()
        return True

    def on_pointer_down(self, x: int, y: int, button: MouseButton) -> bool:
        if button is not MouseButton.LEFT or self._state is SessionState.DRAGGING:
            return False
        self._selection = SelectionRect(start=(x, y), end=(x, y))
        self._state = SessionState.DRAGGING
        return True

    def on_pointer_move(self, x: int, y: int) -> bool:
        if self._state is not SessionState.DRAGGING:
            return False
        self._selection = self._selection.with_end(x, y)
        return True

    def on_pointer_up(self, x: int, y: int, button: MouseButton) -> bool:
        if button is MouseButton.RIGHT:
            self._end_drag()
            self._viewport = self._viewport.reset()
            log("Reset viewport to %s" % (self._viewport.bounds,))
            self.recompute()
            return True

        if button is not MouseButton.LEFT or self._state is not SessionState.DRAGGING:
            return False

        selection = self._selection
        self._end_drag()
        framebuffer = self._framebuffer
        if selection.is_degenerate() or framebuffer is None or not framebuffer.has_area():
            return True

        try:
            viewport = self._viewport.zoom(selection, framebuffer.width, framebuffer.height)
        except ValueError as e:
            # Bounds collapsed to a single double; the view stays as it was.
            log("Ignoring zoom past float precision: %s" % e)
            return True
        self._viewport = viewport
        log("Zoomed to %s" % (self._viewport.bounds,))
        self.recompute()
        return True

    def _end_drag(self) -> None:
        self._state = SessionState.IDLE
        self._selection = None
