"""Interactive progressive preview using Taichi GGUI.

Opens a window, renders one frame per window refresh and shows the RGBA
output until the window is closed or Escape is pressed.

Example:
    >>> from prismtrace.preview.interactive import InteractivePreview
    >>>
    >>> preview = InteractivePreview(state.width, state.height)
    >>> preview.run_progressive(state)
"""

from __future__ import annotations

import os
import platform
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import numpy as np
import taichi as ti

from prismtrace.preview.display import rgba_to_image

if TYPE_CHECKING:
    from prismtrace.core.progressive import RaytraceState

# Callback receives (frame, state) after each rendered frame
FrameCallback = Callable[[int, "RaytraceState"], None]


class InteractivePreview:
    """Taichi GGUI window showing an RGBA8 output buffer.

    Attributes:
        width: Window width in pixels.
        height: Window height in pixels.
        display_image: Taichi field ``(width, height)`` of RGB floats shown on
            the canvas.
    """

    def __init__(self, width: int, height: int, *, title: str = "prismtrace") -> None:
        """Create the preview. The window itself opens lazily.

        Args:
            width: Window width in pixels.
            height: Window height in pixels.
            title: Window title.
        """
        self.width = width
        self.height = height
        self._title = title

        self._window: ti.ui.Window | None = None
        self._canvas: ti.ui.Canvas | None = None

        self.display_image = ti.Vector.field(3, dtype=ti.f32, shape=(width, height))

    def _initialize_window(self) -> None:
        if self._window is not None:
            return
        self._window = ti.ui.Window(
            name=self._title,
            res=(self.width, self.height),
            vsync=True,
        )
        self._canvas = self._window.get_canvas()

    @property
    def window(self) -> ti.ui.Window:
        """The GGUI window, opened on first access."""
        self._initialize_window()
        assert self._window is not None
        return self._window

    @property
    def canvas(self) -> ti.ui.Canvas:
        """The window canvas."""
        self._initialize_window()
        assert self._canvas is not None
        return self._canvas

    def update_rgba(self, buffer: Any) -> None:
        """Copy an RGBA8 output buffer into the display image.

        Args:
            buffer: RGBA8 bytes of ``width*height*4`` length, row 0 at the top.

        Raises:
            ValueError: If the buffer length does not match the window size.
        """
        image = rgba_to_image(buffer, self.width, self.height)
        # Canvas fields are (x, y) with y pointing up
        self.display_image.from_numpy(
            np.ascontiguousarray(np.transpose(np.flipud(image), (1, 0, 2)))
        )

    def is_running(self) -> bool:
        """Whether the window is still open."""
        return self.window.running

    def escape_pressed(self) -> bool:
        """Drain pending key presses and report whether Escape was among them."""
        pressed = False
        while self.window.get_event(ti.ui.PRESS):
            if self.window.event.key == ti.ui.ESCAPE:
                pressed = True
        return pressed

    def show_frame(self) -> None:
        """Present the current display image."""
        self.canvas.set_image(self.display_image)
        self.window.show()

    def run_progressive(
        self,
        state: RaytraceState,
        *,
        max_frames: int | None = None,
        callback: FrameCallback | None = None,
    ) -> int:
        """Render and display frames until the window closes.

        Args:
            state: The render state; its size must match the window.
            max_frames: Stop after this many frames (default: run until the
                window is closed or Escape is pressed).
            callback: Called with ``(frame, state)`` after each frame.

        Returns:
            The number of frames rendered.

        Raises:
            ValueError: If the state size does not match the window.
        """
        if (state.width, state.height) != (self.width, self.height):
            raise ValueError(
                f"State size {state.width}x{state.height} does not match "
                f"window size {self.width}x{self.height}"
            )

        output = bytearray(self.width * self.height * 4)
        frame = state.frame
        rendered = 0

        while self.is_running():
            if self.escape_pressed():
                break
            if max_frames is not None and rendered >= max_frames:
                break

            frame += 1
            state.raytrace(output, frame)
            rendered += 1
            if callback is not None:
                callback(frame, state)

            self.update_rgba(output)
            self.show_frame()

        return rendered

    def close(self) -> None:
        """Stop the window loop."""
        if self._window is not None:
            self._window.running = False

    @staticmethod
    def is_display_available() -> bool:
        """Check if a display is available for GUI rendering.

        Returns:
            True if a display is available, False for headless environments.
        """
        display = os.environ.get("DISPLAY")
        wayland = os.environ.get("WAYLAND_DISPLAY")
        system = platform.system()

        if system == "Darwin":
            # SSH sessions without X forwarding have no display
            return not (os.environ.get("SSH_CONNECTION") and not display)
        if system == "Windows":
            return True
        return bool(display or wayland)
