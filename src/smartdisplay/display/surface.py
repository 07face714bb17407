"""Drawing surface shared by all apps.

Apps draw into an in-memory Pillow canvas; ``show()`` hands the finished
frame to whatever pushes pixels to the device (the MQTT control channel in
production, a list in tests).
"""

import logging
import threading
from typing import Callable

from PIL import Image, ImageDraw

from .graphics import Color, Colors, get_default_font

logger = logging.getLogger(__name__)


class DisplaySurface:
    """Thread-safe drawing surface for the pixel display.

    Collaborator errors (frame and power callbacks) are logged and
    swallowed; after ``destroy()`` every call is a no-op.

    Usage:
        surface = DisplaySurface(32, 8, on_frame_ready=publish_frame)
        surface.clear()
        surface.draw_text("12:00", (4, 0), Colors.CLOCK)
        surface.show()
    """

    def __init__(
        self,
        width: int = 32,
        height: int = 8,
        on_frame_ready: Callable[[Image.Image], None] | None = None,
        on_power: Callable[[bool], None] | None = None,
        brightness: int = 100,
    ) -> None:
        """Initialize the surface.

        Args:
            width: Display width in pixels
            height: Display height in pixels
            on_frame_ready: Receives each flushed frame
            on_power: Receives power state changes
            brightness: Brightness applied to flushed frames (0-100)
        """
        self._width = width
        self._height = height
        self._on_frame_ready = on_frame_ready
        self._on_power = on_power
        self._brightness = max(0, min(100, brightness))
        self._lock = threading.RLock()
        self._image = Image.new("RGB", (width, height), Colors.BLACK.to_tuple())
        self._destroyed = False
        self._powered = True

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def is_powered(self) -> bool:
        return self._powered

    def snapshot(self) -> Image.Image:
        """Copy of the canvas as currently drawn (not yet flushed)."""
        with self._lock:
            return self._image.copy()

    def clear(self) -> None:
        """Reset the canvas to black."""
        with self._lock:
            if self._destroyed:
                return
            self._image = Image.new("RGB", (self._width, self._height), Colors.BLACK.to_tuple())

    def draw_text(
        self,
        text: str,
        position: tuple[int, int],
        color: Color = Colors.WHITE,
        font_size: int = 8,
    ) -> None:
        """Draw text with its top-left corner at position."""
        with self._lock:
            if self._destroyed:
                return
            draw = ImageDraw.Draw(self._image)
            draw.text(position, text, font=get_default_font(font_size), fill=color.to_tuple())

    def draw_pixel(self, x: int, y: int, color: Color) -> None:
        with self._lock:
            if self._destroyed:
                return
            if 0 <= x < self._width and 0 <= y < self._height:
                self._image.putpixel((x, y), color.to_tuple())

    def draw_pixel_progress(
        self,
        value: float | None,
        maximum: float,
        color: Color = Colors.PROGRESS,
    ) -> None:
        """Light up the bottom row in proportion to value/maximum.

        A missing value or non-positive maximum draws nothing.
        """
        if value is None or maximum <= 0:
            return

        progress = max(0.0, min(1.0, value / maximum))
        lit = round(self._width * progress)
        y = self._height - 1
        for x in range(lit):
            self.draw_pixel(x, y, color)

    def show(self) -> None:
        """Flush the canvas to the frame consumer."""
        with self._lock:
            if self._destroyed:
                return
            frame = self._image.copy()

        if self._brightness < 100:
            frame = Image.eval(frame, lambda v: v * self._brightness // 100)

        if self._on_frame_ready is None:
            logger.debug("Frame ready: %dx%d (no consumer)", frame.width, frame.height)
            return

        try:
            self._on_frame_ready(frame)
        except Exception as e:
            logger.error("Failed to push frame: %s", e)

    def set_power(self, on: bool) -> None:
        """Switch the physical display on or off."""
        with self._lock:
            if self._destroyed:
                return
            self._powered = on

        logger.debug("Display power: %s", "on" if on else "off")

        if self._on_power is None:
            return

        try:
            self._on_power(on)
        except Exception as e:
            logger.error("Failed to switch display power: %s", e)

    def destroy(self) -> None:
        """Release the surface. Safe to call more than once."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True
            self._on_frame_ready = None
            self._on_power = None

        logger.info("Display surface destroyed")
