"""Clock display application.

Shows the current time with a weekday indicator on the bottom row.
"""

from datetime import datetime
from typing import Callable

from ..display.graphics import Colors
from ..display.surface import DisplaySurface
from .base import AppMetadata, BaseApp

# Seven weekday segments, 3 px wide with a 1 px gap, Monday first
WEEKDAY_SEGMENT = 3
WEEKDAY_GAP = 1


class ClockApp(BaseApp):
    """Digital clock. Has no external data, so it is always ready."""

    def __init__(
        self,
        format_24h: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        super().__init__()
        self._format_24h = format_24h
        self._clock = clock

    @property
    def metadata(self) -> AppMetadata:
        return AppMetadata(
            name="time",
            display_name="Clock",
            description="Current time and weekday",
        )

    def format_time(self, now: datetime) -> str:
        if self._format_24h:
            return now.strftime("%H:%M")
        return now.strftime("%I:%M").lstrip("0")

    def _draw(self, surface: DisplaySurface) -> None:
        now = self._clock()
        surface.draw_text(self.format_time(now), (4, 0), Colors.CLOCK)
        self._draw_weekday(surface, now.weekday())

    def _draw_weekday(self, surface: DisplaySurface, weekday: int) -> None:
        total = 7 * WEEKDAY_SEGMENT + 6 * WEEKDAY_GAP
        start_x = (surface.width - total) // 2
        y = surface.height - 1

        for day in range(7):
            color = Colors.WEEKDAY_ACTIVE if day == weekday else Colors.WEEKDAY_INACTIVE
            x0 = start_x + day * (WEEKDAY_SEGMENT + WEEKDAY_GAP)
            for x in range(x0, x0 + WEEKDAY_SEGMENT):
                surface.draw_pixel(x, y, color)
