"""Palette and fonts for the 32x8 pixel display."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

logger = logging.getLogger(__name__)

# First existing file wins; Pillow's bitmap font is the last resort
FONT_CANDIDATES = (
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf"),
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/truetype/freefont/FreeSans.ttf"),
)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont


@dataclass(frozen=True)
class Color:
    """An RGB color; channels are clamped to 0-255."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        for channel in ("r", "g", "b"):
            object.__setattr__(self, channel, max(0, min(255, getattr(self, channel))))

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        """Parse ``#RRGGBB`` (the leading ``#`` is optional)."""
        digits = value.removeprefix("#")
        if len(digits) != 6:
            raise ValueError(f"Expected #RRGGBB, got {value!r}")
        return cls(*(int(digits[i : i + 2], 16) for i in (0, 2, 4)))

    def to_tuple(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


class Colors:
    """Colors used by the apps."""

    BLACK = Color(0, 0, 0)
    WHITE = Color(255, 255, 255)

    CLOCK = WHITE
    CITY_WEATHER = Color.from_hex("#4CFF00")
    ROOM_WEATHER = Color.from_hex("#FFB300")

    # Cache-age bar and weekday strip on the bottom row
    PROGRESS = Color(0, 150, 255)
    WEEKDAY_ACTIVE = WHITE
    WEEKDAY_INACTIVE = Color(60, 60, 70)


@lru_cache(maxsize=8)
def get_default_font(size: int = 8) -> Font:
    """Font for display text at the given pixel size."""
    for path in FONT_CANDIDATES:
        if not path.exists():
            continue
        try:
            return ImageFont.truetype(str(path), size)
        except OSError as e:
            logger.warning("Failed to load font %s: %s", path, e)

    logger.debug("No TrueType font found, using Pillow's default")
    return ImageFont.load_default()
