"""Display subsystem.

Provides:
- DisplaySurface, the canvas apps draw on
- Colors and font helpers
"""

from .graphics import Color, Colors, get_default_font
from .surface import DisplaySurface

__all__ = [
    "Color",
    "Colors",
    "DisplaySurface",
    "get_default_font",
]
