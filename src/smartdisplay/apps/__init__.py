"""Display applications module.

Provides:
- BaseApp abstract class for app implementation
- AppScheduler for rotation, rendering and power commands
- Built-in apps: clock, room weather, city weather
"""

from .base import AppMetadata, BaseApp
from .city_weather import CityWeatherApp, CityWeatherData, OpenWeatherMapService
from .clock import ClockApp
from .room_weather import RoomWeatherApp, RoomWeatherData
from .scheduler import AppScheduler

__all__ = [
    "AppMetadata",
    "AppScheduler",
    "BaseApp",
    "CityWeatherApp",
    "CityWeatherData",
    "ClockApp",
    "OpenWeatherMapService",
    "RoomWeatherApp",
    "RoomWeatherData",
]
