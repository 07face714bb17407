"""Room weather display application.

Shows the temperature measured by the display's own sensor. Readings are
pushed by the device over MQTT; a stale app asks the device for a new one.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable

from ..core.cache import CachedValue
from ..core.config import RoomWeatherAppConfig
from ..core.errors import AppError
from ..display.graphics import Colors
from ..display.surface import DisplaySurface
from ..utils.strings import round_to_fixed
from .base import AppMetadata, BaseApp, is_fresh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomWeatherData:
    """One sensor reading."""

    temperature: float
    humidity: float | None = None


def parse_reading(payload: str) -> RoomWeatherData:
    """Parse a sensor message like ``{"temperature": 21.4, "humidity": 40}``.

    Raises:
        AppError: If the payload is not a valid reading
    """
    try:
        data = json.loads(payload)
        humidity = data.get("humidity")
        return RoomWeatherData(
            temperature=float(data["temperature"]),
            humidity=float(humidity) if humidity is not None else None,
        )
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise AppError("Invalid sensor reading", details={"payload": payload[:64]}, cause=e)


class RoomWeatherApp(BaseApp):
    """Indoor temperature from the device sensor."""

    def __init__(
        self,
        settings: RoomWeatherAppConfig,
        request_refresh: Callable[[], None] | None = None,
        cache: CachedValue[RoomWeatherData] | None = None,
    ) -> None:
        super().__init__()
        self._request_refresh = request_refresh
        self._data: CachedValue[RoomWeatherData] = cache or CachedValue()
        self._max_age = settings.max_cache_age_minutes

    @property
    def metadata(self) -> AppMetadata:
        return AppMetadata(
            name="room-weather",
            display_name="Room Weather",
            description="Indoor temperature from the display sensor",
        )

    @property
    def data(self) -> CachedValue[RoomWeatherData]:
        return self._data

    @property
    def is_ready(self) -> bool:
        return is_fresh(self._data, self._max_age)

    @property
    def cache_age_minutes(self) -> int | None:
        return self._data.age_in_minutes()

    def update(self, reading: RoomWeatherData) -> None:
        """Store a new sensor reading."""
        logger.debug("room weather: %.1f°", reading.temperature, extra={"app": self.name})
        self._data.set(reading)

    def handle_sensor_payload(self, payload: str) -> None:
        """MQTT callback for sensor messages; bad payloads are logged."""
        try:
            self.update(parse_reading(payload))
        except AppError as e:
            logger.warning("Ignoring sensor message: %s", e, extra={"app": self.name})

    def _on_reset(self) -> None:
        if self.is_ready or self._request_refresh is None:
            return

        try:
            self._request_refresh()
        except Exception as e:
            logger.error("can't request sensor reading: %s", e, extra={"app": self.name})

    def _draw(self, surface: DisplaySurface) -> None:
        data = self._data.value
        temperature = round_to_fixed(data.temperature if data else None)

        surface.draw_text(f"{temperature or ''}°", (7, 1), Colors.ROOM_WEATHER)
        surface.draw_pixel_progress(self.cache_age_minutes, self._max_age)
