"""City weather display application.

Shows the current outdoor temperature from the OpenWeatherMap API.
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..core.cache import CachedValue
from ..core.config import CityWeatherAppConfig
from ..core.errors import APIError, RateLimitError
from ..core.retry import RetryConfig, async_retry
from ..display.graphics import Colors
from ..display.surface import DisplaySurface
from ..utils.strings import round_to_fixed
from .base import AppMetadata, BaseApp, Spawner, is_fresh

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CityWeatherData:
    """Weather data from API."""

    temperature: float
    feels_like: float
    humidity: int
    description: str
    city: str


class OpenWeatherMapService:
    """Fetches current conditions for one location."""

    API_URL = "https://api.openweathermap.org/data/2.5/weather"

    def __init__(
        self,
        settings: CityWeatherAppConfig,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._timeout = timeout

    @property
    def location(self) -> str:
        return self._settings.location

    @async_retry(
        RetryConfig(
            max_attempts=2,
            base_delay=5.0,
            retryable_exceptions=(httpx.TransportError,),
        ),
        label=lambda self: f"openweathermap {self.location}",
    )
    async def load_data(self) -> CityWeatherData:
        """Fetch the current weather.

        Raises:
            APIError: On bad credentials, unknown city or malformed response
            httpx.HTTPError: On network failures after retries
        """
        location = self.location

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.get(
                self.API_URL,
                params={
                    "q": location,
                    "appid": self._settings.api_key.get_secret_value(),
                    "units": self._settings.units,
                },
            )

        if response.status_code == 401:
            raise APIError("Invalid API key", status_code=401)
        if response.status_code == 404:
            raise APIError(f"City not found: {location}", status_code=404)
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                "OpenWeatherMap rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        response.raise_for_status()
        return self.parse(response.json())

    @staticmethod
    def parse(data: dict[str, Any]) -> CityWeatherData:
        """Map an OpenWeatherMap response body to CityWeatherData."""
        try:
            return CityWeatherData(
                temperature=float(data["main"]["temp"]),
                feels_like=float(data["main"]["feels_like"]),
                humidity=int(data["main"]["humidity"]),
                description=data["weather"][0]["description"].title(),
                city=data["name"],
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise APIError("Malformed weather response", details={"error": str(e)}, cause=e)


class CityWeatherApp(BaseApp):
    """Outdoor temperature for the configured city.

    Data older than ``max_cache_age_minutes`` makes the app not ready;
    ``reset()`` then starts a refresh in the background.
    """

    def __init__(
        self,
        settings: CityWeatherAppConfig,
        spawn: Spawner,
        service: OpenWeatherMapService | None = None,
        cache: CachedValue[CityWeatherData] | None = None,
    ) -> None:
        super().__init__()
        self._spawn = spawn
        self._service = service or OpenWeatherMapService(settings)
        self._data: CachedValue[CityWeatherData] = cache or CachedValue()
        self._max_age = settings.max_cache_age_minutes

    @property
    def metadata(self) -> AppMetadata:
        return AppMetadata(
            name="city-weather",
            display_name="City Weather",
            description="Current outdoor temperature",
            requires_network=True,
        )

    @property
    def data(self) -> CachedValue[CityWeatherData]:
        return self._data

    @property
    def max_cache_age_minutes(self) -> int:
        return self._max_age

    @property
    def is_ready(self) -> bool:
        return is_fresh(self._data, self._max_age)

    @property
    def cache_age_minutes(self) -> int | None:
        return self._data.age_in_minutes()

    def _on_reset(self) -> None:
        if self.is_ready:
            return

        try:
            self._spawn(self._refresh())
        except Exception as e:
            logger.error("Could not schedule weather refresh: %s", e, extra={"app": self.name})

    async def _refresh(self) -> None:
        try:
            data = await self._service.load_data()
        except Exception as e:
            logger.error("can't load openweathermap data: %s", e, extra={"app": self.name})
            return

        logger.info(
            "city weather: %s, %.1f°", data.city, data.temperature, extra={"app": self.name}
        )
        self._data.set(data)

    def _draw(self, surface: DisplaySurface) -> None:
        data = self._data.value
        temperature = round_to_fixed(data.temperature if data else None)

        surface.draw_text(f"{temperature or ''}°", (7, 1), Colors.CITY_WEATHER)
        surface.draw_pixel_progress(self.cache_age_minutes, self._max_age)
