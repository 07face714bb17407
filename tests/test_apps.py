"""Tests for the display apps (clock, room weather, city weather)."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime

import httpx
import pytest
from smartdisplay.apps.city_weather import CityWeatherApp, CityWeatherData, OpenWeatherMapService
from smartdisplay.apps.clock import ClockApp
from smartdisplay.apps.room_weather import RoomWeatherApp, RoomWeatherData, parse_reading
from smartdisplay.core.cache import CachedValue
from smartdisplay.core.config import CityWeatherAppConfig, RoomWeatherAppConfig
from smartdisplay.core.errors import APIError, AppError
from smartdisplay.display.graphics import Colors

WEATHER = CityWeatherData(
    temperature=21.25,
    feels_like=20.0,
    humidity=40,
    description="Clear Sky",
    city="Berlin",
)

OWM_RESPONSE = {
    "name": "Berlin",
    "main": {"temp": 12.34, "feels_like": 10.5, "humidity": 81},
    "weather": [{"description": "light rain", "icon": "10d"}],
}


class FakeService:
    """Stands in for OpenWeatherMapService."""

    def __init__(self, result: CityWeatherData | None = WEATHER, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls = 0

    async def load_data(self) -> CityWeatherData:
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def city_settings():
    return CityWeatherAppConfig(api_key="secret", location="Berlin")


def make_city_app(settings, spawn, clock, service=None):
    return CityWeatherApp(
        settings,
        spawn=spawn,
        service=service or FakeService(),
        cache=CachedValue(clock=clock),
    )


# ============================================================================
# Shared render flag contract
# ============================================================================


def test_should_rerender_cycle_for_every_app(clock, dropped_spawn, city_settings, mock_surface):
    apps = [
        ClockApp(clock=clock),
        RoomWeatherApp(RoomWeatherAppConfig(), cache=CachedValue(clock=clock)),
        make_city_app(city_settings, dropped_spawn, clock),
    ]

    for app in apps:
        assert app.should_rerender is True
        app.render(mock_surface)
        assert app.should_rerender is False
        app.reset()
        assert app.should_rerender is True
        app.render(mock_surface)
        assert app.should_rerender is False


# ============================================================================
# Clock
# ============================================================================


def test_clock_is_always_ready(clock):
    app = ClockApp(clock=clock)

    assert app.name == "time"
    assert app.is_ready is True
    assert app.cache_age_minutes is None


def test_clock_formats(clock):
    assert ClockApp(clock=clock).format_time(datetime(2024, 1, 1, 9, 5)) == "09:05"
    assert ClockApp(format_24h=False).format_time(datetime(2024, 1, 1, 21, 5)) == "9:05"
    assert ClockApp(format_24h=False).format_time(datetime(2024, 1, 1, 12, 0)) == "12:00"


def test_clock_render_draws_time_and_weekday(clock, mock_surface):
    app = ClockApp(clock=clock)
    app.render(mock_surface)

    mock_surface.draw_text.assert_called_once_with("12:00", (4, 0), Colors.CLOCK)

    active = [c for c in mock_surface.draw_pixel.call_args_list if c.args[2] == Colors.WEEKDAY_ACTIVE]
    # 2024-01-01 is a Monday: the first segment is lit
    assert [c.args[0] for c in active] == [2, 3, 4]
    assert all(c.args[1] == 7 for c in active)
    assert mock_surface.draw_pixel.call_count == 21


# ============================================================================
# City weather
# ============================================================================


def test_city_weather_not_ready_when_never_fetched(clock, dropped_spawn, city_settings):
    app = make_city_app(city_settings, dropped_spawn, clock)

    assert app.name == "city-weather"
    assert app.is_ready is False
    assert app.cache_age_minutes is None


def test_city_weather_readiness_follows_cache_age(clock, dropped_spawn, city_settings):
    app = make_city_app(city_settings, dropped_spawn, clock)
    app.data.set(WEATHER)

    clock.advance(minutes=29)
    assert app.is_ready is True

    clock.advance(minutes=1)
    assert app.is_ready is False


def test_city_weather_reset_refreshes_when_not_ready(clock, inline_spawn, city_settings):
    service = FakeService()
    app = make_city_app(city_settings, inline_spawn, clock, service)

    app.reset()

    assert service.calls == 1
    assert app.data.value == WEATHER
    assert app.is_ready is True


def test_city_weather_reset_skips_refresh_when_fresh(clock, inline_spawn, city_settings):
    service = FakeService()
    app = make_city_app(city_settings, inline_spawn, clock, service)
    app.data.set(WEATHER)
    clock.advance(minutes=5)

    app.reset()

    assert service.calls == 0


def test_city_weather_refresh_failure_keeps_stale_value(clock, inline_spawn, city_settings, caplog):
    service = FakeService(error=APIError("boom"))
    app = make_city_app(city_settings, inline_spawn, clock, service)
    app.data.set(WEATHER)
    clock.advance(minutes=45)

    app.reset()

    assert service.calls == 1
    assert app.data.value == WEATHER
    assert app.cache_age_minutes == 45
    assert app.is_ready is False
    assert "can't load openweathermap data" in caplog.text


def test_city_weather_reset_survives_spawn_failure(clock, city_settings):
    def broken_spawn(coro):
        coro.close()
        raise RuntimeError("loop stopped")

    app = make_city_app(city_settings, broken_spawn, clock)
    app.reset()

    assert app.should_rerender is True


def test_city_weather_render_placeholder_without_data(clock, dropped_spawn, city_settings, mock_surface):
    app = make_city_app(city_settings, dropped_spawn, clock)
    app.render(mock_surface)

    mock_surface.draw_text.assert_called_once_with("°", (7, 1), Colors.CITY_WEATHER)
    mock_surface.draw_pixel_progress.assert_called_once_with(None, 30)


def test_city_weather_render_with_data(clock, dropped_spawn, city_settings, mock_surface):
    app = make_city_app(city_settings, dropped_spawn, clock)
    app.data.set(WEATHER)
    clock.advance(minutes=12)

    app.render(mock_surface)

    mock_surface.draw_text.assert_called_once_with("21.3°", (7, 1), Colors.CITY_WEATHER)
    mock_surface.draw_pixel_progress.assert_called_once_with(12, 30)


def test_city_weather_render_on_real_surface_without_data(clock, dropped_spawn, city_settings, surface, frames):
    app = make_city_app(city_settings, dropped_spawn, clock)

    surface.clear()
    app.render(surface)
    surface.show()

    assert len(frames) == 1
    assert frames[0].size == (32, 8)


# ============================================================================
# OpenWeatherMap service
# ============================================================================


def make_service(city_settings, handler):
    return OpenWeatherMapService(city_settings, transport=httpx.MockTransport(handler))


def test_service_parses_response(city_settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json=OWM_RESPONSE)

    data = asyncio.run(make_service(city_settings, handler).load_data())

    assert data == CityWeatherData(
        temperature=12.34,
        feels_like=10.5,
        humidity=81,
        description="Light Rain",
        city="Berlin",
    )
    assert seen == {"q": "Berlin", "appid": "secret", "units": "metric"}


@pytest.mark.parametrize(
    "status,message",
    [(401, "Invalid API key"), (404, "City not found: Berlin")],
)
def test_service_maps_client_errors(city_settings, status, message):
    service = make_service(city_settings, lambda request: httpx.Response(status))

    with pytest.raises(APIError, match=message):
        asyncio.run(service.load_data())


def test_service_rejects_malformed_body(city_settings):
    service = make_service(city_settings, lambda request: httpx.Response(200, json={"main": {}}))

    with pytest.raises(APIError, match="Malformed"):
        asyncio.run(service.load_data())


def test_service_server_error_raises(city_settings):
    service = make_service(city_settings, lambda request: httpx.Response(500))

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(service.load_data())


# ============================================================================
# Room weather
# ============================================================================


def test_parse_reading():
    assert parse_reading('{"temperature": 21.4, "humidity": 40}') == RoomWeatherData(21.4, 40.0)
    assert parse_reading('{"temperature": "19"}') == RoomWeatherData(19.0, None)


@pytest.mark.parametrize("payload", ["", "not json", "[]", '{"humidity": 40}', '{"temperature": "warm"}'])
def test_parse_reading_rejects_bad_payloads(payload):
    with pytest.raises(AppError):
        parse_reading(payload)


def test_room_weather_sensor_payload_updates_cache(clock):
    app = RoomWeatherApp(RoomWeatherAppConfig(), cache=CachedValue(clock=clock))

    assert app.is_ready is False
    app.handle_sensor_payload(json.dumps({"temperature": 22.0}))

    assert app.data.value == RoomWeatherData(22.0)
    assert app.is_ready is True

    clock.advance(minutes=10)
    assert app.is_ready is False


def test_room_weather_ignores_bad_sensor_payload(clock, caplog):
    app = RoomWeatherApp(RoomWeatherAppConfig(), cache=CachedValue(clock=clock))
    app.handle_sensor_payload("garbage")

    assert app.data.value is None
    assert "Ignoring sensor message" in caplog.text


def test_room_weather_reset_requests_reading_only_when_stale(clock):
    requests = []
    app = RoomWeatherApp(
        RoomWeatherAppConfig(max_cache_age_minutes=5),
        request_refresh=lambda: requests.append(1),
        cache=CachedValue(clock=clock),
    )

    app.reset()
    assert len(requests) == 1

    app.update(RoomWeatherData(20.0))
    app.reset()
    assert len(requests) == 1

    clock.advance(minutes=6)
    app.reset()
    assert len(requests) == 2


def test_room_weather_reset_survives_request_failure(clock):
    def broken():
        raise ConnectionError("offline")

    app = RoomWeatherApp(RoomWeatherAppConfig(), request_refresh=broken, cache=CachedValue(clock=clock))
    app.reset()

    assert app.should_rerender is True


def test_room_weather_render_placeholder(clock, mock_surface):
    app = RoomWeatherApp(RoomWeatherAppConfig(), cache=CachedValue(clock=clock))
    app.render(mock_surface)

    mock_surface.draw_text.assert_called_once_with("°", (7, 1), Colors.ROOM_WEATHER)
    mock_surface.draw_pixel_progress.assert_called_once_with(None, 10)
