"""Shared test fixtures for the smart display test suite.

Provides:
- A controllable clock for cache-age tests
- A display surface that records flushed frames
- A stub app with scripted readiness
- Spawners for fire-and-forget refreshes
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from smartdisplay.apps.base import AppMetadata, BaseApp
from smartdisplay.display.surface import DisplaySurface

# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


@pytest.fixture
def clock():
    """A FakeClock starting at 2024-01-01 12:00 (a Monday)."""
    return FakeClock()


# ============================================================================
# Display
# ============================================================================


@pytest.fixture
def frames():
    """List collecting every frame flushed by the surface fixture."""
    return []


@pytest.fixture
def surface(frames):
    """A real 32x8 surface recording frames instead of publishing them."""
    return DisplaySurface(32, 8, on_frame_ready=frames.append)


@pytest.fixture
def mock_surface():
    """A surface spy for checking draw calls."""
    spy = MagicMock(spec=DisplaySurface)
    spy.width = 32
    spy.height = 8
    return spy


# ============================================================================
# Apps
# ============================================================================


class StubApp(BaseApp):
    """App with scripted readiness that counts resets and renders."""

    def __init__(self, name: str, ready: bool = True, age: int | None = None) -> None:
        super().__init__()
        self._name = name
        self.ready = ready
        self.age = age
        self.resets = 0
        self.renders = 0

    @property
    def metadata(self) -> AppMetadata:
        return AppMetadata(name=self._name, display_name=self._name, description="stub")

    @property
    def is_ready(self) -> bool:
        return self.ready

    @property
    def cache_age_minutes(self) -> int | None:
        return self.age

    def _on_reset(self) -> None:
        self.resets += 1

    def _draw(self, surface: DisplaySurface) -> None:
        self.renders += 1
        surface.draw_text(self._name, (0, 0))


@pytest.fixture
def make_app():
    """Factory for StubApp instances."""
    return StubApp


# ============================================================================
# Refresh spawners
# ============================================================================


@pytest.fixture
def inline_spawn():
    """Runs a refresh coroutine to completion right away."""
    return lambda coro: asyncio.run(coro)


@pytest.fixture
def dropped_spawn():
    """Accepts a refresh coroutine and never runs it (refresh still in flight)."""
    spawned = []

    def _spawn(coro):
        spawned.append(coro.__qualname__)
        coro.close()

    _spawn.spawned = spawned
    return _spawn
