"""Base class and shared helpers for display applications.

Defines the interface every app implements. Data-backed apps own a
``CachedValue`` and decide readiness from its age.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

from ..core.cache import CachedValue
from ..display.surface import DisplaySurface

logger = logging.getLogger(__name__)

# Schedules a coroutine without waiting for it (BackgroundLoop.submit)
Spawner = Callable[[Coroutine[Any, Any, None]], Any]


@dataclass(frozen=True)
class AppMetadata:
    """Metadata describing an app.

    Attributes:
        name: Internal app identifier (lowercase, used in logs)
        display_name: Human-readable name
        description: Short description of app functionality
        requires_network: Whether app data comes from outside the server
    """

    name: str
    display_name: str
    description: str
    requires_network: bool = False


def is_fresh(cache: CachedValue[Any], max_age_minutes: int) -> bool:
    """Whether cached data exists and is younger than max_age_minutes."""
    age = cache.age_in_minutes()
    if age is None:
        return False
    return age < max_age_minutes


class BaseApp(ABC):
    """Abstract base class for display applications.

    Lifecycle:
        1. reset() - Called when the app becomes current; may start a refresh
        2. render() - Draws onto the shared surface, once per reset
        3. is_ready - Checked by the scheduler right after reset()

    Thread Safety:
        - reset() and render() are called under the scheduler lock
        - Refreshes finish on another thread and only touch the CachedValue
    """

    def __init__(self) -> None:
        self._was_rendered = False

    @property
    @abstractmethod
    def metadata(self) -> AppMetadata:
        """Return app metadata."""

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def should_rerender(self) -> bool:
        """True until the app has rendered once since its last reset."""
        return not self._was_rendered

    @property
    def is_ready(self) -> bool:
        """Whether the app has data fresh enough to show.

        Must not have side effects. Apps without external data are
        always ready.
        """
        return True

    @property
    def cache_age_minutes(self) -> int | None:
        """Age of the backing data, or None when there is none."""
        return None

    def reset(self) -> None:
        """Prepare the app for a new display slot."""
        self._was_rendered = False
        self._on_reset()

    def _on_reset(self) -> None:
        """Override to refresh data when the app becomes current.

        Must not block and must not raise.
        """

    def render(self, surface: DisplaySurface) -> None:
        """Draw the current state and mark the app rendered."""
        self._draw(surface)
        self._was_rendered = True

    @abstractmethod
    def _draw(self, surface: DisplaySurface) -> None:
        """Draw onto the surface. Must cope with missing data."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
