"""App scheduler: rotates through apps and drives rendering.

Provides:
- A fixed, ordered app rotation with readiness-based skipping
- A one-second tick thread that renders and advances apps
- Power on/off handling for remote commands
"""

import logging
import threading
from typing import Callable, Sequence

from ..core.threading import StoppableThread
from ..display.surface import DisplaySurface
from .base import BaseApp

logger = logging.getLogger(__name__)


class AppScheduler:
    """Owns the app list, the current selection and the tick thread.

    States:
        stopped -> running: run() or a "power on" command
        running -> stopped: a "power off" command (selection is kept)

    Thread Safety:
        The tick thread and the control channel thread both enter the
        scheduler; one RLock guards all state changes. Ticker threads are
        always joined outside that lock.

    Usage:
        scheduler = AppScheduler([clock, weather], surface, is_connected=channel.is_connected)
        scheduler.run()
        scheduler.handle_command("power", "off")
        scheduler.shutdown()
    """

    HOLD_TICKS = 15
    TICK_INTERVAL = 1.0

    def __init__(
        self,
        apps: Sequence[BaseApp],
        surface: DisplaySurface,
        is_connected: Callable[[], bool] | None = None,
        tick_interval: float = TICK_INTERVAL,
        hold_ticks: int = HOLD_TICKS,
    ) -> None:
        """Initialize the scheduler.

        Args:
            apps: Apps in rotation order (must not be empty)
            surface: Drawing surface shared by all apps
            is_connected: Polled before each tick's render
            tick_interval: Seconds between ticks
            hold_ticks: Ticks before advancing to the next app

        Raises:
            ValueError: If apps is empty
        """
        if not apps:
            raise ValueError("AppScheduler needs at least one app")

        self._apps: tuple[BaseApp, ...] = tuple(apps)
        self._surface = surface
        self._is_connected = is_connected or (lambda: True)
        self._tick_interval = tick_interval
        self._hold_ticks = hold_ticks

        self._current_index = 0
        self._iterations = 0
        self._power_on = False
        self._ticker: StoppableThread | None = None
        self._shut_down = False

        self._lock = threading.RLock()

    @property
    def apps(self) -> tuple[BaseApp, ...]:
        return self._apps

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_app(self) -> BaseApp:
        return self._apps[self._current_index]

    @property
    def iterations_since_advance(self) -> int:
        return self._iterations

    @property
    def power_on(self) -> bool:
        return self._power_on

    @property
    def is_running(self) -> bool:
        """Check if the tick thread is active."""
        return self._ticker is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Render the current app and start ticking."""
        with self._lock:
            if self._shut_down:
                logger.warning("Scheduler is shut down, not starting")
                return

            if self._ticker is not None:
                logger.debug("Scheduler already running")
                return

            logger.debug("Starting tick loop")
            self._power_on = True
            self._iterations = 0

            try:
                self.render_app()
            except Exception:
                logger.exception("Initial render failed", extra={"app": self.current_app.name})

            self._ticker = StoppableThread(target=self._tick_loop, name="AppTicker")
            self._ticker.start()

    def stop(self) -> None:
        """Stop ticking. The current app and index are kept."""
        with self._lock:
            logger.debug("Stopping tick loop")
            ticker = self._ticker
            self._ticker = None
            self._power_on = False

        if ticker is not None:
            ticker.stop(timeout=self._tick_interval + 1.0)

    def shutdown(self) -> None:
        """Stop ticking and release the display. Safe to call twice."""
        with self._lock:
            if self._shut_down:
                return
            self._shut_down = True

        logger.info("Shutting down scheduler")
        self.stop()
        self._surface.destroy()

    def _tick_loop(self, thread: StoppableThread) -> None:
        while not thread.wait(self._tick_interval):
            with self._lock:
                # A stop may have been requested while waiting for the lock
                if thread.should_stop():
                    break
                self.tick()

        logger.debug("Tick loop stopped")

    # ------------------------------------------------------------------
    # Tick, render and rotation
    # ------------------------------------------------------------------

    def tick(self) -> None:
        """Run one scheduler update. Never raises."""
        with self._lock:
            try:
                if not self._is_connected():
                    logger.error("Control channel not connected, skipping render")
                    return

                self.render_app()
                self._iterations += 1

                if self._iterations >= self._hold_ticks:
                    self.advance_app()
            except Exception:
                logger.exception("Tick failed", extra={"app": self.current_app.name})

    def render_app(self) -> bool:
        """Draw the current app if it asks for it.

        Returns:
            True if a frame was drawn and flushed
        """
        with self._lock:
            app = self.current_app
            if not app.should_rerender:
                return False

            self._surface.clear()
            app.render(self._surface)
            self._surface.show()
            return True

    def advance_app(self) -> BaseApp:
        """Select the next ready app, wrapping around the list.

        Each candidate is reset (which may start a refresh) and checked for
        readiness. At most one full cycle is tried; if no app is ready the
        one with the freshest data is chosen, or the first candidate when
        none has data.

        Returns:
            The newly selected app
        """
        with self._lock:
            self._iterations = 0
            count = len(self._apps)
            candidates: list[int] = []

            for step in range(1, count + 1):
                index = (self._current_index + step) % count
                app = self._apps[index]
                logger.debug("next app", extra={"app": app.name})

                self._reset_app(app)
                if app.is_ready:
                    self._current_index = index
                    return app

                candidates.append(index)

            self._current_index = self._choose_fallback(candidates)
            app = self.current_app
            logger.warning("No app is ready, falling back", extra={"app": app.name})
            return app

    def _reset_app(self, app: BaseApp) -> None:
        try:
            app.reset()
        except Exception:
            logger.exception("Reset failed", extra={"app": app.name})

    def _choose_fallback(self, candidates: list[int]) -> int:
        aged = [
            (age, index)
            for index in candidates
            if (age := self._apps[index].cache_age_minutes) is not None
        ]
        if aged:
            return min(aged)[1]
        return candidates[0]

    # ------------------------------------------------------------------
    # Remote commands
    # ------------------------------------------------------------------

    def handle_command(self, command: str | None, payload: str) -> None:
        """Dispatch a control command. Unknown input is ignored."""
        if command is None:
            return

        logger.debug("server cmd %s %s", command, payload)

        try:
            if command == "power":
                self._handle_power(payload)
        except Exception:
            logger.exception("Command %s failed", command)

    def _handle_power(self, payload: str) -> None:
        if payload not in ("on", "off"):
            return

        power_on = payload == "on"
        logger.debug("switch power-status %s", power_on)

        self._surface.set_power(power_on)
        if power_on:
            self.run()
        else:
            self.stop()
