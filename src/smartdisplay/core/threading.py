"""Threads and shared state for the scheduler and data refreshes.

Three threads touch app state: the scheduler's ticker, paho's network
thread (commands, sensor readings) and the refresh loop. The helpers here
are what they share.
"""

import asyncio
import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class LockedValue(Generic[T]):
    """A single value replaced atomically.

    Store immutable values (tuples, frozen dataclasses) so a reader can use
    what get() returned without holding the lock.
    """

    _value: T
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value


class StoppableThread(threading.Thread):
    """Daemon thread whose target receives the thread itself.

    The target sleeps with ``thread.wait(seconds)``, which returns True as
    soon as stop() is requested, so a loop can be written as:

        def tick_loop(thread):
            while not thread.wait(1.0):
                tick()
    """

    def __init__(self, target: Callable[..., Any], name: str | None = None) -> None:
        super().__init__(target=target, args=(self,), name=name, daemon=True)
        self._stop_event = threading.Event()

    def stop(self, timeout: float = 5.0) -> bool:
        """Signal the thread and wait up to timeout for it to end.

        From inside the thread this only signals; joining would deadlock.

        Returns:
            False if the thread was still alive after timeout
        """
        self._stop_event.set()
        if threading.current_thread() is self or not self.is_alive():
            return True

        self.join(timeout)
        if self.is_alive():
            logger.warning("Thread %s did not stop within %.1fs", self.name, timeout)
            return False
        return True

    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout; True means stop was requested."""
        return self._stop_event.wait(timeout)


class BackgroundLoop:
    """An asyncio event loop running on a daemon thread.

    Coroutines submitted here run detached from the caller: the returned
    future may be ignored, and nothing ever blocks on it.

    Usage:
        loop = BackgroundLoop()
        loop.start()
        loop.submit(app.refresh())
        loop.stop()
    """

    def __init__(self, name: str = "RefreshLoop") -> None:
        self._name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: StoppableThread | None = None
        self._ready = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """Check if the loop thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread (no-op when already running)."""
        with self._lock:
            if self._thread is not None:
                return

            self._ready.clear()
            self._thread = StoppableThread(target=self._run, name=self._name)
            self._thread.start()

        if not self._ready.wait(timeout=5.0):
            logger.warning("Background loop %s did not start in time", self._name)

    def _run(self, thread: StoppableThread) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        logger.debug("Background loop %s started", self._name)

        try:
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self._loop = None
            logger.debug("Background loop %s stopped", self._name)

    def submit(self, coro: Coroutine[Any, Any, T]) -> "concurrent.futures.Future[T]":
        """Schedule a coroutine on the loop.

        Args:
            coro: Coroutine to run

        Returns:
            Future for the result (callers may drop it)

        Raises:
            RuntimeError: If the loop has been stopped
        """
        if self._thread is None:
            self.start()

        loop = self._loop
        if loop is None or loop.is_closed():
            coro.close()
            raise RuntimeError(f"Background loop {self._name} is not running")

        return asyncio.run_coroutine_threadsafe(coro, loop)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and cancel pending coroutines."""
        with self._lock:
            thread = self._thread
            self._thread = None

        if thread is None:
            return

        loop = self._loop
        if loop is not None and not loop.is_closed():
            loop.call_soon_threadsafe(loop.stop)
        thread.stop(timeout=timeout)
