"""Smart Display Server entry point.

Usage:
    python -m smartdisplay [options]

Options:
    --config PATH     Path to config file (default: /etc/smart-display/config.yaml)
    --debug           Enable debug logging
"""

import argparse
import io
import signal
import sys
import threading
from pathlib import Path

from PIL import Image

from . import __version__
from .apps.base import BaseApp
from .apps.city_weather import CityWeatherApp
from .apps.clock import ClockApp
from .apps.room_weather import RoomWeatherApp
from .apps.scheduler import AppScheduler
from .control.mqtt import CLIENT_IN_PREFIX, CLIENT_OUT_PREFIX, SERVER_OUT_TOPIC, ControlChannel
from .core.config import DEFAULT_CONFIG_PATH, Config, ConfigManager
from .core.errors import ConfigurationError, TransportError
from .core.logging import get_logger, setup_logging
from .core.threading import BackgroundLoop
from .display.surface import DisplaySurface

logger = get_logger(__name__)

FRAME_TOPIC = CLIENT_IN_PREFIX + "frame"
POWER_TOPIC = CLIENT_IN_PREFIX + "power"
SENSOR_REQUEST_TOPIC = CLIENT_IN_PREFIX + "sensor"
SENSOR_TOPIC = CLIENT_OUT_PREFIX + "sensor"


class SmartDisplayServer:
    """Main application coordinator.

    Wires config, the MQTT control channel, the display surface, the apps
    and the scheduler, and owns their lifecycle.
    """

    def __init__(self, config: Config, channel: ControlChannel | None = None) -> None:
        """Initialize the server.

        Args:
            config: Validated configuration
            channel: Control channel override (tests)
        """
        self._config = config
        self._shutdown_event = threading.Event()
        self._running = False

        self._channel = channel or ControlChannel(config.mqtt)
        self._refresh_loop = BackgroundLoop()
        self._surface = DisplaySurface(
            width=config.display.width,
            height=config.display.height,
            on_frame_ready=self._publish_frame,
            on_power=self._publish_power,
            brightness=config.display.brightness,
        )

        self._room_weather = RoomWeatherApp(
            config.apps.room_weather,
            request_refresh=self._request_sensor_reading,
        )
        self._apps: list[BaseApp] = [
            ClockApp(format_24h=config.apps.clock.format_24h),
            self._room_weather,
            CityWeatherApp(config.apps.city_weather, spawn=self._refresh_loop.submit),
        ]

        self._scheduler = AppScheduler(
            self._apps,
            self._surface,
            is_connected=self._channel.is_connected,
            tick_interval=config.scheduler.tick_interval,
            hold_ticks=config.scheduler.hold_ticks,
        )
        self._channel.on_command = self._scheduler.handle_command

    @property
    def scheduler(self) -> AppScheduler:
        return self._scheduler

    @property
    def apps(self) -> list[BaseApp]:
        return list(self._apps)

    def run(self) -> None:
        """Connect, announce and start the app rotation.

        Raises:
            TransportError: If the MQTT client cannot be started
        """
        logger.info("Starting smart display server")

        self._refresh_loop.start()
        self._channel.subscribe(SENSOR_TOPIC, self._room_weather.handle_sensor_payload)
        self._channel.on_connected = self._announce
        try:
            self._channel.connect()
        except TransportError:
            self._refresh_loop.stop()
            raise

        self._scheduler.run()
        self._running = True
        logger.info("Smart display server started with %d apps", len(self._apps))

    def shutdown(self) -> None:
        """Stop all components. Safe to call more than once."""
        if not self._running:
            self._shutdown_event.set()
            return

        logger.info("shutdown")
        self._running = False

        self._scheduler.shutdown()
        self._refresh_loop.stop()
        self._channel.disconnect()

        self._shutdown_event.set()
        logger.info("Smart display server stopped")

    def wait_for_shutdown(self) -> None:
        """Block until shutdown() is called."""
        self._shutdown_event.wait()

    def _announce(self) -> None:
        self._channel.publish(SERVER_OUT_TOPIC, "started")

    def _publish_frame(self, image: Image.Image) -> None:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        self._channel.publish(FRAME_TOPIC, buffer.getvalue())

    def _publish_power(self, on: bool) -> None:
        self._channel.publish(POWER_TOPIC, "on" if on else "off", retain=True)

    def _request_sensor_reading(self) -> None:
        self._channel.publish(SENSOR_REQUEST_TOPIC, "refresh")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Smart Display Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Path to config file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args()

    setup_logging(level="DEBUG" if args.debug else "INFO")
    logger.info("Smart Display Server v%s", __version__)

    try:
        config = ConfigManager.get_instance(args.config).get()
    except ConfigurationError as e:
        logger.critical("Cannot start: %s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error loading config: %s", e)
        return 1

    setup_logging(
        level="DEBUG" if args.debug else config.logging.level,
        log_format=config.logging.format,
        log_file=config.logging.file,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )

    server = SmartDisplayServer(config)

    def signal_handler(sig, frame):
        logger.info("Received signal %s, shutting down...", sig)
        server.shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        server.run()
        server.wait_for_shutdown()
        return 0

    except TransportError as e:
        logger.critical("Cannot reach MQTT broker: %s", e)
        server.shutdown()
        return 1

    except Exception as e:
        logger.exception("Fatal error: %s", e)
        server.shutdown()
        return 1


if __name__ == "__main__":
    sys.exit(main())
