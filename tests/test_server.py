"""Tests for the server wiring (smartdisplay/__main__.py)."""

import io
import sys
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image
from smartdisplay import __main__ as entry
from smartdisplay.__main__ import FRAME_TOPIC, POWER_TOPIC, SENSOR_REQUEST_TOPIC, SENSOR_TOPIC, SmartDisplayServer
from smartdisplay.core.config import ConfigManager
from smartdisplay.core.errors import TransportError
from smartdisplay.control.mqtt import SERVER_OUT_TOPIC, ControlChannel
from smartdisplay.core.config import Config


@pytest.fixture
def channel():
    channel = MagicMock(spec=ControlChannel)
    channel.is_connected.return_value = True
    return channel


@pytest.fixture
def server(channel):
    config = Config.model_validate({"scheduler": {"tick_interval": 60}})
    server = SmartDisplayServer(config, channel=channel)
    yield server
    server.shutdown()


def published(channel, topic):
    return [c for c in channel.publish.call_args_list if c.args[0] == topic]


def test_apps_in_rotation_order(server):
    assert [app.name for app in server.apps] == ["time", "room-weather", "city-weather"]


def test_commands_are_routed_to_scheduler(server, channel):
    assert channel.on_command == server.scheduler.handle_command


def test_run_connects_and_renders_first_app(server, channel):
    server.run()

    channel.connect.assert_called_once()
    channel.subscribe.assert_called_once()
    assert channel.subscribe.call_args.args[0] == SENSOR_TOPIC
    assert server.scheduler.is_running is True

    frames = published(channel, FRAME_TOPIC)
    assert len(frames) == 1
    image = Image.open(io.BytesIO(frames[0].args[1]))
    assert image.format == "PNG"
    assert image.size == (32, 8)


def test_started_is_announced_once_connected(server, channel):
    server.run()
    assert published(channel, SERVER_OUT_TOPIC) == []

    channel.on_connected()

    assert published(channel, SERVER_OUT_TOPIC)[0].args[1] == "started"


def test_power_command_is_forwarded_with_retain(server, channel):
    server.run()

    server.scheduler.handle_command("power", "off")

    power = published(channel, POWER_TOPIC)
    assert power[-1].args[1] == "off"
    assert power[-1].kwargs["retain"] is True
    assert server.scheduler.is_running is False


def test_sensor_messages_feed_room_weather(server, channel):
    server.run()
    handler = channel.subscribe.call_args.args[1]

    handler('{"temperature": 23.5}')

    room = server.apps[1]
    assert room.is_ready is True
    assert room.data.value.temperature == 23.5


def test_stale_room_weather_requests_a_reading(server, channel):
    server.apps[1].reset()

    assert published(channel, SENSOR_REQUEST_TOPIC)[0].args[1] == "refresh"


def test_shutdown_disconnects_once(server, channel):
    server.run()

    server.shutdown()
    server.shutdown()

    channel.disconnect.assert_called_once()
    assert server.scheduler.is_running is False


def test_run_stops_refresh_loop_when_mqtt_cannot_start(server, channel):
    channel.connect.side_effect = TransportError("Could not start MQTT client")

    with pytest.raises(TransportError):
        server.run()

    assert server.scheduler.is_running is False
    assert server._refresh_loop.is_running is False


# ============================================================================
# main()
# ============================================================================


@pytest.fixture
def run_main(monkeypatch):
    """Run main() with the given config file, leaving pytest's logging alone."""
    monkeypatch.setattr(entry, "setup_logging", lambda **kwargs: None)
    monkeypatch.setattr(entry.signal, "signal", lambda *args: None)
    ConfigManager.reset_instance()

    def _run(config_path):
        monkeypatch.setattr(sys, "argv", ["smart-display", "--config", str(config_path)])
        return entry.main()

    yield _run
    ConfigManager.reset_instance()


def test_main_exits_with_error_on_invalid_config(run_main, tmp_path, caplog):
    path = tmp_path / "config.yaml"
    path.write_text("mqtt:\n  server: http://broker.example:1883\n")

    assert run_main(path) == 1
    assert "Unsupported MQTT scheme: http" in caplog.text


@patch("paho.mqtt.client.Client")
def test_main_exits_with_error_when_mqtt_cannot_start(mock_client_class, run_main, tmp_path, caplog):
    mock_client_class.return_value.connect_async.side_effect = ValueError("Invalid host")

    assert run_main(tmp_path / "config.yaml") == 1
    assert "Cannot reach MQTT broker" in caplog.text
