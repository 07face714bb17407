"""Control channel between the server and the display device."""

from .mqtt import (
    CLIENT_IN_PREFIX,
    CLIENT_OUT_PREFIX,
    SERVER_IN_PREFIX,
    SERVER_IN_TOPIC,
    SERVER_OUT_TOPIC,
    ControlChannel,
    get_last_topic_part,
)

__all__ = [
    "CLIENT_IN_PREFIX",
    "CLIENT_OUT_PREFIX",
    "SERVER_IN_PREFIX",
    "SERVER_IN_TOPIC",
    "SERVER_OUT_TOPIC",
    "ControlChannel",
    "get_last_topic_part",
]
