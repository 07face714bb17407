"""Exception types raised by the smart display server.

Every error carries a short message plus a ``details`` mapping that ends up
in the log line, e.g. ``City not found (location=Berlin, status=404)``.
"""

from typing import Any


class SmartDisplayError(Exception):
    """Base class for errors raised by this package.

    Attributes:
        message: What went wrong
        details: Context rendered after the message
        cause: Underlying exception, if any
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"


class ConfigurationError(SmartDisplayError):
    """The config file exists but its settings are invalid.

    Fatal at startup: ``main()`` exits with status 1.
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        problems: list[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if problems:
            details["problems"] = "; ".join(problems)
        super().__init__(message, details, cause)
        self.path = path
        self.problems = problems or []


class TransportError(SmartDisplayError):
    """The MQTT control channel could not be set up or used."""

    def __init__(self, message: str, topic: str | None = None, cause: Exception | None = None, **details: Any) -> None:
        if topic is not None:
            details = {"topic": topic, **details}
        super().__init__(message, details, cause)
        self.topic = topic


class APIError(SmartDisplayError):
    """OpenWeatherMap answered, but not with usable weather."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        details = dict(details or {})
        if status_code is not None:
            details["status"] = status_code
        super().__init__(message, details, cause)
        self.status_code = status_code


class RateLimitError(APIError):
    """OpenWeatherMap returned 429; ``retry_after`` is in seconds when known."""

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        details = {"retry_after": retry_after} if retry_after is not None else None
        super().__init__(message, status_code=429, details=details)
        self.retry_after = retry_after


class AppError(SmartDisplayError):
    """An app received data it cannot display (e.g. a bad sensor reading)."""
