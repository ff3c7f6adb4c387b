"""Exceptions raised by aiomotherearth."""

from __future__ import annotations


class MotherEarthError(Exception):
    """Base class for all aiomotherearth errors."""


class UnknownChannelError(MotherEarthError, LookupError):
    """Requested channel or quality tier does not exist."""

    def __init__(self, channel_key: str, quality: str | None = None) -> None:
        """Initialize with the rejected channel key and tier."""
        self.channel_key = channel_key
        self.quality = quality
        if quality is None:
            message = f"Unknown channel '{channel_key}'"
        else:
            message = f"No stream for channel '{channel_key}' with quality '{quality}'"
        super().__init__(message)


class TransportError(MotherEarthError):
    """A transport command failed."""

    def __init__(self, command: str, message: str) -> None:
        """Initialize with the failed command name."""
        self.command = command
        super().__init__(f"Transport command '{command}' failed: {message}")


class ConnectionFailedError(MotherEarthError):
    """The metadata feed answered with an unexpected HTTP status."""

    def __init__(self, status: int) -> None:
        """Initialize with the HTTP status."""
        self.status = status
        super().__init__(f"Unexpected HTTP status {status}")


class RetryExhaustedError(MotherEarthError):
    """The metadata feed could not be reached within the retry budget."""

    def __init__(self, topic: str, attempts: int, last_error: str | None = None) -> None:
        """Initialize with the topic, the number of attempts and the last failure."""
        self.topic = topic
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Live metadata for {topic} unavailable after {attempts} attempts"
            + (f" ({last_error})" if last_error else "")
        )
