"""Interfaces of the collaborators driven by the playback session."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from aiomotherearth.errors import MotherEarthError
from aiomotherearth.models import PlaybackState


class Transport(Protocol):
    """
    Control surface of the audio engine rendering the stream.

    Every command may raise; the session reports failures as TransportError.
    """

    async def stop(self) -> None:
        """Stop playback."""

    async def clear(self) -> None:
        """Clear the play queue."""

    async def enqueue(self, url: str) -> None:
        """Append a stream URL to the play queue."""

    async def play(self) -> None:
        """Start playing the queue."""

    async def set_buffer_size(self, size_kb: int) -> None:
        """Resize the read-ahead audio buffer."""


# Callback invoked with every published playback state.
StateCallback = Callable[[PlaybackState], None]

# Callback invoked with user-visible failures (retry exhaustion).
ErrorCallback = Callable[[MotherEarthError], None]
