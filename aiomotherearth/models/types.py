"""Models for enum types used by aiomotherearth."""

from enum import Enum


class QualityTier(Enum):
    """Stream encodings offered for every channel."""

    FLAC_192 = "flac192"
    """High resolution lossless, FLAC 192kHz/24bit."""
    FLAC_96 = "flac96"
    """Standard lossless, FLAC 96kHz/24bit."""
    AAC = "aac"
    """Compressed, AAC 96kHz."""


DEFAULT_QUALITY = QualityTier.FLAC_192


class PlaybackStatus(Enum):
    """Enum for playback status values pushed to the front-end."""

    PLAY = "play"
    STOP = "stop"


class ConnectionStateType(Enum):
    """Lifecycle of the metadata push connection."""

    IDLE = "idle"
    """No connection and no reconnect pending."""
    CONNECTING = "connecting"
    """Request issued, waiting for the response headers."""
    STREAMING = "streaming"
    """HTTP 200 received, events are being read."""
    CLOSED = "closed"
    """Connection lost, a reconnect is scheduled."""
    ABANDONED = "abandoned"
    """
    Maximum reconnect attempts exhausted.

    Nothing happens until the connection is started again.
    """


class SessionStateType(Enum):
    """Enum for Playback Session states."""

    STOPPED = "stopped"
    STARTING = "starting"
    """Transport command sequence is in flight."""
    PLAYING = "playing"
