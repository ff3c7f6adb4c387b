"""State objects owned by the session and the connection manager."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin
from mashumaro.types import Alias

from .track import DEFAULT_ALBUMART
from .types import ConnectionStateType, PlaybackStatus, QualityTier

SERVICE_NAME = "motherearthradio"


@dataclass
class PlaybackState(DataClassORJSONMixin):
    """
    Playback state pushed to the front-end.

    Always replaced as a whole, never updated field by field.
    """

    status: PlaybackStatus
    channel_key: str
    quality: QualityTier
    title: str
    artist: str = ""
    album: str = ""
    albumart: str = DEFAULT_ALBUMART
    uri: str = ""
    seek: int = 0
    """Position in milliseconds."""
    duration: int = 0
    """Duration in milliseconds, 0 for unknown."""
    samplerate: str = ""
    """Human readable sample rate (e.g. '192 kHz')."""
    bitdepth: str = ""
    """Human readable bit depth (e.g. '24 bit'), empty for lossy streams."""
    track_type: Annotated[str, Alias("trackType")] = "flac"
    service: str = SERVICE_NAME
    type: str = "webradio"
    channels: int = 2
    streaming: bool = True
    disable_ui_controls: Annotated[bool, Alias("disableUiControls")] = True

    def __post_init__(self) -> None:
        """Validate field values."""
        if self.seek < 0:
            raise ValueError(f"seek must not be negative, got {self.seek}")
        if self.duration < 0:
            raise ValueError(f"duration must not be negative, got {self.duration}")

    class Config(BaseConfig):
        """Config for serializing the state for the front-end."""

        serialize_by_alias = True


@dataclass(slots=True)
class ConnectionState:
    """Snapshot of a push connection."""

    state: ConnectionStateType = ConnectionStateType.IDLE
    attempt_count: int = 0
    """Consecutive failed attempts in the current failure streak."""
    last_error: str | None = None

    @property
    def is_connected(self) -> bool:
        """Return True while the event stream is established."""
        return self.state is ConnectionStateType.STREAMING
