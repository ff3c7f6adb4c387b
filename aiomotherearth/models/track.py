"""
Now playing models.

This module contains the subset of the AzuraCast "now playing" payload that the
live metadata feed carries, and the canonical track event every payload is
reduced to. Provider models are lenient: every field is optional, unknown fields
are ignored, and scalar fields are kept as sent so the decoder can map missing
or mistyped values to defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from mashumaro.mixins.orjson import DataClassORJSONMixin

DEFAULT_ALBUMART = (
    "/albumart?sourceicon=music_service/motherearthradio/mer-logo-cube-bold-1x 512.png"
)
"""Artwork shown when a song has no cover."""


# Provider payload: np.now_playing.song
@dataclass
class Song(DataClassORJSONMixin):
    """Song object of a now playing payload."""

    title: Any = None
    artist: Any = None
    album: Any = None
    art: Any = None
    """Absolute URL of the cover art."""

    @property
    def populated(self) -> bool:
        """Return True if the song carries a title or an artist."""
        return bool(self.title or self.artist)


@dataclass
class NowPlaying(DataClassORJSONMixin):
    """The now_playing object of a station payload."""

    song: Song | None = None
    duration: Any = None
    """Song duration in seconds."""
    elapsed: Any = None
    """Seconds elapsed since the song started."""


@dataclass
class StationNowPlaying(DataClassORJSONMixin):
    """Station payload ('np') as broadcast on the live feed."""

    now_playing: NowPlaying | None = None


@dataclass(frozen=True, slots=True)
class TrackEvent:
    """Canonical 'track changed' event."""

    title: str
    artist: str
    album: str = ""
    artwork_url: str = DEFAULT_ALBUMART
    duration_s: float = 0.0
    """Duration in seconds, 0 if unknown."""
    elapsed_s: float = 0.0
    """Elapsed seconds at broadcast time, 0 if unknown."""

    def __post_init__(self) -> None:
        """Validate the provided timing values."""
        if self.duration_s < 0:
            raise ValueError(f"duration_s must not be negative, got {self.duration_s}")
        if self.elapsed_s < 0:
            raise ValueError(f"elapsed_s must not be negative, got {self.elapsed_s}")
