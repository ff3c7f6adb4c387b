"""Models for the Mother Earth Radio live metadata client."""

from __future__ import annotations

__all__ = [
    "BUFFER_SIZE_HIGH_LATENCY_KB",
    "BUFFER_SIZE_NORMAL_KB",
    "DEFAULT_ALBUMART",
    "DEFAULT_QUALITY",
    "ChannelSpec",
    "ConnectionState",
    "ConnectionStateType",
    "MetadataSettings",
    "NowPlaying",
    "PlaybackState",
    "PlaybackStatus",
    "QualityTier",
    "SessionStateType",
    "Song",
    "StationNowPlaying",
    "TrackEvent",
    "channel",
    "load_settings",
    "save_settings",
    "settings",
    "state",
    "track",
    "types",
]

from . import channel, settings, state, track, types
from .channel import ChannelSpec
from .settings import (
    BUFFER_SIZE_HIGH_LATENCY_KB,
    BUFFER_SIZE_NORMAL_KB,
    MetadataSettings,
    load_settings,
    save_settings,
)
from .state import ConnectionState, PlaybackState
from .track import DEFAULT_ALBUMART, NowPlaying, Song, StationNowPlaying, TrackEvent
from .types import (
    DEFAULT_QUALITY,
    ConnectionStateType,
    PlaybackStatus,
    QualityTier,
    SessionStateType,
)
