"""Channel description models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .types import QualityTier


@dataclass(frozen=True)
class ChannelSpec:
    """A Mother Earth channel and its playable streams."""

    key: str
    """Identifier used in track URIs (e.g. 'radio')."""
    name: str
    """Display name."""
    topic: str
    """Subscription topic of the live metadata feed, 'station:<shortcode>'."""
    streams: Mapping[QualityTier, str] = field(default_factory=dict)
    """Stream URL per quality tier."""

    def __post_init__(self) -> None:
        """Validate and freeze the stream table."""
        if not self.topic.startswith("station:"):
            raise ValueError(f"topic must start with 'station:', got {self.topic!r}")
        object.__setattr__(self, "streams", MappingProxyType(dict(self.streams)))

