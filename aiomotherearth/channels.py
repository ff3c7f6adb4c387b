"""Static registry of the Mother Earth channels and their streams."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from aiomotherearth.errors import UnknownChannelError
from aiomotherearth.models import DEFAULT_QUALITY, ChannelSpec, QualityTier

logger = logging.getLogger(__name__)

URI_PREFIX = "motherearthradio"
DEFAULT_CHANNEL = "radio"

STREAM_BASE_URL = "https://motherearth.streamserver24.com/listen"
SSE_URL = "https://motherearth.streamserver24.com/api/live/nowplaying/sse"


def _channel(key: str, name: str, shortcode: str, stream_name: str) -> ChannelSpec:
    base = f"{STREAM_BASE_URL}/{shortcode}/{stream_name}"
    return ChannelSpec(
        key=key,
        name=name,
        topic=f"station:{shortcode}",
        streams={
            QualityTier.FLAC_192: f"{base}.flac192",
            QualityTier.FLAC_96: f"{base}.flac96",
            QualityTier.AAC: f"{base}.aac",
        },
    )


CHANNELS: Mapping[str, ChannelSpec] = MappingProxyType(
    {
        channel.key: channel
        for channel in (
            _channel("radio", "Mother Earth Radio", "motherearth", "motherearth"),
            _channel(
                "instrumental",
                "Mother Earth Instrumental",
                "motherearth_instrumental",
                "motherearth.instrumental",
            ),
            _channel(
                "classical",
                "Mother Earth Classical",
                "motherearth_classical",
                "motherearth.classical",
            ),
            _channel("jazz", "Mother Earth Jazz", "motherearth_jazz", "motherearth.jazz"),
        )
    }
)

_QUALITY_LABELS = {
    QualityTier.FLAC_192: "FLAC 192kHz/24bit",
    QualityTier.FLAC_96: "FLAC 96kHz/24bit",
    QualityTier.AAC: "AAC 96kHz",
}
_SAMPLE_RATES = {
    QualityTier.FLAC_192: "192 kHz",
    QualityTier.FLAC_96: "96 kHz",
    QualityTier.AAC: "96 kHz",
}
_BIT_DEPTHS = {
    QualityTier.FLAC_192: "24 bit",
    QualityTier.FLAC_96: "24 bit",
}


def get_channel(channel_key: str) -> ChannelSpec:
    """Return the channel for a key, raising UnknownChannelError if absent."""
    try:
        return CHANNELS[channel_key]
    except KeyError:
        raise UnknownChannelError(channel_key) from None


def resolve_stream(
    channel_key: str, quality: QualityTier | str | None = None
) -> tuple[ChannelSpec, QualityTier, str]:
    """
    Return the channel, the effective quality tier and the stream URL.

    A tier that is unknown or that the channel does not offer falls back to
    the default tier.

    Raises:
        UnknownChannelError: If the channel is unknown, or the channel has
            neither the tier nor a default.
    """
    channel = get_channel(channel_key)
    if quality is None:
        tier = DEFAULT_QUALITY
    elif isinstance(quality, QualityTier):
        tier = quality
    else:
        try:
            tier = QualityTier(quality)
        except ValueError:
            logger.debug("Unknown quality %s, using %s", quality, DEFAULT_QUALITY.value)
            tier = DEFAULT_QUALITY
    if tier not in channel.streams:
        tier = DEFAULT_QUALITY
    url = channel.streams.get(tier)
    if not url:
        raise UnknownChannelError(channel_key, tier.value)
    return channel, tier, url


def resolve_stream_url(channel_key: str, quality: QualityTier | str | None = None) -> str:
    """Return the stream URL for a channel and quality tier, see resolve_stream()."""
    return resolve_stream(channel_key, quality)[2]


def quality_label(quality: QualityTier) -> str:
    """Return the display label of a quality tier."""
    return _QUALITY_LABELS.get(quality, quality.value)


def sample_rate_label(quality: QualityTier) -> str:
    """Return the human readable sample rate of a quality tier."""
    return _SAMPLE_RATES.get(quality, "")


def bit_depth_label(quality: QualityTier) -> str:
    """Return the human readable bit depth of a quality tier (empty for AAC)."""
    return _BIT_DEPTHS.get(quality, "")


def track_type(quality: QualityTier) -> str:
    """Return the codec name shown by the front-end."""
    return "aac" if quality is QualityTier.AAC else "flac"


def build_uri(channel_key: str, quality: QualityTier = DEFAULT_QUALITY) -> str:
    """Return the track URI of a channel stream, 'motherearthradio/<channel>/<quality>'."""
    return f"{URI_PREFIX}/{channel_key}/{quality.value}"


def parse_uri(uri: str | None) -> tuple[str, QualityTier]:
    """
    Split a track URI into channel key and quality tier.

    Missing or unknown parts fall back to the default channel and tier.
    """
    if not uri:
        return DEFAULT_CHANNEL, DEFAULT_QUALITY
    parts = uri.split("/")
    if parts[0] != URI_PREFIX:
        logger.debug("Foreign uri %s, using default channel", uri)
        return DEFAULT_CHANNEL, DEFAULT_QUALITY
    channel_key = parts[1] if len(parts) >= 2 and parts[1] in CHANNELS else DEFAULT_CHANNEL
    quality = DEFAULT_QUALITY
    if len(parts) >= 3:
        try:
            quality = QualityTier(parts[2])
        except ValueError:
            logger.debug("Unknown quality in uri %s, using %s", uri, DEFAULT_QUALITY.value)
    return channel_key, quality
