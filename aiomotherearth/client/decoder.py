"""Decoding of the live now playing feed into track events."""

from __future__ import annotations

import codecs
import logging
import math
from collections.abc import Iterator
from typing import Any

import orjson

from aiomotherearth.models import DEFAULT_ALBUMART, StationNowPlaying, TrackEvent

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"


class FrameBuffer:
    """
    Rolling buffer splitting an event stream into frames.

    Frames are separated by a blank line. Bytes are decoded incrementally, so
    a multi-byte character split across two chunks is handled, and the
    incomplete trailing frame is kept until the next chunk arrives.
    """

    def __init__(self) -> None:
        """Initialize an empty buffer."""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Return the buffered incomplete frame."""
        return self._buffer

    def feed(self, chunk: bytes | str) -> list[str]:
        """Append a chunk and return the frames completed by it, in order."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        *frames, self._buffer = self._buffer.split("\n\n")
        return [frame for frame in frames if frame.strip()]


def _as_seconds(value: Any) -> float:
    try:
        seconds = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    return seconds if math.isfinite(seconds) and seconds > 0 else 0.0


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _station_payloads(payload: Any) -> Iterator[Any]:
    """Yield the station objects contained in one decoded payload."""
    if not isinstance(payload, dict):
        return
    if "connect" in payload:
        connect = payload["connect"]
        if not isinstance(connect, dict):
            return
        # Initial state is either a flat array or per subscription history.
        initial = connect.get("data")
        if isinstance(initial, list):
            for item in initial:
                yield from _station_payloads(item)
        subs = connect.get("subs")
        if isinstance(subs, dict):
            for sub in subs.values():
                publications = sub.get("publications") if isinstance(sub, dict) else None
                if isinstance(publications, list):
                    for item in publications:
                        yield from _station_payloads(item)
        return
    if "pub" in payload:
        yield from _station_payloads(payload["pub"])
    elif "data" in payload:
        yield from _station_payloads(payload["data"])
    elif "np" in payload:
        yield payload["np"]
    elif "now_playing" in payload:
        yield payload


class EnvelopeDecoder:
    """
    Turn event stream frames into canonical track events.

    Frames without song data (keep-alives, handshakes without initial state)
    produce no event. Malformed payloads are dropped and counted, they never
    raise.
    """

    def __init__(self) -> None:
        """Initialize the decoder counters."""
        self.decoded_count = 0
        """Track events produced."""
        self.ignored_count = 0
        """Payloads without song data."""
        self.malformed_count = 0
        """Payloads that could not be parsed."""

    def decode(self, frame: str) -> list[TrackEvent]:
        """Decode one frame into zero or more track events."""
        data_lines = [
            line[len(DATA_PREFIX) :].removeprefix(" ")
            for line in frame.split("\n")
            if line.startswith(DATA_PREFIX)
        ]
        if not data_lines:
            return []
        raw = "\n".join(data_lines)
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError:
            self.malformed_count += 1
            logger.debug("Dropping malformed frame: %.200s", raw)
            return []

        events = []
        found = False
        for station in _station_payloads(payload):
            found = True
            event = self._decode_station(station)
            if event is not None:
                events.append(event)
        if not found:
            self.ignored_count += 1
            logger.debug("Ignoring frame without now playing data")
        self.decoded_count += len(events)
        return events

    def _decode_station(self, station: Any) -> TrackEvent | None:
        if not isinstance(station, dict):
            self.malformed_count += 1
            logger.debug("Dropping station payload of type %s", type(station).__name__)
            return None
        try:
            parsed = StationNowPlaying.from_dict(station)
        except Exception:  # noqa: BLE001
            self.malformed_count += 1
            logger.debug("Dropping unparsable station payload", exc_info=True)
            return None

        now_playing = parsed.now_playing
        if now_playing is None or now_playing.song is None or not now_playing.song.populated:
            # Keep-alive
            self.ignored_count += 1
            logger.debug("Ignoring payload without song data")
            return None

        song = now_playing.song
        return TrackEvent(
            title=_as_text(song.title),
            artist=_as_text(song.artist),
            album=_as_text(song.album),
            artwork_url=_as_text(song.art) or DEFAULT_ALBUMART,
            duration_s=_as_seconds(now_playing.duration),
            elapsed_s=_as_seconds(now_playing.elapsed),
        )
