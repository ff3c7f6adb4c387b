"""Playback session tying transport, metadata feed and front-end together."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from functools import partial

from aiohttp import ClientSession

from aiomotherearth.channels import (
    DEFAULT_CHANNEL,
    SSE_URL,
    bit_depth_label,
    build_uri,
    parse_uri,
    quality_label,
    resolve_stream,
    sample_rate_label,
    track_type,
)
from aiomotherearth.errors import MotherEarthError, RetryExhaustedError, TransportError
from aiomotherearth.models import (
    DEFAULT_ALBUMART,
    DEFAULT_QUALITY,
    ChannelSpec,
    MetadataSettings,
    PlaybackState,
    PlaybackStatus,
    QualityTier,
    SessionStateType,
    TrackEvent,
)

from .connection import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_RECONNECT_BASE_DELAY,
    ConnectionManager,
)
from .scheduler import HIGH_LATENCY_OFFSET_MS, DelayScheduler, effective_delay_ms
from .transport import ErrorCallback, StateCallback, Transport

logger = logging.getLogger(__name__)

PROVISIONAL_TITLE = "Connecting…"


class PlaybackSession:
    """
    Plays Mother Earth channels and keeps the displayed metadata in sync.

    The session owns the only PlaybackState, the metadata connection and the
    delay scheduler. Each play() or stop() starts a new generation: the
    previous connection is torn down and events scheduled by it are dropped.

    Must be created within an async context.
    """

    _state: PlaybackState
    """Last published state."""
    _session_state: SessionStateType = SessionStateType.STOPPED
    _generation: int = 0
    """Incremented whenever the current channel is abandoned."""
    _channel: ChannelSpec | None = None
    _quality: QualityTier = DEFAULT_QUALITY
    _last_uri: str | None = None
    """URI of the last played stream, used by resume()."""

    def __init__(
        self,
        transport: Transport,
        *,
        settings: MetadataSettings | None = None,
        session: ClientSession | None = None,
        sse_url: str = SSE_URL,
        reconnect_base_delay: float = DEFAULT_RECONNECT_BASE_DELAY,
        max_reconnect_attempts: int = DEFAULT_MAX_ATTEMPTS,
        read_timeout: float | None = DEFAULT_READ_TIMEOUT,
        high_latency_offset_ms: int = HIGH_LATENCY_OFFSET_MS,
    ) -> None:
        """
        Create a playback session.

        Args:
            transport: Audio engine receiving the stream commands.
            settings: Metadata delay settings, defaults to no delay.
            session: Optional aiohttp ClientSession for the metadata feed. If None,
                a session is created and closed by close().
            sse_url: Endpoint of the live metadata feed.
            reconnect_base_delay: Reconnect delay unit in seconds.
            max_reconnect_attempts: Failures after which live metadata is given up.
            read_timeout: Seconds of feed silence before reconnecting.
            high_latency_offset_ms: Extra delay while high latency mode is on.
        """
        self._transport = transport
        self._settings = settings or MetadataSettings()
        self._high_latency_offset_ms = high_latency_offset_ms
        self._lock = asyncio.Lock()
        self._connection = ConnectionManager(
            self._handle_event,
            on_exhausted=self._handle_exhausted,
            session=session,
            sse_url=sse_url,
            base_delay=reconnect_base_delay,
            max_attempts=max_reconnect_attempts,
            read_timeout=read_timeout,
        )
        self._scheduler: DelayScheduler[int] = DelayScheduler(
            self._apply_event, self._is_current
        )
        self._state = PlaybackState(
            status=PlaybackStatus.STOP,
            channel_key=DEFAULT_CHANNEL,
            quality=DEFAULT_QUALITY,
            title="",
        )
        self._state_callbacks: list[StateCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

    @property
    def state(self) -> PlaybackState:
        """Return the last published playback state."""
        return self._state

    @property
    def session_state(self) -> SessionStateType:
        """Return the session lifecycle state."""
        return self._session_state

    @property
    def settings(self) -> MetadataSettings:
        """Return the active metadata settings."""
        return self._settings

    @property
    def connection(self) -> ConnectionManager:
        """Return the metadata connection manager."""
        return self._connection

    @property
    def last_uri(self) -> str | None:
        """Return the URI of the last played stream."""
        return self._last_uri

    @property
    def metadata_delay_ms(self) -> int:
        """Return the delay applied to incoming metadata."""
        return effective_delay_ms(
            self._settings.manual_delay_ms,
            self._settings.high_latency_mode,
            self._high_latency_offset_ms,
        )

    def add_state_listener(self, callback: StateCallback) -> Callable[[], None]:
        """Add a listener receiving every published playback state.

        Returns:
            A function that removes this listener when called.
        """
        self._state_callbacks.append(callback)
        return lambda: (
            self._state_callbacks.remove(callback)
            if callback in self._state_callbacks
            else None
        )

    def add_error_listener(self, callback: ErrorCallback) -> Callable[[], None]:
        """Add a listener for failures that should be shown to the user.

        Returns:
            A function that removes this listener when called.
        """
        self._error_callbacks.append(callback)
        return lambda: (
            self._error_callbacks.remove(callback)
            if callback in self._error_callbacks
            else None
        )

    async def play(self, channel_key: str, quality: QualityTier | str | None = None) -> None:
        """
        Play a channel and start following its live metadata.

        Returns once the transport accepted the stream; metadata arrives later.

        Raises:
            UnknownChannelError: If the channel or quality does not exist. Nothing
                is stopped or started in that case.
            TransportError: If a transport command failed. Live metadata is not
                started and the session is stopped.
        """
        channel, tier, url = resolve_stream(channel_key, quality)
        async with self._lock:
            await self._teardown()
            self._channel = channel
            self._quality = tier
            self._last_uri = build_uri(channel.key, tier)
            self._session_state = SessionStateType.STARTING
            logger.info("Playing %s - %s: %s", channel.name, quality_label(tier), url)

            try:
                await self._run_transport_sequence(url)
            except TransportError:
                self._session_state = SessionStateType.STOPPED
                self._publish(dataclasses.replace(self._state, status=PlaybackStatus.STOP))
                raise

            self._publish(self._build_state(PlaybackStatus.PLAY, title=PROVISIONAL_TITLE))
            self._session_state = SessionStateType.PLAYING
            await self._connection.start(channel.topic)

    async def play_uri(self, uri: str) -> None:
        """Play a track URI of the form 'motherearthradio/<channel>/<quality>'."""
        channel_key, quality = parse_uri(uri)
        await self.play(channel_key, quality)

    async def stop(self) -> None:
        """
        Stop playback and live metadata.

        Raises:
            TransportError: If the transport failed to stop.
        """
        async with self._lock:
            await self._teardown()
            self._session_state = SessionStateType.STOPPED
            self._publish(dataclasses.replace(self._state, status=PlaybackStatus.STOP))
            await self._transport_command("stop", self._transport.stop)

    async def pause(self) -> None:
        """Pause a live stream, which is the same as stopping it."""
        await self.stop()

    async def resume(self) -> None:
        """Restart the last played stream, if any."""
        if self._last_uri is None:
            logger.debug("Nothing to resume")
            return
        await self.play_uri(self._last_uri)

    async def update_settings(self, settings: MetadataSettings) -> None:
        """
        Apply new metadata settings.

        Switching high latency mode also resizes the transport buffer. Events
        already waiting keep the delay they were scheduled with.
        """
        previous, self._settings = self._settings, settings
        logger.info(
            "Metadata delay set to %d ms (high latency mode %s)",
            self.metadata_delay_ms,
            "on" if settings.high_latency_mode else "off",
        )
        if settings.high_latency_mode != previous.high_latency_mode:
            logger.info("Setting transport buffer to %d KB", settings.buffer_size_kb)
            await self._transport_command(
                "set_buffer_size",
                partial(self._transport.set_buffer_size, settings.buffer_size_kb),
            )

    async def close(self) -> None:
        """Stop live metadata and release resources without touching the transport."""
        async with self._lock:
            await self._teardown()
            self._session_state = SessionStateType.STOPPED
            await self._connection.close()

    async def _teardown(self) -> None:
        self._generation += 1
        await self._connection.stop()
        self._scheduler.cancel_all()

    async def _run_transport_sequence(self, url: str) -> None:
        await self._transport_command("stop", self._transport.stop)
        await self._transport_command("clear", self._transport.clear)
        await self._transport_command("enqueue", partial(self._transport.enqueue, url))
        await self._transport_command("play", self._transport.play)

    async def _transport_command(
        self, name: str, command: Callable[[], Awaitable[None]]
    ) -> None:
        try:
            await command()
        except Exception as err:
            logger.error("Transport command %s failed: %s", name, err)
            raise TransportError(name, str(err) or type(err).__name__) from err

    def _is_current(self, generation: int) -> bool:
        return (
            generation == self._generation
            and self._session_state is SessionStateType.PLAYING
        )

    def _handle_event(self, event: TrackEvent) -> None:
        if self._session_state is not SessionStateType.PLAYING:
            logger.debug("Ignoring metadata while %s", self._session_state.value)
            return
        self._scheduler.schedule(event, self.metadata_delay_ms, self._generation)

    def _apply_event(self, event: TrackEvent) -> None:
        assert self._channel is not None
        self._publish(
            self._build_state(
                PlaybackStatus.PLAY,
                title=event.title or self._channel.name,
                artist=event.artist,
                album=event.album,
                albumart=event.artwork_url,
                seek=round(event.elapsed_s * 1000),
                duration=round(event.duration_s * 1000),
            )
        )
        logger.info("Metadata: %s - %s", event.artist, event.title)

    def _handle_exhausted(self, error: RetryExhaustedError) -> None:
        # Audio keeps playing, only live metadata is lost.
        self._notify_error(error)

    def _build_state(
        self,
        status: PlaybackStatus,
        *,
        title: str,
        artist: str = "",
        album: str = "",
        albumart: str = DEFAULT_ALBUMART,
        seek: int = 0,
        duration: int = 0,
    ) -> PlaybackState:
        assert self._channel is not None
        return PlaybackState(
            status=status,
            channel_key=self._channel.key,
            quality=self._quality,
            title=title,
            artist=artist,
            album=album,
            uri=self._last_uri or "",
            seek=seek,
            duration=duration,
            samplerate=sample_rate_label(self._quality),
            bitdepth=bit_depth_label(self._quality),
            albumart=albumart,
            track_type=track_type(self._quality),
        )

    def _publish(self, state: PlaybackState) -> None:
        self._state = state
        for callback in list(self._state_callbacks):
            try:
                callback(state)
            except Exception:
                logger.exception("Error in state callback %s", callback)

    def _notify_error(self, error: MotherEarthError) -> None:
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception:
                logger.exception("Error in error callback %s", callback)
