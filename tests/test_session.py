from __future__ import annotations

import asyncio

import pytest
from conftest import FeedServer, np_frame, wait_for

from aiomotherearth.channels import resolve_stream_url
from aiomotherearth.client import PROVISIONAL_TITLE, PlaybackSession
from aiomotherearth.errors import (
    MotherEarthError,
    RetryExhaustedError,
    TransportError,
    UnknownChannelError,
)
from aiomotherearth.models import (
    BUFFER_SIZE_HIGH_LATENCY_KB,
    BUFFER_SIZE_NORMAL_KB,
    MetadataSettings,
    PlaybackState,
    PlaybackStatus,
    QualityTier,
    SessionStateType,
)


class FakeTransport:
    """Records transport commands, optionally failing one of them."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[str] = []
        self.fail_on = fail_on

    async def _command(self, name: str) -> None:
        self.calls.append(name)
        await asyncio.sleep(0)
        if name.split(" ")[0] == self.fail_on:
            raise ConnectionError(f"{name} refused")

    async def stop(self) -> None:
        await self._command("stop")

    async def clear(self) -> None:
        await self._command("clear")

    async def enqueue(self, url: str) -> None:
        await self._command(f"enqueue {url}")

    async def play(self) -> None:
        await self._command("play")

    async def set_buffer_size(self, size_kb: int) -> None:
        await self._command(f"set_buffer_size {size_kb}")


def _session(
    feed_server: FeedServer, transport: FakeTransport, **kwargs: object
) -> PlaybackSession:
    return PlaybackSession(
        transport,
        sse_url=feed_server.url,
        reconnect_base_delay=0.01,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.asyncio
async def test_play_publishes_provisional_then_live_metadata(feed_server: FeedServer) -> None:
    feed_server.chunks = [np_frame("B", "A", duration=0, elapsed=0)]
    transport = FakeTransport()
    session = _session(feed_server, transport)
    states: list[PlaybackState] = []
    session.add_state_listener(states.append)
    try:
        await session.play("radio", "flac192")
        url = resolve_stream_url("radio", QualityTier.FLAC_192)
        assert transport.calls == ["stop", "clear", f"enqueue {url}", "play"]
        assert states[0].status is PlaybackStatus.PLAY
        assert states[0].title == PROVISIONAL_TITLE
        assert session.session_state is SessionStateType.PLAYING

        await wait_for(lambda: session.state.artist == "A")
        state = session.state
        assert state.status is PlaybackStatus.PLAY
        assert state.title == "B"
        assert state.channel_key == "radio"
        assert state.quality is QualityTier.FLAC_192
        assert state.uri == "motherearthradio/radio/flac192"
        assert state.samplerate == "192 kHz"
        assert state.bitdepth == "24 bit"
        assert state.streaming is True
        assert state.to_dict()["trackType"] == "flac"
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_metadata_is_delayed(feed_server: FeedServer) -> None:
    feed_server.chunks = [np_frame("B", "A", duration=200, elapsed=10)]
    session = _session(
        feed_server,
        FakeTransport(),
        settings=MetadataSettings(high_latency_mode=True),
        high_latency_offset_ms=300,
    )
    try:
        assert session.metadata_delay_ms == 300
        await session.play("jazz", QualityTier.AAC)
        await wait_for(lambda: session.connection.decoder.decoded_count == 1)
        assert session.state.title == PROVISIONAL_TITLE
        await wait_for(lambda: session.state.title == "B")
        assert session.state.seek == 10_000
        assert session.state.duration == 200_000
        assert session.state.bitdepth == ""
        assert session.state.track_type == "aac"
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_stop_discards_pending_metadata(feed_server: FeedServer) -> None:
    feed_server.chunks = [np_frame("B", "A")]
    transport = FakeTransport()
    session = _session(
        feed_server,
        transport,
        settings=MetadataSettings(high_latency_mode=True),
        high_latency_offset_ms=200,
    )
    states: list[PlaybackState] = []
    session.add_state_listener(states.append)
    try:
        await session.play("radio")
        await wait_for(lambda: session.connection.decoder.decoded_count == 1)
        await session.stop()
        assert transport.calls[-1] == "stop"
        assert session.state.status is PlaybackStatus.STOP
        assert not session.connection.running
        await asyncio.sleep(0.3)
        assert [state.title for state in states] == [PROVISIONAL_TITLE, PROVISIONAL_TITLE]
        assert states[-1].status is PlaybackStatus.STOP
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_switching_channel_discards_pending_metadata(feed_server: FeedServer) -> None:
    feed_server.chunks = [np_frame("Old", "A")]
    session = _session(
        feed_server,
        FakeTransport(),
        settings=MetadataSettings(high_latency_mode=True),
        high_latency_offset_ms=200,
    )
    titles: list[str] = []
    session.add_state_listener(lambda state: titles.append(state.title))
    try:
        await session.play("radio")
        await wait_for(lambda: session.connection.decoder.decoded_count == 1)
        feed_server.chunks = []
        await session.play("classical")
        await asyncio.sleep(0.3)
        assert "Old" not in titles
        assert session.state.channel_key == "classical"
        assert session.connection.topic == "station:motherearth_classical"
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_unknown_channel_makes_no_playback_attempt(feed_server: FeedServer) -> None:
    transport = FakeTransport()
    session = _session(feed_server, transport)
    try:
        with pytest.raises(UnknownChannelError):
            await session.play("polka")
        assert transport.calls == []
        assert feed_server.requests == 0
        assert session.session_state is SessionStateType.STOPPED
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_transport_failure_does_not_start_metadata(feed_server: FeedServer) -> None:
    transport = FakeTransport(fail_on="enqueue")
    session = _session(feed_server, transport)
    try:
        with pytest.raises(TransportError) as exc_info:
            await session.play("radio")
        assert exc_info.value.command == "enqueue"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert transport.calls[:2] == ["stop", "clear"]
        assert len(transport.calls) == 3
        assert not session.connection.running
        assert session.session_state is SessionStateType.STOPPED
        await asyncio.sleep(0.05)
        assert feed_server.requests == 0
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_retry_exhaustion_is_reported_and_playback_continues(
    feed_server: FeedServer,
) -> None:
    feed_server.always_fail = 503
    session = _session(feed_server, FakeTransport(), max_reconnect_attempts=2)
    errors: list[MotherEarthError] = []
    session.add_error_listener(errors.append)
    try:
        await session.play("instrumental")
        await wait_for(lambda: bool(errors))
        await asyncio.sleep(0.05)
        assert len(errors) == 1
        assert isinstance(errors[0], RetryExhaustedError)
        assert errors[0].topic == "station:motherearth_instrumental"
        assert session.session_state is SessionStateType.PLAYING
        assert session.state.status is PlaybackStatus.PLAY
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_pause_and_resume_restart_the_stream(feed_server: FeedServer) -> None:
    transport = FakeTransport()
    session = _session(feed_server, transport)
    try:
        await session.resume()
        assert transport.calls == []

        await session.play_uri("motherearthradio/jazz/flac96")
        assert session.last_uri == "motherearthradio/jazz/flac96"
        await session.pause()
        assert session.session_state is SessionStateType.STOPPED
        assert session.state.status is PlaybackStatus.STOP

        transport.calls.clear()
        await session.resume()
        assert transport.calls == [
            "stop",
            "clear",
            f"enqueue {resolve_stream_url('jazz', 'flac96')}",
            "play",
        ]
        assert session.state.channel_key == "jazz"
        assert session.state.quality is QualityTier.FLAC_96
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_update_settings_resizes_buffer_on_mode_change(feed_server: FeedServer) -> None:
    transport = FakeTransport()
    session = _session(feed_server, transport)
    try:
        await session.update_settings(MetadataSettings(api_delay=3))
        assert transport.calls == []
        assert session.metadata_delay_ms == 3000

        await session.update_settings(MetadataSettings(api_delay=3, high_latency_mode=True))
        assert transport.calls == [f"set_buffer_size {BUFFER_SIZE_HIGH_LATENCY_KB}"]
        assert session.metadata_delay_ms == 5000

        await session.update_settings(MetadataSettings())
        assert transport.calls[-1] == f"set_buffer_size {BUFFER_SIZE_NORMAL_KB}"
        assert session.settings == MetadataSettings()
    finally:
        await session.close()


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_playback(feed_server: FeedServer) -> None:
    def _broken(state: PlaybackState) -> None:
        raise RuntimeError("ui gone")

    session = _session(feed_server, FakeTransport())
    session.add_state_listener(_broken)
    remove = session.add_state_listener(lambda state: None)
    try:
        await session.play("radio")
        assert session.session_state is SessionStateType.PLAYING
        remove()
        remove()
    finally:
        await session.close()
