"""Persistent connection to the live now playing feed."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from contextlib import suppress

import orjson
from aiohttp import ClientError, ClientSession, ClientTimeout

from aiomotherearth.channels import SSE_URL
from aiomotherearth.errors import ConnectionFailedError, RetryExhaustedError
from aiomotherearth.models import ConnectionState, ConnectionStateType, TrackEvent

from .decoder import EnvelopeDecoder, FrameBuffer

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_BASE_DELAY = 3.0
DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_READ_TIMEOUT = 90.0
"""Seconds without any byte (keep-alives included) before the stream is considered dead."""

# Callback invoked for every decoded track event, in arrival order.
EventCallback = Callable[[TrackEvent], None]

# Callback invoked once when the reconnect budget is exhausted.
ExhaustedCallback = Callable[[RetryExhaustedError], None]

# Callback invoked with a snapshot on every connection state change.
ConnectionStateCallback = Callable[[ConnectionState], None]


def subscription_params(topic: str) -> dict[str, str]:
    """Return the query parameters subscribing to a topic."""
    return {"cf_connect": orjson.dumps({"subs": {topic: {}}}).decode()}


class ConnectionManager:
    """
    Owns at most one event stream connection and keeps it alive.

    A lost connection is retried after a linearly growing delay
    (base_delay * attempt). After max_attempts consecutive failures the
    connection is abandoned until start() is called again.

    Must be created within an async context.
    """

    _task: asyncio.Task[None] | None = None
    """Background task running the connect and read loop."""
    _topic: str | None = None
    """Topic of the active connection."""

    def __init__(
        self,
        on_event: EventCallback,
        *,
        on_exhausted: ExhaustedCallback | None = None,
        session: ClientSession | None = None,
        sse_url: str = SSE_URL,
        base_delay: float = DEFAULT_RECONNECT_BASE_DELAY,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        read_timeout: float | None = DEFAULT_READ_TIMEOUT,
    ) -> None:
        """
        Create a connection manager.

        Args:
            on_event: Called with every decoded track event.
            on_exhausted: Called when reconnecting is given up.
            session: Optional aiohttp ClientSession. If None, a session is created
                on first start and closed by close().
            sse_url: Endpoint of the event stream.
            base_delay: Reconnect delay unit in seconds.
            max_attempts: Consecutive failures after which the connection is abandoned.
            read_timeout: Seconds of silence after which the stream is reconnected.
        """
        if base_delay < 0:
            raise ValueError(f"base_delay must not be negative, got {base_delay}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self._on_event = on_event
        self._on_exhausted = on_exhausted
        self._session = session
        self._owns_session = session is None
        self._sse_url = sse_url
        self._base_delay = base_delay
        self._max_attempts = max_attempts
        self._read_timeout = read_timeout
        self._loop = asyncio.get_running_loop()
        self._lock = asyncio.Lock()
        self._decoder = EnvelopeDecoder()
        self._status = ConnectionState()
        self._state_callbacks: list[ConnectionStateCallback] = []

    @property
    def state(self) -> ConnectionState:
        """Return a snapshot of the connection state."""
        return dataclasses.replace(self._status)

    @property
    def topic(self) -> str | None:
        """Return the topic of the active connection."""
        return self._topic

    @property
    def running(self) -> bool:
        """Return True while a connect or read loop is active."""
        return self._task is not None and not self._task.done()

    @property
    def decoder(self) -> EnvelopeDecoder:
        """Return the decoder, exposing its counters."""
        return self._decoder

    def add_state_listener(self, callback: ConnectionStateCallback) -> Callable[[], None]:
        """Add a listener for connection state changes.

        Returns:
            A function that removes this listener when called.
        """
        self._state_callbacks.append(callback)
        return lambda: (
            self._state_callbacks.remove(callback)
            if callback in self._state_callbacks
            else None
        )

    async def start(self, topic: str) -> None:
        """Connect to a topic, tearing down any previous connection first."""
        async with self._lock:
            await self._teardown()
            if self._session is None:
                self._session = ClientSession()
            self._topic = topic
            logger.info("Starting metadata feed for %s", topic)
            self._task = self._loop.create_task(self._run(topic))

    async def stop(self) -> None:
        """Stop the connection and any pending reconnect. Safe to call when idle."""
        async with self._lock:
            await self._teardown()

    async def close(self) -> None:
        """Stop and release the HTTP session if owned."""
        await self.stop()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _teardown(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if task is not None:
            logger.info("Metadata feed for %s stopped", self._topic)
        self._topic = None
        self._status.attempt_count = 0
        self._status.last_error = None
        self._set_state(ConnectionStateType.IDLE)

    async def _run(self, topic: str) -> None:
        params = subscription_params(topic)
        try:
            while True:
                self._set_state(ConnectionStateType.CONNECTING)
                try:
                    await self._stream(params)
                    error = "stream closed by server"
                except (TimeoutError, ClientError, ConnectionFailedError, OSError) as err:
                    error = str(err) or type(err).__name__
                except Exception as err:
                    logger.exception("Unexpected error in metadata feed %s", topic)
                    error = f"{type(err).__name__}: {err}"

                self._status.attempt_count += 1
                self._status.last_error = error
                attempts = self._status.attempt_count

                if attempts >= self._max_attempts:
                    logger.error(
                        "Giving up on metadata feed %s after %d attempts: %s",
                        topic,
                        attempts,
                        error,
                    )
                    self._set_state(ConnectionStateType.ABANDONED)
                    self._notify_exhausted(RetryExhaustedError(topic, attempts, error))
                    return

                delay = self._base_delay * attempts
                self._set_state(ConnectionStateType.CLOSED)
                logger.warning(
                    "Metadata feed %s lost (%s), reconnecting in %.1fs (attempt %d/%d)",
                    topic,
                    error,
                    delay,
                    attempts,
                    self._max_attempts,
                )
                await asyncio.sleep(delay)
        except asyncio.CancelledError:
            pass

    async def _stream(self, params: dict[str, str]) -> None:
        assert self._session is not None
        timeout = ClientTimeout(total=None, sock_connect=10, sock_read=self._read_timeout)
        async with self._session.get(
            self._sse_url,
            params=params,
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            timeout=timeout,
        ) as response:
            if response.status != 200:
                raise ConnectionFailedError(response.status)

            self._status.attempt_count = 0
            self._status.last_error = None
            self._set_state(ConnectionStateType.STREAMING)
            logger.info("Connected to metadata feed %s", self._topic)

            frames = FrameBuffer()
            async for chunk in response.content.iter_any():
                for frame in frames.feed(chunk):
                    self._handle_frame(frame)

    def _handle_frame(self, frame: str) -> None:
        for event in self._decoder.decode(frame):
            try:
                self._on_event(event)
            except Exception:
                logger.exception("Error in event callback %s", self._on_event)

    def _set_state(self, state: ConnectionStateType) -> None:
        if self._status.state is state:
            return
        self._status.state = state
        snapshot = self.state
        for callback in list(self._state_callbacks):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Error in connection state callback %s", callback)

    def _notify_exhausted(self, error: RetryExhaustedError) -> None:
        if self._on_exhausted is None:
            return
        try:
            self._on_exhausted(error)
        except Exception:
            logger.exception("Error in exhausted callback %s", self._on_exhausted)
