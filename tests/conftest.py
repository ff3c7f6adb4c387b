from __future__ import annotations

import asyncio
import socket
from collections.abc import AsyncIterator, Callable

import orjson
import pytest_asyncio
from aiohttp import web

SSE_PATH = "/api/live/nowplaying/sse"


def _get_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
    """Poll until predicate() is true."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


class FeedServer:
    """Local stand-in for the live now playing feed."""

    def __init__(self, port: int) -> None:
        self.url = f"http://127.0.0.1:{port}{SSE_PATH}"
        self.chunks: list[bytes] = []
        """Written to every successful connection, one write each."""
        self.fail_statuses: list[int] = []
        """Statuses returned (and consumed) before a stream is served."""
        self.always_fail: int | None = None
        self.close_after_send = False
        self.requests = 0
        self.active = 0
        self.queries: list[str | None] = []
        self.accept_headers: list[str | None] = []

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.requests += 1
        self.queries.append(request.query.get("cf_connect"))
        self.accept_headers.append(request.headers.get("Accept"))
        if self.always_fail is not None:
            return web.Response(status=self.always_fail)
        if self.fail_statuses:
            return web.Response(status=self.fail_statuses.pop(0))

        response = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await response.prepare(request)
        self.active += 1
        try:
            for chunk in self.chunks:
                await response.write(chunk)
                await asyncio.sleep(0.01)
            if self.close_after_send:
                return response
            while True:
                await asyncio.sleep(0.02)
                await response.write(b": ping\n\n")
        except ConnectionError:
            return response
        finally:
            self.active -= 1


@pytest_asyncio.fixture
async def feed_server() -> AsyncIterator[FeedServer]:
    port = _get_free_port()
    server = FeedServer(port)
    app = web.Application()
    app.router.add_get(SSE_PATH, server.handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    try:
        yield server
    finally:
        await runner.cleanup()


def np_frame(
    title: str = "B",
    artist: str = "A",
    *,
    duration: float = 0,
    elapsed: float = 0,
    nested: bool = True,
) -> bytes:
    """Return an encoded now playing frame as the provider broadcasts it."""
    station = {
        "station": {"shortcode": "motherearth"},
        "now_playing": {
            "duration": duration,
            "elapsed": elapsed,
            "song": {"title": title, "artist": artist, "album": "", "art": ""},
        },
    }
    payload = (
        {"channel": "station:motherearth", "pub": {"data": {"np": station}}}
        if nested
        else {"np": station}
    )
    return b"data: " + orjson.dumps(payload) + b"\n\n"
