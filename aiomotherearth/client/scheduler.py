"""Latency compensating delivery of track events."""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from typing import Generic, TypeVar

from aiomotherearth.models import TrackEvent

logger = logging.getLogger(__name__)

HIGH_LATENCY_OFFSET_MS = 2000
"""Extra delay applied while high latency mode is active."""

TokenT = TypeVar("TokenT")

# Callback receiving an event once its delay has elapsed.
ApplyCallback = Callable[[TrackEvent], None]


def effective_delay_ms(
    manual_delay_ms: int,
    high_latency_mode: bool,
    high_latency_offset_ms: int = HIGH_LATENCY_OFFSET_MS,
) -> int:
    """Return the delay between receiving an event and displaying it, never negative."""
    delay = manual_delay_ms + (high_latency_offset_ms if high_latency_mode else 0)
    return max(0, delay)


class DelayScheduler(Generic[TokenT]):
    """
    Hold track events back until the listener hears the matching audio.

    Every event gets its own timer, overlapping timers are not coalesced and
    whichever fires last wins. Each event is scheduled with the token of the
    session generation that received it; when the timer fires the token is
    checked with `is_current` and stale events are dropped.
    """

    def __init__(
        self,
        apply: ApplyCallback,
        is_current: Callable[[TokenT], bool],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """
        Create a scheduler.

        Args:
            apply: Called with each event that is still current after its delay.
            is_current: Called with the event's token at fire time.
            loop: Event loop running the timers, defaults to the running loop.
        """
        self._apply = apply
        self._is_current = is_current
        self._loop = loop or asyncio.get_running_loop()
        self._timers: dict[int, asyncio.TimerHandle] = {}
        self._ids = itertools.count()

    @property
    def pending(self) -> int:
        """Return the number of armed timers."""
        return len(self._timers)

    def schedule(self, event: TrackEvent, delay_ms: float, token: TokenT) -> None:
        """Apply an event after delay_ms, immediately if the delay is 0."""
        delay_ms = max(0.0, delay_ms)
        if delay_ms == 0:
            self._deliver(event, token)
            return
        timer_id = next(self._ids)
        self._timers[timer_id] = self._loop.call_later(
            delay_ms / 1000, self._fire, timer_id, event, token
        )
        logger.debug("Delaying '%s' by %d ms", event.title, delay_ms)

    def cancel_all(self) -> int:
        """Cancel every pending timer and return how many were cancelled."""
        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        if count:
            logger.debug("Cancelled %d pending metadata update(s)", count)
        return count

    def _fire(self, timer_id: int, event: TrackEvent, token: TokenT) -> None:
        self._timers.pop(timer_id, None)
        self._deliver(event, token)

    def _deliver(self, event: TrackEvent, token: TokenT) -> None:
        if not self._is_current(token):
            logger.debug("Dropping stale metadata '%s'", event.title)
            return
        try:
            self._apply(event)
        except Exception:
            logger.exception("Error applying metadata %s", event)
