"""Public interface for the Mother Earth Radio live metadata client."""

from .connection import (
    ConnectionManager,
    ConnectionStateCallback,
    EventCallback,
    ExhaustedCallback,
)
from .decoder import EnvelopeDecoder, FrameBuffer
from .scheduler import HIGH_LATENCY_OFFSET_MS, DelayScheduler, effective_delay_ms
from .session import PROVISIONAL_TITLE, PlaybackSession
from .transport import ErrorCallback, StateCallback, Transport

__all__ = [
    "HIGH_LATENCY_OFFSET_MS",
    "PROVISIONAL_TITLE",
    "ConnectionManager",
    "ConnectionStateCallback",
    "DelayScheduler",
    "EnvelopeDecoder",
    "ErrorCallback",
    "EventCallback",
    "ExhaustedCallback",
    "FrameBuffer",
    "PlaybackSession",
    "StateCallback",
    "Transport",
    "effective_delay_ms",
]
