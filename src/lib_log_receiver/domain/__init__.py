"""Domain entities and value objects shared by decoders, queues, and receivers."""

from __future__ import annotations

from .events import EventBuilder, LocationInfo, StructuredEvent, timestamp_from_millis
from .levels import LogLevel

__all__ = [
    "EventBuilder",
    "LocationInfo",
    "LogLevel",
    "StructuredEvent",
    "timestamp_from_millis",
]
