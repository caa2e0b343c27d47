"""Adapter implementations for queues, decoders, databases, and consoles."""

from __future__ import annotations

from .console.rich_console import RichConsoleListener
from .db.poll_job import DatabasePollJob
from .ecs import ECSDecoder
from .queue import BatchQueue
from .xml import DECODERS, StreamingDecoder, UtilLoggingXMLDecoder, XMLDecoder

__all__ = [
    "BatchQueue",
    "DECODERS",
    "DatabasePollJob",
    "ECSDecoder",
    "RichConsoleListener",
    "StreamingDecoder",
    "UtilLoggingXMLDecoder",
    "XMLDecoder",
]
