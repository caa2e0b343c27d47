"""Streaming XML decoders for the log4j and java.util.logging dialects."""

from __future__ import annotations

from ._fragment import FragmentEnvelope
from .decoder import DEFAULT_CHUNK_LINES, StreamingDecoder, fetch_url, open_locator
from .log4j import XMLDecoder
from .util_logging import UtilLoggingXMLDecoder

DECODERS: dict[str, type[StreamingDecoder]] = {
    "log4j": XMLDecoder,
    "util-logging": UtilLoggingXMLDecoder,
}
"""Decoder classes keyed by the dialect names accepted on the command line."""

__all__ = [
    "DECODERS",
    "DEFAULT_CHUNK_LINES",
    "FragmentEnvelope",
    "StreamingDecoder",
    "UtilLoggingXMLDecoder",
    "XMLDecoder",
    "fetch_url",
    "open_locator",
]
