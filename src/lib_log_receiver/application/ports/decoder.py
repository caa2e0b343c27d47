"""Port describing stateful decoders that turn text chunks into events."""

from __future__ import annotations

from typing import Mapping, Protocol, runtime_checkable

from lib_log_receiver.domain.events import StructuredEvent


@runtime_checkable
class DecoderPort(Protocol):
    """Stateful, single-stream decoder fed chunks in stream order."""

    additional_properties: Mapping[str, str]

    def decode_events(self, chunk: str) -> list[StructuredEvent] | None:
        """Decode all complete records found so far; ``None`` when none completed."""

    def decode(self, document: str) -> list[StructuredEvent]:
        """Decode a standalone fragment without touching the partial buffer."""

    def decode_url(self, locator: str) -> list[StructuredEvent]:
        """Decode a file or URL, opening the first zip entry for ``.zip`` names."""

    def reset(self) -> None:
        """Discard any buffered partial record."""


__all__ = ["DecoderPort"]
