"""Decoder for Elastic Common Schema (ECS) JSON log lines.

Purpose
-------
Turn a stream of JSON objects, as written by ECS layouts, into
:class:`StructuredEvent` objects. Records are framed by newlines; several
objects on one line separated by whitespace are accepted as well.

Contents
--------
* :class:`ECSDecoder` - stateful decoder implementing :class:`DecoderPort`.
* :func:`parse_timestamp` - ISO 8601 ``@timestamp`` parsing.

System Role
-----------
Used by :class:`~lib_log_receiver.receivers.json_socket.JsonReceiver`.
Field mapping::

    @timestamp            -> timestamp
    log.level             -> level
    message               -> message
    process.thread.name   -> thread_name
    log.logger            -> logger_name
    error.stack_trace     -> throwable lines
    tags                  -> ``tags`` property (comma separated)

Dotted names are looked up flat first and then as nested objects.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import httpx

from lib_log_receiver.application.ports.decoder import DecoderPort
from lib_log_receiver.domain.events import EventBuilder, StructuredEvent
from lib_log_receiver.domain.levels import LogLevel

from .xml.decoder import open_locator


LOGGER = logging.getLogger(__name__)

RECORD_TERMINATOR = "\n"
_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(value: str) -> datetime:
    """Parse an ECS ``@timestamp`` into an aware UTC datetime.

    Examples
    --------
    >>> parse_timestamp("2024-03-01T10:15:30.250Z").isoformat()
    '2024-03-01T10:15:30.250000+00:00'
    >>> parse_timestamp("2024-03-01T12:15:30.123456789+02:00").isoformat()
    '2024-03-01T10:15:30.123456+00:00'
    """

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(_FRACTION.sub(r"\1", text))
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp {value!r} carries no UTC offset")
    return parsed.astimezone(timezone.utc)


def _lookup(record: Mapping[str, Any], dotted: str) -> Any:
    if dotted in record:
        return record[dotted]
    current: Any = record
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _optional_text(value: Any) -> str | None:
    return None if value is None else str(value)


class ECSDecoder(DecoderPort):
    """Decode newline-framed ECS JSON objects from a chunked text stream."""

    def __init__(
        self,
        *,
        additional_properties: Mapping[str, str] | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.additional_properties: Mapping[str, str] = dict(additional_properties or {})
        self.http_client = http_client
        self._partial = ""
        self._json = json.JSONDecoder()

    @property
    def partial(self) -> str:
        return self._partial

    def reset(self) -> None:
        self._partial = ""

    def decode_events(self, chunk: str) -> list[StructuredEvent] | None:
        """Decode every line completed by ``chunk``; ``None`` while none is complete."""

        if not chunk:
            return None
        combined = self._partial + chunk
        end = combined.rfind(RECORD_TERMINATOR)
        if end == -1:
            self._partial = combined
            return None
        self._partial = combined[end + 1 :]
        return self._decode_lines(combined[:end])

    def decode(self, document: str) -> list[StructuredEvent]:
        """Decode every complete object in ``document`` without touching the buffer."""

        return self._decode_lines(document or "")

    def decode_first(self, document: str) -> StructuredEvent | None:
        events = self.decode(document)
        return events[0] if events else None

    def decode_url(self, locator: str | Path) -> list[StructuredEvent]:
        """Decode a whole file or URL of ECS lines."""

        with open_locator(locator, http_client=self.http_client) as reader:
            events = self._decode_lines(reader.read())
        LOGGER.debug("Decoded %d ECS events from %s", len(events), locator)
        return events

    def _decode_lines(self, text: str) -> list[StructuredEvent]:
        events: list[StructuredEvent] = []
        builder = EventBuilder()
        for line in text.splitlines():
            for record in self._iter_objects(line):
                builder.clear()
                try:
                    event = self._decode_record(record, builder)
                except (TypeError, ValueError, OverflowError) as exc:
                    LOGGER.warning("ECSDecoder skipped an undecodable record: %s", exc)
                    continue
                if self.additional_properties:
                    event = event.with_properties(self.additional_properties)
                events.append(event)
        return events

    def _iter_objects(self, line: str) -> Iterator[Mapping[str, Any]]:
        position = 0
        length = len(line)
        while position < length:
            while position < length and line[position].isspace():
                position += 1
            if position >= length:
                return
            try:
                value, position = self._json.raw_decode(line, position)
            except json.JSONDecodeError as exc:
                LOGGER.error("ECSDecoder could not parse line of %d chars: %s", length, exc)
                return
            if isinstance(value, Mapping):
                yield value
            else:
                LOGGER.warning("ECSDecoder ignored a non-object JSON value of type %s", type(value).__name__)

    def _decode_record(self, record: Mapping[str, Any], builder: EventBuilder) -> StructuredEvent:
        level_name = _optional_text(_lookup(record, "log.level"))
        level = LogLevel.to_level(level_name)
        if level is None:
            raise ValueError(f"unresolvable level {level_name!r}")
        builder.set_level(level)
        builder.set_logger(_optional_text(_lookup(record, "log.logger")))
        builder.set_thread(_optional_text(_lookup(record, "process.thread.name")))
        builder.set_message(_optional_text(record.get("message")))
        timestamp = _lookup(record, "@timestamp")
        if timestamp is None:
            raise ValueError("record has no @timestamp")
        builder.set_timestamp(parse_timestamp(str(timestamp)))
        stack_trace = _lookup(record, "error.stack_trace")
        if stack_trace:
            builder.set_throwable(str(stack_trace).splitlines())
        tags = record.get("tags")
        if isinstance(tags, list) and tags:
            builder.add_property("tags", ",".join(str(tag) for tag in tags))
        return builder.build()


__all__ = ["ECSDecoder", "parse_timestamp"]
