"""Domain event describing one decoded or polled log record.

Purpose
-------
Provide an immutable representation of log records travelling from decoders
and poll jobs through the batch queue to listeners.

Contents
--------
* :class:`LocationInfo` value object for caller location.
* :class:`StructuredEvent` dataclass with serialisation helpers.
* :class:`EventBuilder` used by decoders to assemble events field by field.

System Role
-----------
Sits in the domain layer; adapters and receivers only ever exchange these
pure data objects.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping

from .levels import LogLevel


def _ensure_aware(ts: datetime) -> datetime:
    """Validate that ``ts`` is timezone-aware and normalise to UTC."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        raise ValueError("timestamp must be timezone-aware")
    return ts.astimezone(timezone.utc)


def timestamp_from_millis(millis: int) -> datetime:
    """Convert epoch milliseconds into an aware UTC timestamp.

    Examples
    --------
    >>> timestamp_from_millis(1000).isoformat()
    '1970-01-01T00:00:01+00:00'

    Values outside the platform's representable range raise :class:`ValueError`.

    >>> timestamp_from_millis(10**23)
    Traceback (most recent call last):
    ...
    ValueError: timestamp 100000000000000000000000 ms is out of range
    """

    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp {millis} ms is out of range") from exc


@dataclass(slots=True, frozen=True)
class LocationInfo:
    """Caller location captured by the emitting framework."""

    file: str | None = None
    class_name: str | None = None
    method: str | None = None
    line: str | None = None

    @property
    def is_available(self) -> bool:
        """Return ``True`` when at least one field carries data."""

        return any(value is not None for value in (self.file, self.class_name, self.method, self.line))

    def to_dict(self) -> dict[str, str | None]:
        return {
            "file": self.file,
            "class": self.class_name,
            "method": self.method,
            "line": self.line,
        }


@dataclass(slots=True, frozen=True)
class StructuredEvent:
    """Immutable log record handed to the batch queue.

    Attributes
    ----------
    logger_name:
        Logger that emitted the record.
    level:
        :class:`LogLevel` severity; never ``None``.
    timestamp:
        Time of the record in timezone-aware UTC.
    thread_name:
        Thread that emitted the record.
    message:
        Rendered message text.
    ndc:
        Optional nested diagnostic context.
    mdc:
        Mapped diagnostic context, insertion ordered.
    location:
        Optional :class:`LocationInfo`.
    throwable:
        Exception representation as ordered trace lines.
    properties:
        Named string properties, including ones added by enrichers.
    """

    logger_name: str
    level: LogLevel
    timestamp: datetime
    thread_name: str | None = None
    message: str = ""
    ndc: str | None = None
    mdc: dict[str, str] = field(default_factory=dict)
    location: LocationInfo | None = None
    throwable: tuple[str, ...] = ()
    properties: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.level, LogLevel):
            raise ValueError("level must be a LogLevel")
        object.__setattr__(self, "timestamp", _ensure_aware(self.timestamp))
        object.__setattr__(self, "mdc", dict(self.mdc))
        object.__setattr__(self, "throwable", tuple(self.throwable))
        object.__setattr__(self, "properties", dict(self.properties))

    @property
    def millis(self) -> int:
        """Return the timestamp as epoch milliseconds."""

        return int(round(self.timestamp.timestamp() * 1000))

    def with_properties(self, extra: Mapping[str, str]) -> "StructuredEvent":
        """Return a copy with ``extra`` merged into the properties.

        Entries in ``extra`` override existing properties of the same name.
        """

        if not extra:
            return self
        merged = dict(self.properties)
        merged.update(extra)
        return replace(self, properties=merged)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the event to a dictionary with ISO8601 timestamps."""

        data: dict[str, Any] = {
            "logger_name": self.logger_name,
            "level": self.level.name,
            "timestamp": self.timestamp.isoformat(),
            "thread_name": self.thread_name,
            "message": self.message,
            "ndc": self.ndc,
            "mdc": dict(self.mdc),
            "properties": dict(self.properties),
        }
        if self.location is not None:
            data["location"] = self.location.to_dict()
        if self.throwable:
            data["throwable"] = list(self.throwable)
        return data

    def to_json(self) -> str:
        """Serialize the event to JSON with sorted keys for deterministic output."""

        return json.dumps(self.to_dict(), sort_keys=True)


class EventBuilder:
    """Collect event fields one at a time and produce a :class:`StructuredEvent`.

    Decoders reuse a single builder per record; :meth:`build` refuses to emit
    an event without a resolved level.

    Examples
    --------
    >>> event = (
    ...     EventBuilder()
    ...     .set_logger("app")
    ...     .set_timestamp_millis(1000)
    ...     .set_level(LogLevel.INFO)
    ...     .set_message("hi")
    ...     .build()
    ... )
    >>> event.level, event.message
    (<LogLevel.INFO: 20000>, 'hi')
    """

    def __init__(self) -> None:
        self.clear()

    def clear(self) -> "EventBuilder":
        self._logger: str | None = None
        self._timestamp: datetime | None = None
        self._level: LogLevel | None = None
        self._thread: str | None = None
        self._message: str = ""
        self._ndc: str | None = None
        self._mdc: dict[str, str] = {}
        self._location: LocationInfo | None = None
        self._throwable: list[str] = []
        self._properties: dict[str, str] = {}
        return self

    def set_logger(self, name: str | None) -> "EventBuilder":
        self._logger = name
        return self

    def set_timestamp(self, timestamp: datetime) -> "EventBuilder":
        self._timestamp = timestamp
        return self

    def set_timestamp_millis(self, millis: int) -> "EventBuilder":
        self._timestamp = timestamp_from_millis(millis)
        return self

    def set_level(self, level: LogLevel | None) -> "EventBuilder":
        self._level = level
        return self

    def set_level_from_string(self, name: str | None) -> "EventBuilder":
        self._level = LogLevel.to_level(name)
        return self

    def set_thread(self, name: str | None) -> "EventBuilder":
        self._thread = name
        return self

    def set_message(self, message: str | None) -> "EventBuilder":
        self._message = message or ""
        return self

    def set_ndc(self, ndc: str | None) -> "EventBuilder":
        self._ndc = ndc
        return self

    def add_mdc(self, key: str, value: str) -> "EventBuilder":
        self._mdc[key] = value
        return self

    def set_location(self, location: LocationInfo | None) -> "EventBuilder":
        self._location = location
        return self

    def set_throwable(self, lines: list[str] | tuple[str, ...]) -> "EventBuilder":
        self._throwable = list(lines)
        return self

    def add_property(self, key: str, value: str) -> "EventBuilder":
        self._properties[key] = value
        return self

    def update_properties(self, values: Mapping[str, str]) -> "EventBuilder":
        self._properties.update(values)
        return self

    def build(self) -> StructuredEvent:
        """Create the event; raises :class:`ValueError` when no level resolved."""

        if self._level is None:
            raise ValueError("event level could not be resolved")
        timestamp = self._timestamp if self._timestamp is not None else timestamp_from_millis(0)
        return StructuredEvent(
            logger_name=self._logger or "",
            level=self._level,
            timestamp=timestamp,
            thread_name=self._thread,
            message=self._message,
            ndc=self._ndc,
            mdc=self._mdc,
            location=self._location,
            throwable=tuple(self._throwable),
            properties=self._properties,
        )


__all__ = ["EventBuilder", "LocationInfo", "StructuredEvent", "timestamp_from_millis"]
