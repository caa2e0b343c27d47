"""Ordered log level abstraction shared by every receiver.

Purpose
-------
Offer a single severity scale for events decoded from log4j XML, from
java.util.logging XML and from database rows, so threshold checks behave the
same regardless of the source.

Contents
--------
* :class:`LogLevel` enum with conversion helpers.
* ``_UTIL_LOGGING_TABLE`` mapping java.util.logging names onto the scale.

System Role
-----------
Used by decoders and the poll job to resolve stored level strings and by
receivers to enforce their threshold before events reach the batch queue.
"""

from __future__ import annotations

import logging
from enum import Enum
from functools import total_ordering


@total_ordering
class LogLevel(Enum):
    """Enumerated levels ordered ``TRACE < DEBUG < INFO < WARN < ERROR < FATAL``."""

    TRACE = 5000
    DEBUG = 10000
    INFO = 20000
    WARN = 30000
    ERROR = 40000
    FATAL = 50000

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, LogLevel):
            return NotImplemented
        return self.value < other.value

    @property
    def severity(self) -> str:
        """Return the lowercase severity name for structured payloads."""

        return self.name.lower()

    def is_at_least(self, threshold: "LogLevel") -> bool:
        """Return ``True`` when this level passes ``threshold``.

        Examples
        --------
        >>> LogLevel.WARN.is_at_least(LogLevel.WARN)
        True
        >>> LogLevel.INFO.is_at_least(LogLevel.WARN)
        False
        """

        return self.value >= threshold.value

    def to_python_level(self) -> int:
        """Return the closest :mod:`logging` constant for this level."""

        return _PYTHON_LEVELS[self]

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        normalized = name.strip().upper()
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls[normalized]
        except KeyError as exc:
            raise ValueError(f"Unknown log level: {name!r}") from exc

    @classmethod
    def to_level(cls, name: str | None, default: "LogLevel | None" = None) -> "LogLevel | None":
        """Leniently resolve ``name``, returning ``default`` when it is unknown."""

        if name is None:
            return default
        try:
            return cls.from_name(name)
        except ValueError:
            return default

    @classmethod
    def from_util_logging(cls, name: str | None, default: "LogLevel | None" = None) -> "LogLevel | None":
        """Translate a java.util.logging level name.

        Log4j names are accepted as well so mixed streams still resolve.
        ``default`` falls back to :attr:`DEBUG` when not supplied.

        Examples
        --------
        >>> LogLevel.from_util_logging("SEVERE")
        <LogLevel.ERROR: 40000>
        >>> LogLevel.from_util_logging("finest")
        <LogLevel.TRACE: 5000>
        >>> LogLevel.from_util_logging(None)
        <LogLevel.DEBUG: 10000>
        """

        fallback = cls.DEBUG if default is None else default
        if name is None:
            return fallback
        normalized = name.strip().upper()
        mapped = _UTIL_LOGGING_TABLE.get(normalized)
        if mapped is not None:
            return mapped
        return cls.to_level(normalized, fallback)


_ALIASES = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}

# java.util.logging names with no log4j counterpart collapse onto the nearest level.
_UTIL_LOGGING_TABLE = {
    "SEVERE": LogLevel.ERROR,
    "WARNING": LogLevel.WARN,
    "INFO": LogLevel.INFO,
    "CONFIG": LogLevel.DEBUG,
    "FINE": LogLevel.DEBUG,
    "FINER": LogLevel.TRACE,
    "FINEST": LogLevel.TRACE,
}

_PYTHON_LEVELS = {
    LogLevel.TRACE: 5,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}


__all__ = ["LogLevel"]
