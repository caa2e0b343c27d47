"""Configuration helpers: ``.env`` loading and environment-driven settings.

Purpose
-------
Resolve receiver tuning (queue interval, queue bound, overflow policy,
threshold, decoder chunk size) from explicit arguments first and
``LOG_RECEIVER_*`` environment variables second.

Contents
--------
* :func:`enable_dotenv` - load the nearest ``.env`` without overriding the
  process environment.
* :class:`ReceiverSettings` - validated settings with :meth:`from_env`.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from dotenv import find_dotenv, load_dotenv

from .adapters.queue import COALESCE_THRESHOLD_MS, OVERFLOW_POLICIES
from .adapters.xml import DEFAULT_CHUNK_LINES
from .domain.levels import LogLevel


DOTENV_ENV_VAR = "LOG_RECEIVER_USE_DOTENV"
ENV_PREFIX = "LOG_RECEIVER_"
_TRUTHY = {"1", "true", "yes", "on"}

_DOTENV_LOCK = threading.Lock()
_DOTENV_PATH: Path | None = None
_DOTENV_LOADED = False


def dotenv_requested(flag: bool | None, environ: Mapping[str, str] | None = None) -> bool:
    """Return whether ``.env`` loading is requested; an explicit ``flag`` wins."""

    if flag is not None:
        return flag
    env = os.environ if environ is None else environ
    return env.get(DOTENV_ENV_VAR, "").strip().lower() in _TRUTHY


def enable_dotenv(*, search_from: Path | None = None) -> Path | None:
    """Load the nearest ``.env`` file once and return its path.

    Variables already present in the environment keep precedence. Returns
    ``None`` when no ``.env`` file is found.
    """

    global _DOTENV_PATH, _DOTENV_LOADED
    with _DOTENV_LOCK:
        if _DOTENV_LOADED:
            return _DOTENV_PATH
        if search_from is not None:
            candidate = _search_upwards(search_from)
        else:
            found = find_dotenv(usecwd=True)
            candidate = Path(found).resolve() if found else None
        if candidate is not None:
            load_dotenv(candidate, override=False)
        _DOTENV_PATH = candidate
        _DOTENV_LOADED = True
        return candidate


def _search_upwards(start: Path) -> Path | None:
    for directory in (start.resolve(), *start.resolve().parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def _reset_dotenv_state_for_testing() -> None:
    global _DOTENV_PATH, _DOTENV_LOADED
    with _DOTENV_LOCK:
        _DOTENV_PATH = None
        _DOTENV_LOADED = False


def _parse_int(name: str, raw: str, *, minimum: int) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


@dataclass(frozen=True)
class ReceiverSettings:
    """Validated receiver configuration.

    Attributes
    ----------
    queue_interval:
        Batch delivery interval in milliseconds; above 1000 the queue
        coalesces events between drains.
    queue_maxsize:
        Optional bound on pending events; ``None`` keeps the queue unbounded.
    overflow_policy:
        Policy applied when a bounded queue is full. A bound without an
        explicit policy defaults to ``"drop_oldest"``; without a bound the
        policy is always ``"unbounded"``.
    threshold:
        Lowest level a receiver accepts.
    chunk_lines:
        Lines grouped into one decoder chunk when reading files.
    """

    queue_interval: int = COALESCE_THRESHOLD_MS
    queue_maxsize: int | None = None
    overflow_policy: str = "unbounded"
    threshold: LogLevel = LogLevel.TRACE
    chunk_lines: int = DEFAULT_CHUNK_LINES

    def __post_init__(self) -> None:
        if self.queue_interval < 0:
            raise ValueError("queue_interval must be >= 0")
        if self.queue_maxsize is not None and self.queue_maxsize <= 0:
            raise ValueError("queue_maxsize must be positive")
        policy = self.overflow_policy.lower()
        if policy not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow_policy must be one of {sorted(OVERFLOW_POLICIES)}")
        if self.queue_maxsize is not None and policy == "unbounded":
            policy = "drop_oldest"
        if self.queue_maxsize is None:
            policy = "unbounded"
        object.__setattr__(self, "overflow_policy", policy)
        if self.chunk_lines <= 0:
            raise ValueError("chunk_lines must be positive")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ReceiverSettings":
        """Build settings from ``LOG_RECEIVER_*`` variables; ``overrides`` win.

        ``None`` overrides are ignored so CLI options can be passed through
        unconditionally.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        raw = env.get(f"{ENV_PREFIX}QUEUE_INTERVAL")
        if raw:
            values["queue_interval"] = _parse_int(f"{ENV_PREFIX}QUEUE_INTERVAL", raw, minimum=0)
        raw = env.get(f"{ENV_PREFIX}QUEUE_MAXSIZE")
        if raw:
            values["queue_maxsize"] = _parse_int(f"{ENV_PREFIX}QUEUE_MAXSIZE", raw, minimum=1)
        raw = env.get(f"{ENV_PREFIX}OVERFLOW_POLICY")
        if raw:
            values["overflow_policy"] = raw.strip()
        raw = env.get(f"{ENV_PREFIX}THRESHOLD")
        if raw:
            values["threshold"] = LogLevel.from_name(raw)
        raw = env.get(f"{ENV_PREFIX}CHUNK_LINES")
        if raw:
            values["chunk_lines"] = _parse_int(f"{ENV_PREFIX}CHUNK_LINES", raw, minimum=1)

        for key, value in overrides.items():
            if value is None:
                continue
            if key == "threshold" and isinstance(value, str):
                value = LogLevel.from_name(value)
            values[key] = value
        return cls(**values)

    def receiver_kwargs(self) -> dict[str, Any]:
        """Return the keyword arguments shared by every :class:`Receiver`."""

        return {
            "threshold": self.threshold,
            "queue_interval": self.queue_interval,
            "queue_maxsize": self.queue_maxsize,
            "overflow_policy": self.overflow_policy,
        }


__all__ = [
    "DOTENV_ENV_VAR",
    "ENV_PREFIX",
    "ReceiverSettings",
    "dotenv_requested",
    "enable_dotenv",
]
