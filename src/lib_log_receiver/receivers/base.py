"""Receiver skeleton owning one ingestion source and one batch queue.

Purpose
-------
Hold the state every receiver shares - name, threshold, pause flag, batch
listeners and the :class:`BatchQueue` - and define the lifecycle
(``start`` / ``shutdown``) concrete receivers plug their transport into.

Contents
--------
* :class:`Receiver` - base class; subclasses implement ``_activate`` and
  ``_deactivate``.
* :data:`PropertyChangeCallback` - signature of property-change observers.

System Role
-----------
``append`` is the single boundary every source (socket reader, datagram
thread, file import, database poll) calls. It drops events while paused or
below the threshold and enqueues everything else.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from types import TracebackType
from typing import Any

from lib_log_receiver.adapters.queue import COALESCE_THRESHOLD_MS, BatchQueue
from lib_log_receiver.application.ports.decoder import DecoderPort
from lib_log_receiver.application.ports.listener import BatchListener, ListenerLike
from lib_log_receiver.domain.events import StructuredEvent
from lib_log_receiver.domain.levels import LogLevel


LOGGER = logging.getLogger(__name__)

PropertyChangeCallback = Callable[[str, Any, Any], None]


class Receiver:
    """Base receiver with threshold, pause and batch delivery handling."""

    def __init__(
        self,
        *,
        name: str = "Receiver",
        threshold: LogLevel = LogLevel.TRACE,
        queue_interval: int = COALESCE_THRESHOLD_MS,
        queue_maxsize: int | None = None,
        overflow_policy: str = "unbounded",
        listeners: Iterable[ListenerLike] = (),
    ) -> None:
        self._name = name
        self._threshold = threshold
        self._paused = False
        self._state_lock = threading.Lock()
        self._property_listeners: list[PropertyChangeCallback] = []
        self._active = False
        self._queue = BatchQueue(
            name=name,
            listeners=listeners,
            interval_ms=queue_interval,
            maxsize=queue_maxsize,
            overflow_policy=overflow_policy,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, active={self._active})"

    # -- configuration -------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        if value == self._name:
            return
        old, self._name = self._name, value
        self._fire("name", old, value)

    @property
    def threshold(self) -> LogLevel:
        return self._threshold

    @threshold.setter
    def threshold(self, level: LogLevel | str) -> None:
        resolved = LogLevel.from_name(level) if isinstance(level, str) else level
        with self._state_lock:
            old, self._threshold = self._threshold, resolved
        self._fire("threshold", old, resolved)

    @property
    def paused(self) -> bool:
        return self._paused

    @paused.setter
    def paused(self, value: bool) -> None:
        with self._state_lock:
            old, self._paused = self._paused, bool(value)
        self._fire("paused", old, self._paused)

    @property
    def queue_interval(self) -> int:
        """Return the batch delivery interval in milliseconds."""

        return self._queue.queue_interval

    @queue_interval.setter
    def queue_interval(self, interval_ms: int) -> None:
        self._queue.queue_interval = interval_ms

    @property
    def queue(self) -> BatchQueue:
        return self._queue

    @property
    def is_active(self) -> bool:
        return self._active

    # -- listeners -----------------------------------------------------

    def add_batch_listener(self, listener: ListenerLike | None) -> BatchListener | None:
        """Register ``listener``; ``None`` is ignored."""

        if listener is None:
            return None
        return self._queue.add_listener(listener)

    def remove_batch_listener(self, listener: ListenerLike | None) -> None:
        if listener is None:
            return
        self._queue.remove_listener(listener)

    def add_property_change_listener(self, callback: PropertyChangeCallback) -> None:
        """Observe ``name``, ``threshold`` and ``paused`` changes."""

        self._property_listeners.append(callback)

    def remove_property_change_listener(self, callback: PropertyChangeCallback) -> None:
        if callback in self._property_listeners:
            self._property_listeners.remove(callback)

    # -- ingestion -----------------------------------------------------

    def append(self, event: StructuredEvent) -> bool:
        """Offer ``event`` to the queue; returns ``True`` when it was enqueued."""

        with self._state_lock:
            paused = self._paused
            threshold = self._threshold
        if paused or not event.level.is_at_least(threshold):
            return False
        return self._queue.enqueue(event)

    def append_all(self, events: Iterable[StructuredEvent] | None) -> int:
        """Append every event in ``events`` and return how many were enqueued."""

        if not events:
            return 0
        return sum(1 for event in events if self.append(event))

    def append_decoded(self, decoder: DecoderPort, text: str) -> int:
        """Feed ``text`` to ``decoder`` and append whatever it completes.

        A decoder failure is logged and swallowed so the reading thread keeps
        serving later reads.
        """

        try:
            events = decoder.decode_events(text)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("%s could not decode %d chars; continuing", self._name, len(text), exc_info=exc)
            return 0
        return self.append_all(events)

    # -- lifecycle -----------------------------------------------------

    def start(self) -> None:
        """Start the delivery worker and then the ingestion source."""

        if self._active:
            return
        self._queue.start()
        LOGGER.debug("Starting receiver %s", self._name)
        try:
            self._activate()
        except Exception:
            self._queue.stop()
            raise
        self._active = True

    def shutdown(self) -> None:
        """Close the ingestion source and interrupt the delivery worker."""

        LOGGER.debug("%s shutdown called", self._name)
        self._active = False
        try:
            self._deactivate()
        finally:
            self._queue.stop()

    def __enter__(self) -> "Receiver":
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    def _activate(self) -> None:
        """Open the transport; the base receiver only accepts direct appends."""

    def _deactivate(self) -> None:
        """Release the transport."""

    def _fire(self, prop: str, old: Any, new: Any) -> None:
        if old == new:
            return
        for callback in list(self._property_listeners):
            try:
                callback(prop, old, new)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Property change listener raised for %s.%s", self._name, prop, exc_info=exc)


__all__ = ["PropertyChangeCallback", "Receiver"]
