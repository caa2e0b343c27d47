"""Thread-based batch queue decoupling event producers from listeners.

Purpose
-------
Absorb events from any number of producer threads and deliver them, in enqueue
order, as batches to the receiver's registered listeners.

Contents
--------
* :class:`BatchQueue` - condition-variable worker implementing
  :class:`BatchQueuePort`.
* ``OVERFLOW_POLICIES`` - the accepted bounded-queue policies.

System Role
-----------
Each receiver owns exactly one queue and therefore one worker thread. Delivery
is synchronous on that thread, so a slow listener throttles only its receiver.

Delivery cadence
----------------
``queue_interval`` (milliseconds) above 1000 makes the worker sleep between
drains so events coalesce into larger batches. At or below 1000 the worker
yields once and drains again immediately.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable, Sequence
from typing import Deque

from lib_log_receiver.application.ports.listener import BatchListener, ListenerLike, as_listener
from lib_log_receiver.application.ports.queue import BatchQueuePort
from lib_log_receiver.domain.events import StructuredEvent


LOGGER = logging.getLogger(__name__)

COALESCE_THRESHOLD_MS = 1000
OVERFLOW_POLICIES = frozenset({"unbounded", "drop_newest", "drop_oldest", "block"})


class BatchQueue(BatchQueuePort):
    """Buffer events and flush them as batches on a dedicated worker thread.

    Examples
    --------
    >>> delivered = []
    >>> queue = BatchQueue(name="doc", listeners=[delivered.extend])
    >>> queue.start()
    >>> from lib_log_receiver.domain import EventBuilder, LogLevel
    >>> queue.enqueue(EventBuilder().set_logger("x").set_level(LogLevel.INFO).build())
    True
    >>> queue.wait_until_idle(timeout=2.0)
    True
    >>> queue.stop()
    >>> delivered[0].logger_name
    'x'
    """

    def __init__(
        self,
        *,
        name: str = "receiver",
        listeners: Iterable[ListenerLike] = (),
        interval_ms: int = COALESCE_THRESHOLD_MS,
        maxsize: int | None = None,
        overflow_policy: str = "unbounded",
        put_timeout: float | None = None,
        on_drop: Callable[[StructuredEvent], None] | None = None,
    ) -> None:
        """Create the queue; the worker starts on :meth:`start`.

        Parameters
        ----------
        name:
            Used to name the worker thread (``<name>-worker``).
        listeners:
            Initial batch listeners, delivered to in registration order.
        interval_ms:
            Queue interval in milliseconds (see module docs).
        maxsize:
            Upper bound on pending events; ``None`` keeps the queue unbounded.
        overflow_policy:
            ``"unbounded"``, ``"drop_newest"``, ``"drop_oldest"`` or ``"block"``.
            A bounded queue requires a policy other than ``"unbounded"``.
        put_timeout:
            Seconds a producer waits under the ``"block"`` policy before the
            event is dropped; ``None`` waits until space frees up.
        on_drop:
            Optional callback receiving every discarded event.
        """
        policy = overflow_policy.lower()
        if policy not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow_policy must be one of {sorted(OVERFLOW_POLICIES)}")
        if maxsize is not None and maxsize <= 0:
            raise ValueError("maxsize must be positive")
        if maxsize is not None and policy == "unbounded":
            raise ValueError("a bounded queue needs an overflow policy other than 'unbounded'")
        if policy != "unbounded" and maxsize is None:
            raise ValueError(f"overflow_policy {policy!r} requires maxsize")
        self._name = name
        self._listeners: list[BatchListener] = [as_listener(listener) for listener in listeners]
        self._interval_ms = int(interval_ms)
        self._maxsize = maxsize
        self._policy = policy
        self._put_timeout = put_timeout
        self._on_drop = on_drop
        self._pending: Deque[StructuredEvent] = deque()
        self._lock = threading.Lock()
        self._not_empty = threading.Condition(self._lock)
        self._not_full = threading.Condition(self._lock)
        self._idle = threading.Condition(self._lock)
        self._delivering = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._dropped = 0
        self._delivered_batches = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def queue_interval(self) -> int:
        """Return the delivery interval in milliseconds."""

        return self._interval_ms

    @queue_interval.setter
    def queue_interval(self, interval_ms: int) -> None:
        self._interval_ms = int(interval_ms)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def dropped_count(self) -> int:
        return self._dropped

    @property
    def delivered_batches(self) -> int:
        return self._delivered_batches

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_listener(self, listener: ListenerLike) -> BatchListener:
        """Register ``listener`` and return the registered instance."""

        registered = as_listener(listener)
        with self._lock:
            self._listeners = [*self._listeners, registered]
        return registered

    def remove_listener(self, listener: ListenerLike) -> None:
        target = as_listener(listener)
        with self._lock:
            self._listeners = [existing for existing in self._listeners if existing != target]

    def start(self) -> None:
        """Start the worker thread if it is not already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=f"{self._name}-worker", daemon=True)
        self._thread.start()
        LOGGER.debug("Batch queue %s started", self._name)

    def stop(self, *, timeout: float | None = 5.0) -> None:
        """Interrupt the worker; a batch already being delivered completes.

        Pending events that were not yet drained stay in memory and are not
        delivered.
        """
        thread = self._thread
        self._stop_event.set()
        with self._lock:
            self._not_empty.notify_all()
            self._not_full.notify_all()
            self._idle.notify_all()
        if thread is None:
            return
        if thread is not threading.current_thread():
            thread.join(timeout)
        if thread.is_alive():
            LOGGER.warning("Batch queue %s worker did not stop within %s seconds", self._name, timeout)
            return
        self._thread = None
        LOGGER.debug("Batch queue %s stopped with %d pending events", self._name, self.pending_count)

    def enqueue(self, event: StructuredEvent) -> bool:
        """Append ``event``; returns ``False`` when the overflow policy dropped it."""

        dropped: StructuredEvent | None = None
        with self._lock:
            if self._maxsize is not None and len(self._pending) >= self._maxsize:
                if self._policy == "drop_newest":
                    dropped = event
                elif self._policy == "drop_oldest":
                    dropped = self._pending.popleft()
                elif not self._wait_for_space():
                    dropped = event
            if dropped is not None:
                self._dropped += 1
            if dropped is not event:
                self._pending.append(event)
                self._not_empty.notify()
        if dropped is not None:
            self._handle_drop(dropped)
        return dropped is not event

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or being delivered.

        Returns ``False`` when ``timeout`` elapsed first, or when the worker
        was stopped while events were still pending.
        """

        with self._lock:
            self._idle.wait_for(
                lambda: (not self._pending and not self._delivering) or self._stop_event.is_set(),
                timeout,
            )
            return not self._pending and not self._delivering

    def _wait_for_space(self) -> bool:
        """Wait (lock held) for room under the ``block`` policy."""

        maxsize = self._maxsize or 0
        return self._not_full.wait_for(
            lambda: len(self._pending) < maxsize or self._stop_event.is_set(),
            self._put_timeout,
        ) and len(self._pending) < maxsize

    def _run(self) -> None:
        """Worker loop: wait, snapshot-and-clear, deliver, pace."""
        while not self._stop_event.is_set():
            batch = self._take_batch()
            if batch is None:
                break
            try:
                self._deliver(batch)
            finally:
                with self._lock:
                    self._delivering = False
                    self._idle.notify_all()
            if self._interval_ms > COALESCE_THRESHOLD_MS:
                self._stop_event.wait(self._interval_ms / 1000)
            else:
                time.sleep(0)

    def _take_batch(self) -> list[StructuredEvent] | None:
        with self._lock:
            self._not_empty.wait_for(lambda: bool(self._pending) or self._stop_event.is_set())
            if self._stop_event.is_set():
                return None
            batch = list(self._pending)
            self._pending.clear()
            self._delivering = True
            self._not_full.notify_all()
            return batch

    def _deliver(self, batch: Sequence[StructuredEvent]) -> None:
        """Hand ``batch`` to each listener in registration order."""
        listeners = self._listeners
        for listener in listeners:
            try:
                listener.on_batch(batch)
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Batch listener %r raised; continuing with remaining listeners", listener, exc_info=exc)
        self._delivered_batches += 1

    def _handle_drop(self, event: StructuredEvent) -> None:
        """Invoke the drop callback outside the lock."""
        if self._on_drop is None:
            return
        try:
            self._on_drop(event)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("Queue drop handler raised an exception; continuing", exc_info=exc)


__all__ = ["BatchQueue", "COALESCE_THRESHOLD_MS", "OVERFLOW_POLICIES"]
