"""Port describing consumers of delivered event batches.

Purpose
-------
Define the narrow callback interface through which the UI, exporters, and
tests receive batches from a receiver's worker thread.

Contents
--------
* :class:`BatchListener` – runtime-checkable protocol with ``on_batch``.
* :class:`CallbackListener` – adapts a plain callable to the protocol.

System Role
-----------
Listeners run synchronously on the worker thread; a listener that blocks
stalls delivery for that receiver only.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from lib_log_receiver.domain.events import StructuredEvent


@runtime_checkable
class BatchListener(Protocol):
    """Receive a non-empty, ordered batch of events."""

    def on_batch(self, events: Sequence[StructuredEvent]) -> None:
        """Handle ``events``; must not block indefinitely."""


class CallbackListener:
    """Wrap ``callback`` so it can be registered as a :class:`BatchListener`."""

    def __init__(self, callback: Callable[[Sequence[StructuredEvent]], None]) -> None:
        self._callback = callback

    def on_batch(self, events: Sequence[StructuredEvent]) -> None:
        self._callback(events)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CallbackListener):
            return self._callback == other._callback
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._callback)

    def __repr__(self) -> str:
        return f"CallbackListener({self._callback!r})"


ListenerLike = BatchListener | Callable[[Sequence[StructuredEvent]], None]


def as_listener(listener: ListenerLike) -> BatchListener:
    """Return ``listener`` as a :class:`BatchListener`, wrapping callables."""

    if isinstance(listener, BatchListener):
        return listener
    if callable(listener):
        return CallbackListener(listener)
    raise TypeError(f"Unsupported batch listener: {listener!r}")


__all__ = ["BatchListener", "CallbackListener", "ListenerLike", "as_listener"]
