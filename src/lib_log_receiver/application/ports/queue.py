"""Port describing the per-receiver batch queue."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from lib_log_receiver.domain.events import StructuredEvent


@runtime_checkable
class BatchQueuePort(Protocol):
    """Bridge between producer threads and the batch delivery worker."""

    queue_interval: int

    def start(self) -> None:
        """Start the delivery worker."""

    def stop(self, *, timeout: float | None = None) -> None:
        """Stop the worker; an in-flight batch completes first."""

    def enqueue(self, event: StructuredEvent) -> bool:
        """Append ``event`` for delivery in the next batch."""


__all__ = ["BatchQueuePort"]
