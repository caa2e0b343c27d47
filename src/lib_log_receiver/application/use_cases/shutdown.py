"""Shutdown orchestration for a set of running receivers.

Purpose
-------
Provide one callable that stops every receiver, so a failing transport does
not prevent the remaining receivers from releasing their resources.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Protocol


LOGGER = logging.getLogger(__name__)


class _Stoppable(Protocol):
    name: str

    def shutdown(self) -> None: ...


def create_shutdown(receivers: Iterable[_Stoppable]) -> Callable[[], list[str]]:
    """Return a callable shutting down ``receivers`` in order.

    The callable returns the names of receivers whose shutdown raised.
    """

    targets = list(receivers)

    def shutdown() -> list[str]:
        """Shut down every receiver, logging and continuing past failures."""
        failed: list[str] = []
        for receiver in targets:
            try:
                receiver.shutdown()
            except Exception as exc:  # noqa: BLE001
                LOGGER.error("Receiver %s failed to shut down cleanly", receiver.name, exc_info=exc)
                failed.append(receiver.name)
        return failed

    return shutdown


__all__ = ["create_shutdown"]
