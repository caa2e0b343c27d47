"""Receiver polling the log4j ``DBAppender`` tables on a fixed schedule."""

from __future__ import annotations

import logging
import threading

from sqlalchemy.engine import Engine

from lib_log_receiver.adapters.db.poll_job import DatabasePollJob

from .base import Receiver


LOGGER = logging.getLogger(__name__)

DEFAULT_REFRESH_MILLIS = 10_000


class DBReceiver(Receiver):
    """Run a :class:`DatabasePollJob` every ``refresh_millis`` until shutdown.

    The first poll happens immediately after :meth:`start`. Every event the
    job reads goes through :meth:`append`, so pause and threshold apply.
    """

    def __init__(self, *, engine: Engine, refresh_millis: int = DEFAULT_REFRESH_MILLIS, **kwargs) -> None:
        kwargs.setdefault("name", f"db-{engine.url.get_backend_name()}")
        super().__init__(**kwargs)
        if refresh_millis <= 0:
            raise ValueError("refresh_millis must be positive")
        self.refresh_millis = refresh_millis
        self.engine = engine
        self.job = DatabasePollJob(engine, self.append)
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.polls = 0

    def _activate(self) -> None:
        self._stop.clear()
        self._thread = threading.Thread(target=self._schedule, name=f"{self.name}-poller", daemon=True)
        self._thread.start()

    def _deactivate(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
        self._thread = None

    def _schedule(self) -> None:
        while not self._stop.is_set():
            try:
                self.job.execute()
            except Exception:  # noqa: BLE001
                LOGGER.error("%s poll job failed; retrying in %d ms", self.name, self.refresh_millis, exc_info=True)
            self.polls += 1
            self._stop.wait(self.refresh_millis / 1000)


__all__ = ["DBReceiver", "DEFAULT_REFRESH_MILLIS"]
