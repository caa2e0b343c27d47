from __future__ import annotations

import io
import threading
from collections.abc import Callable, Iterator, Sequence
from datetime import datetime, timezone

import pytest
from rich.console import Console

from lib_log_receiver import config as receiver_config
from lib_log_receiver.domain.events import StructuredEvent
from lib_log_receiver.domain.levels import LogLevel


EventFactory = Callable[..., StructuredEvent]


@pytest.fixture
def make_event() -> EventFactory:
    """Return a factory building INFO events numbered by ``index``."""

    def factory(index: int = 0, *, level: LogLevel = LogLevel.INFO, **fields: object) -> StructuredEvent:
        values: dict[str, object] = {
            "logger_name": "tests",
            "level": level,
            "timestamp": datetime(2025, 9, 23, 12, 0, tzinfo=timezone.utc),
            "thread_name": "main",
            "message": f"message-{index}",
        }
        values.update(fields)
        return StructuredEvent(**values)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def record_console() -> Console:
    return Console(file=io.StringIO(), record=True, width=200, color_system=None)


@pytest.fixture(autouse=True)
def _reset_dotenv_state() -> Iterator[None]:
    receiver_config._reset_dotenv_state_for_testing()
    yield
    receiver_config._reset_dotenv_state_for_testing()


class BatchCollector:
    """Thread-safe batch listener that lets tests wait for deliveries."""

    def __init__(self) -> None:
        self.batches: list[list[StructuredEvent]] = []
        self._condition = threading.Condition()

    def on_batch(self, events: Sequence[StructuredEvent]) -> None:
        with self._condition:
            self.batches.append(list(events))
            self._condition.notify_all()

    @property
    def events(self) -> list[StructuredEvent]:
        with self._condition:
            return [event for batch in self.batches for event in batch]

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        with self._condition:
            return self._condition.wait_for(lambda: sum(len(batch) for batch in self.batches) >= count, timeout)


@pytest.fixture
def collector() -> BatchCollector:
    return BatchCollector()
