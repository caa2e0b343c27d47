from __future__ import annotations

import logging
from typing import Any

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from lib_log_receiver.adapters.db import DatabasePollJob
from lib_log_receiver.adapters.db.poll_job import ID_PROPERTY, INITIAL_LAST_ID
from lib_log_receiver.adapters.db.schema import (
    EXCEPTION_EXISTS,
    PROPERTIES_EXIST,
    logging_event,
    logging_event_exception,
    logging_event_property,
    metadata,
)
from lib_log_receiver.domain.events import StructuredEvent
from lib_log_receiver.domain.levels import LogLevel
from tests.os_markers import OS_AGNOSTIC

pytestmark = [OS_AGNOSTIC]


def _memory_engine() -> Engine:
    return create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})


@pytest.fixture
def engine() -> Engine:
    engine = _memory_engine()
    metadata.create_all(engine)
    yield engine
    engine.dispose()


def _row(event_id: int, *, flag: int = 0, level: str = "INFO", filename: str = "App.java", **overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "event_id": event_id,
        "sequence_number": event_id,
        "timestamp": 1_000 * event_id,
        "rendered_message": f"message-{event_id}",
        "logger_name": "app",
        "level_string": level,
        "ndc": None,
        "thread_name": "main",
        "reference_flag": flag,
        "caller_filename": filename,
        "caller_class": "app.App",
        "caller_method": "run",
        "caller_line": "12",
    }
    row.update(overrides)
    return row


def _insert(engine: Engine, *rows: dict[str, Any], exceptions: list[dict[str, Any]] = (), properties: list[dict[str, Any]] = ()) -> None:
    with engine.begin() as connection:
        connection.execute(insert(logging_event), list(rows))
        if exceptions:
            connection.execute(insert(logging_event_exception), list(exceptions))
        if properties:
            connection.execute(insert(logging_event_property), list(properties))


def test_cursor_starts_before_any_real_id() -> None:
    job = DatabasePollJob(_memory_engine(), lambda event: None)
    assert job.last_id == INITIAL_LAST_ID


def test_failed_exception_join_still_forwards_all_rows(
    engine: Engine, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    _insert(
        engine,
        _row(3),
        _row(6, flag=EXCEPTION_EXISTS),
        _row(7, flag=EXCEPTION_EXISTS),
        _row(8, flag=PROPERTIES_EXIST),
        exceptions=[
            {"event_id": 6, "i": 1, "trace_line": "\tat app.App.run(App.java:12)"},
            {"event_id": 6, "i": 0, "trace_line": "java.lang.Exception: six"},
            {"event_id": 7, "i": 0, "trace_line": "java.lang.Exception: seven"},
        ],
        properties=[{"event_id": 8, "mapped_key": "application", "mapped_value": "billing"}],
    )
    forwarded: list[StructuredEvent] = []
    job = DatabasePollJob(engine, forwarded.append)
    job.last_id = 5
    original = job.fetch_exception

    def flaky(connection: Connection, event_id: int) -> list[str]:
        if event_id == 7:
            raise OperationalError("SELECT trace_line", {}, Exception("disk I/O error"))
        return original(connection, event_id)

    monkeypatch.setattr(job, "fetch_exception", flaky)
    caplog.set_level(logging.ERROR, logger="lib_log_receiver.adapters.db.poll_job")

    assert job.execute() == 3

    assert job.last_id == 8
    assert [event.properties[ID_PROPERTY] for event in forwarded] == ["6", "7", "8"]
    six, seven, eight = forwarded
    assert six.throwable == ("java.lang.Exception: six", "\tat app.App.run(App.java:12)")
    assert seven.throwable == ()
    assert eight.properties == {ID_PROPERTY: "8", "application": "billing"}
    assert any("event 7" in record.getMessage() for record in caplog.records)


def test_cursor_is_monotonic_and_ranges_do_not_overlap(engine: Engine) -> None:
    forwarded: list[StructuredEvent] = []
    job = DatabasePollJob(engine, forwarded.append)

    _insert(engine, _row(1), _row(2))
    assert job.execute() == 2
    assert job.last_id == 2
    assert job.execute() == 0
    assert job.last_id == 2

    _insert(engine, _row(3))
    assert job.execute() == 1
    assert job.last_id == 3
    assert [event.message for event in forwarded] == ["message-1", "message-2", "message-3"]


def test_primary_query_failure_is_logged_and_cursor_kept(caplog: pytest.LogCaptureFixture) -> None:
    engine = _memory_engine()
    forwarded: list[StructuredEvent] = []
    job = DatabasePollJob(engine, forwarded.append)
    job.last_id = 41
    caplog.set_level(logging.ERROR, logger="lib_log_receiver.adapters.db.poll_job")

    assert job.execute() == 0

    assert job.last_id == 41
    assert forwarded == []
    assert any(record.getMessage() == "Problem receiving events" for record in caplog.records)
    engine.dispose()


def test_row_fields_map_onto_event(engine: Engine) -> None:
    _insert(
        engine,
        _row(1, level="WARN ", ndc="req-9", caller_line="12 "),
        _row(2, level="LOUD", filename="?"),
    )
    forwarded: list[StructuredEvent] = []

    DatabasePollJob(engine, forwarded.append).execute()

    first, second = forwarded
    assert first.level is LogLevel.WARN
    assert first.ndc == "req-9"
    assert first.millis == 1000
    assert first.thread_name == "main"
    assert first.location is not None
    assert (first.location.file, first.location.class_name, first.location.method, first.location.line) == (
        "App.java",
        "app.App",
        "run",
        "12",
    )
    assert second.level is LogLevel.DEBUG
    assert second.location is None
