from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from lib_log_receiver.adapters.ecs import ECSDecoder, parse_timestamp
from lib_log_receiver.domain.levels import LogLevel
from tests.os_markers import OS_AGNOSTIC

pytestmark = [OS_AGNOSTIC]

RECORD = {
    "@timestamp": "2024-03-01T10:15:30.250Z",
    "log.level": "warn",
    "message": "disk almost full",
    "process.thread.name": "monitor",
    "log.logger": "app.disk",
    "tags": ["ops", "storage"],
}


def _line(**overrides: object) -> str:
    return json.dumps({**RECORD, **overrides}) + "\n"


def test_flat_ecs_fields_are_mapped_onto_the_event() -> None:
    event = ECSDecoder().decode_first(_line())

    assert event is not None
    assert event.logger_name == "app.disk"
    assert event.level is LogLevel.WARN
    assert event.message == "disk almost full"
    assert event.thread_name == "monitor"
    assert event.timestamp == datetime(2024, 3, 1, 10, 15, 30, 250000, tzinfo=timezone.utc)
    assert event.properties == {"tags": "ops,storage"}


def test_nested_ecs_objects_are_accepted() -> None:
    record = {
        "@timestamp": "2024-03-01T12:00:00+02:00",
        "log": {"level": "ERROR", "logger": "app.nested"},
        "process": {"thread": {"name": "worker-1"}},
        "message": "nested",
        "error": {"stack_trace": "java.lang.IllegalStateException: boom\n\tat app.Main.run(Main.java:3)"},
    }

    event = ECSDecoder().decode_first(json.dumps(record))

    assert event is not None
    assert (event.logger_name, event.level, event.thread_name) == ("app.nested", LogLevel.ERROR, "worker-1")
    assert event.timestamp.hour == 10
    assert event.throwable == ("java.lang.IllegalStateException: boom", "\tat app.Main.run(Main.java:3)")


def test_line_split_across_chunks_decodes_once() -> None:
    decoder = ECSDecoder()
    payload = _line(message="first") + _line(message="second")
    cut = len(payload) // 3

    assert decoder.decode_events(payload[:cut]) is None
    events = decoder.decode_events(payload[cut:])

    assert events is not None and [event.message for event in events] == ["first", "second"]
    assert decoder.partial == ""


def test_unterminated_line_stays_buffered() -> None:
    decoder = ECSDecoder()
    events = decoder.decode_events(_line(message="done") + json.dumps(RECORD))

    assert events is not None and [event.message for event in events] == ["done"]
    assert decoder.partial == json.dumps(RECORD)
    decoder.reset()
    assert decoder.partial == ""


def test_several_objects_on_one_line_are_decoded() -> None:
    line = json.dumps({**RECORD, "message": "a"}) + " " + json.dumps({**RECORD, "message": "b"})

    assert [event.message for event in ECSDecoder().decode(line)] == ["a", "b"]


def test_malformed_line_is_logged_and_next_line_decodes(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_log_receiver.adapters.ecs")
    decoder = ECSDecoder()

    events = decoder.decode_events('{"@timestamp": "2024-03-01T10:15:30Z", "log.level": \n' + _line(message="ok"))

    assert events is not None and [event.message for event in events] == ["ok"]
    assert any("could not parse" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize(
    "overrides",
    [
        {"log.level": "LOUD"},
        {"@timestamp": None},
        {"@timestamp": "2024-03-01T10:15:30"},
        {"@timestamp": "yesterday"},
    ],
    ids=["unknown-level", "missing-timestamp", "naive-timestamp", "garbage-timestamp"],
)
def test_undecodable_records_are_skipped(overrides: dict[str, object]) -> None:
    document = _line(**overrides) + _line(message="kept")

    assert [event.message for event in ECSDecoder().decode(document)] == ["kept"]


def test_non_object_values_are_ignored() -> None:
    assert ECSDecoder().decode('[1, 2]\n"text"\n') == []


def test_additional_properties_are_merged() -> None:
    event = ECSDecoder(additional_properties={"hostname": "web-1", "tags": "override"}).decode_first(_line())

    assert event is not None
    assert event.properties == {"hostname": "web-1", "tags": "override"}


def test_decode_url_reads_ecs_files(tmp_path: Path) -> None:
    path = tmp_path / "app.json"
    path.write_text(_line(message="one") + _line(message="two"), encoding="utf-8")

    assert [event.message for event in ECSDecoder().decode_url(path)] == ["one", "two"]


def test_parse_timestamp_truncates_nanoseconds() -> None:
    parsed = parse_timestamp("2024-03-01T10:15:30.123456789Z")
    assert parsed.microsecond == 123456
    assert parsed.tzinfo == timezone.utc
