from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path

import httpx
import pytest

from lib_log_receiver.adapters.xml import XMLDecoder
from lib_log_receiver.adapters.xml._fragment import FragmentEnvelope
from lib_log_receiver.adapters.xml.decoder import HTTP_TIMEOUT
from lib_log_receiver.domain.levels import LogLevel
from tests.os_markers import OS_AGNOSTIC

pytestmark = [OS_AGNOSTIC]

SINGLE_EVENT = '<event logger="x" timestamp="1000" level="INFO" thread="t"><message>hi</message></event>'

DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<log4j:eventSet version="1.2" xmlns:log4j="http://jakarta.apache.org/log4j/">
<log4j:event logger="app.db" timestamp="1052046292000" level="WARN" thread="main">
  <log4j:message><![CDATA[slow query <select>]]></log4j:message>
  <log4j:NDC>request-1</log4j:NDC>
  <log4j:MDC><log4j:data name="user" value="alice"/></log4j:MDC>
  <log4j:locationinfo class="app.Db" method="query" file="Db.java" line="42"/>
  <log4j:properties>
    <log4j:data name="application" value="billing"/>
    <log4j:data name="region" value="eu"/>
  </log4j:properties>
</log4j:event>
<log4j:event logger="app.web" timestamp="1052046293000" level="ERROR" thread="http-1">
  <log4j:message>request failed</log4j:message>
  <log4j:throwable><![CDATA[java.lang.IllegalStateException: boom
	at app.Web.handle(Web.java:10)
]]></log4j:throwable>
</log4j:event>
<log4j:event logger="app.web" timestamp="1052046294000" level="DEBUG" thread="http-2">
  <log4j:message>done</log4j:message>
</log4j:event>
</log4j:eventSet>
"""


def _summary(events) -> list[tuple[str, LogLevel, str, int]]:
    return [(event.logger_name, event.level, event.message, event.millis) for event in events]


def test_split_event_decodes_exactly_once_after_second_chunk() -> None:
    decoder = XMLDecoder()

    assert decoder.decode_events(SINGLE_EVENT[:37]) is None
    events = decoder.decode_events(SINGLE_EVENT[37:])

    assert events is not None and len(events) == 1
    event = events[0]
    assert (event.logger_name, event.level, event.message, event.thread_name) == ("x", LogLevel.INFO, "hi", "t")
    assert event.millis == 1000
    assert decoder.partial == ""


@pytest.mark.parametrize("offset", range(1, len(SINGLE_EVENT)))
def test_any_split_offset_yields_one_event(offset: int) -> None:
    decoder = XMLDecoder()
    events = [*(decoder.decode_events(SINGLE_EVENT[:offset]) or []), *(decoder.decode_events(SINGLE_EVENT[offset:]) or [])]
    assert [(event.logger_name, event.message) for event in events] == [("x", "hi")]


def test_chunk_boundaries_do_not_change_the_decoded_sequence() -> None:
    expected = _summary(XMLDecoder().decode(DOCUMENT))
    assert len(expected) == 3

    for size in (1, 7, 64, 333):
        decoder = XMLDecoder()
        produced = []
        for start in range(0, len(DOCUMENT), size):
            produced.extend(decoder.decode_events(DOCUMENT[start : start + size]) or [])
        assert _summary(produced) == expected, f"chunk size {size}"


def test_document_fields_are_mapped_onto_the_event() -> None:
    first, second, third = XMLDecoder().decode(DOCUMENT)

    assert first.message == "slow query <select>"
    assert first.ndc == "request-1"
    assert first.mdc == {"user": "alice"}
    assert first.properties == {"application": "billing", "region": "eu"}
    assert first.location is not None
    assert (first.location.class_name, first.location.method, first.location.file, first.location.line) == (
        "app.Db",
        "query",
        "Db.java",
        "42",
    )
    assert second.throwable == ("java.lang.IllegalStateException: boom", "\tat app.Web.handle(Web.java:10)")
    assert second.location is None
    assert third.level is LogLevel.DEBUG


def test_trailing_partial_record_is_buffered_until_completed() -> None:
    decoder = XMLDecoder()
    events = decoder.decode_events(SINGLE_EVENT + '<event logger="y" timestamp="2000" level="ERROR">')

    assert events is not None and [event.logger_name for event in events] == ["x"]
    assert decoder.partial.startswith('<event logger="y"')

    completed = decoder.decode_events("<message>later</message></event>")
    assert completed is not None and [event.message for event in completed] == ["later"]


def test_whitespace_between_chunks_is_harmless() -> None:
    decoder = XMLDecoder()
    assert decoder.decode_events("\n  ") is None
    assert decoder.decode_events("") is None
    events = decoder.decode_events(SINGLE_EVENT)
    assert events is not None and len(events) == 1


def test_malformed_fragment_is_logged_and_stream_recovers(caplog: pytest.LogCaptureFixture) -> None:
    decoder = XMLDecoder()
    caplog.set_level(logging.ERROR, logger="lib_log_receiver.adapters.xml.decoder")

    broken = '<event logger="x" timestamp="1000" level="INFO"><message>hi</mesage></event>'
    assert decoder.decode_events(broken) == []
    assert any("could not parse" in record.getMessage() for record in caplog.records)

    events = decoder.decode_events(SINGLE_EVENT)
    assert events is not None and [event.message for event in events] == ["hi"]


def test_record_with_unknown_level_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_log_receiver.adapters.xml.decoder")
    document = '<event logger="x" timestamp="1" level="LOUD"><message>a</message></event>' + SINGLE_EVENT

    events = XMLDecoder().decode(document)

    assert [event.message for event in events] == ["hi"]
    assert any("skipped" in record.getMessage() for record in caplog.records)


def test_additional_properties_override_event_properties() -> None:
    record = (
        '<event logger="x" timestamp="1" level="INFO"><message>m</message>'
        '<properties><data name="application" value="from-event"/><data name="keep" value="yes"/></properties>'
        "</event>"
    )
    decoder = XMLDecoder(additional_properties={"application": "from-receiver", "hostname": "peer"})

    (event,) = decoder.decode(record)

    assert event.properties == {"application": "from-receiver", "keep": "yes", "hostname": "peer"}


def test_decode_without_complete_record_returns_empty_list() -> None:
    decoder = XMLDecoder()
    assert decoder.decode('<event logger="x" timestamp="1" level="INFO">') == []
    assert decoder.decode("") == []
    assert decoder.decode_first("<event") is None
    assert decoder.partial == ""


def test_decode_first_returns_first_event() -> None:
    event = XMLDecoder().decode_first(DOCUMENT)
    assert event is not None and event.logger_name == "app.db"


def test_decode_url_reads_plain_files_in_small_chunks(tmp_path: Path) -> None:
    path = tmp_path / "events.xml"
    path.write_text(DOCUMENT, encoding="utf-8")

    events = XMLDecoder(chunk_lines=2).decode_url(path)

    assert _summary(events) == _summary(XMLDecoder().decode(DOCUMENT))


def test_decode_url_opens_first_entry_of_zip_archive(tmp_path: Path) -> None:
    archive = tmp_path / "events.zip"
    with zipfile.ZipFile(archive, "w") as handle:
        handle.writestr("nested/", "")
        handle.writestr("nested/events.xml", DOCUMENT)
        handle.writestr("other.xml", SINGLE_EVENT)

    events = XMLDecoder().decode_url(str(archive))

    assert [event.logger_name for event in events] == ["app.db", "app.web", "app.web"]


def test_decode_url_accepts_file_urls(tmp_path: Path) -> None:
    path = tmp_path / "events.xml"
    path.write_text(SINGLE_EVENT, encoding="utf-8")

    events = XMLDecoder().decode_url(path.as_uri())

    assert [event.message for event in events] == ["hi"]


def test_decode_url_propagates_missing_file(tmp_path: Path) -> None:
    decoder = XMLDecoder()
    with pytest.raises(OSError):
        decoder.decode_url(tmp_path / "missing.xml")
    assert decoder.partial == ""


def test_decode_url_resets_buffer_left_by_streaming(tmp_path: Path) -> None:
    path = tmp_path / "events.xml"
    path.write_text(SINGLE_EVENT, encoding="utf-8")
    decoder = XMLDecoder()
    decoder.decode_events("<event logger=")

    events = decoder.decode_url(path)

    assert [event.message for event in events] == ["hi"]
    assert decoder.partial == ""


def test_decoder_rejects_non_positive_chunk_lines() -> None:
    with pytest.raises(ValueError, match="chunk_lines"):
        XMLDecoder(chunk_lines=0)


def test_fragment_envelope_wraps_parses_and_unwraps_separately() -> None:
    envelope = XMLDecoder.ENVELOPE
    wrapped = envelope.wrap('<?xml version="1.0"?><log4j:eventSet>' + SINGLE_EVENT)

    assert wrapped.startswith("<log4j:eventSet ")
    assert wrapped.count("eventSet") == 2
    records = envelope.unwrap(envelope.parse(SINGLE_EVENT + SINGLE_EVENT))
    assert [record.get("logger") for record in records] == ["x", "x"]


def test_fragment_envelope_strips_doctype() -> None:
    envelope = FragmentEnvelope("<log>", "</log>", root_tags=("log",))
    wrapped = envelope.wrap('<!DOCTYPE log SYSTEM "logger.dtd">\n<log>\n<record/>')
    assert "DOCTYPE" not in wrapped
    assert [child.tag for child in envelope.unwrap(envelope.parse('<!DOCTYPE log SYSTEM "logger.dtd"><record/>'))] == [
        "record"
    ]


def test_out_of_range_timestamp_skips_only_that_record(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_log_receiver.adapters.xml.decoder")
    huge = '<event logger="x" timestamp="99999999999999999999999" level="INFO"><message>far</message></event>'
    decoder = XMLDecoder()

    events = decoder.decode_events(huge + SINGLE_EVENT)

    assert events is not None and [event.message for event in events] == ["hi"]
    assert any("skipped" in record.getMessage() for record in caplog.records)
    assert decoder.partial == ""


def _mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=True)


def test_decode_url_fetches_http_locators_through_the_client() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/logs/app.xml"
        return httpx.Response(200, content=DOCUMENT.encode("utf-8"))

    client = _mock_client(handler)
    try:
        events = XMLDecoder(http_client=client, chunk_lines=2).decode_url("https://logs.example/logs/app.xml")
    finally:
        client.close()

    assert [event.logger_name for event in events] == ["app.db", "app.web", "app.web"]


def test_decode_url_unpacks_zip_archives_served_over_http() -> None:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("events.xml", SINGLE_EVENT)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=buffer.getvalue())

    client = _mock_client(handler)
    try:
        events = XMLDecoder(http_client=client).decode_url("http://logs.example/archive.zip")
    finally:
        client.close()

    assert [event.message for event in events] == ["hi"]


def _not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(404, content=b"missing")


def _stalled(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("stalled", request=request)


@pytest.mark.parametrize("respond", [_not_found, _stalled], ids=["error-status", "timeout"])
def test_http_failures_surface_as_os_errors(respond) -> None:
    client = _mock_client(respond)
    decoder = XMLDecoder(http_client=client)
    try:
        with pytest.raises(OSError, match="could not fetch"):
            decoder.decode_url("https://logs.example/app.xml")
    finally:
        client.close()
    assert decoder.partial == ""


def test_fetch_url_uses_an_explicit_timeout() -> None:
    assert HTTP_TIMEOUT.read == 30.0
    assert HTTP_TIMEOUT.connect == 10.0


def test_unsupported_locator_scheme_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unsupported locator scheme"):
        XMLDecoder().decode_url("ftp://logs.example/app.xml")
