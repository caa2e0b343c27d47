"""Decoder for the log4j ``XMLLayout`` event stream.

Records look like::

    <log4j:event logger="app" timestamp="1000" level="INFO" thread="main">
      <log4j:message><![CDATA[hello]]></log4j:message>
      <log4j:NDC>ndc</log4j:NDC>
      <log4j:MDC><log4j:data name="k" value="v"/></log4j:MDC>
      <log4j:throwable><![CDATA[java.lang.Exception ...]]></log4j:throwable>
      <log4j:locationinfo class="C" method="m" file="C.java" line="10"/>
      <log4j:properties><log4j:data name="p" value="q"/></log4j:properties>
    </log4j:event>

The ``log4j:`` prefix is optional; tag names match case-insensitively.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from lib_log_receiver.domain.events import EventBuilder, LocationInfo, StructuredEvent
from lib_log_receiver.domain.levels import LogLevel

from ._fragment import FragmentEnvelope, local_name, text_of
from .decoder import StreamingDecoder


LOG4J_NAMESPACE = "http://jakarta.apache.org/log4j/"


class XMLDecoder(StreamingDecoder):
    """Decode ``log4j:event`` records."""

    RECORD_TERMINATORS = ("</log4j:event>", "</event>")
    RECORD_TAG = "event"
    ENVELOPE = FragmentEnvelope(
        open_tag=f'<log4j:eventSet version="1.2" xmlns:log4j="{LOG4J_NAMESPACE}">',
        close_tag="</log4j:eventSet>",
        root_tags=("log4j:eventSet", "eventSet"),
    )

    def _decode_record(self, element: ET.Element, builder: EventBuilder) -> StructuredEvent:
        attributes = element.attrib
        level_name = attributes.get("level")
        level = LogLevel.to_level(level_name)
        if level is None:
            raise ValueError(f"unresolvable level {level_name!r}")
        builder.set_logger(attributes["logger"])
        builder.set_timestamp_millis(int(attributes["timestamp"]))
        builder.set_level(level)
        builder.set_thread(attributes.get("thread"))

        for child in element:
            name = local_name(child.tag)
            if name == "message":
                builder.set_message(text_of(child))
            elif name == "ndc":
                builder.set_ndc(text_of(child))
            elif name == "mdc":
                for key, value in _data_entries(child):
                    builder.add_mdc(key, value)
            elif name == "properties":
                for key, value in _data_entries(child):
                    builder.add_property(key, value)
            elif name == "throwable":
                trace = text_of(child).strip()
                if trace:
                    builder.set_throwable(trace.splitlines())
            elif name == "locationinfo":
                location = LocationInfo(
                    file=child.get("file"),
                    class_name=child.get("class"),
                    method=child.get("method"),
                    line=child.get("line"),
                )
                builder.set_location(location if location.is_available else None)
        return builder.build()


def _data_entries(container: ET.Element) -> list[tuple[str, str]]:
    """Return ``(name, value)`` pairs from nested ``data`` elements."""

    entries: list[tuple[str, str]] = []
    for data in container:
        if local_name(data.tag) != "data":
            continue
        name = data.get("name")
        if name is None:
            continue
        entries.append((name, data.get("value", "")))
    return entries


__all__ = ["LOG4J_NAMESPACE", "XMLDecoder"]
