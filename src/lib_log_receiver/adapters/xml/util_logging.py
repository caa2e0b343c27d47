"""Decoder for the java.util.logging ``XMLFormatter`` interchange format.

Records look like::

    <record>
      <date>2003-05-04T11:04:52</date>
      <millis>1052046292000</millis>
      <sequence>3</sequence>
      <logger>app</logger>
      <level>SEVERE</level>
      <class>com.example.Service</class>
      <method>run</method>
      <thread>10</thread>
      <message>boom</message>
      <exception>
        <message>java.lang.IllegalStateException: bad</message>
        <frame><class>com.example.Service</class><method>run</method><line>42</line></frame>
      </exception>
    </record>

Documents normally start with an XML prolog, a ``logger.dtd`` doctype and a
``<log>`` root; these are dropped before the synthetic root is applied.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from lib_log_receiver.domain.events import EventBuilder, LocationInfo, StructuredEvent
from lib_log_receiver.domain.levels import LogLevel

from ._fragment import FragmentEnvelope, local_name, text_of
from .decoder import StreamingDecoder


SEQUENCE_PROPERTY = "log4jid"


class UtilLoggingXMLDecoder(StreamingDecoder):
    """Decode ``record`` elements written by java.util.logging."""

    RECORD_TERMINATORS = ("</record>",)
    RECORD_TAG = "record"
    ENVELOPE = FragmentEnvelope(open_tag="<log>", close_tag="</log>", root_tags=("log",))

    def _decode_record(self, element: ET.Element, builder: EventBuilder) -> StructuredEvent:
        builder.set_timestamp_millis(0)
        builder.set_level(LogLevel.from_util_logging(None))
        class_name: str | None = None
        method: str | None = None

        for child in element:
            name = local_name(child.tag)
            if name == "logger":
                builder.set_logger(text_of(child))
            elif name == "millis":
                builder.set_timestamp_millis(int(text_of(child).strip()))
            elif name == "level":
                builder.set_level(LogLevel.from_util_logging(text_of(child)))
            elif name == "thread":
                builder.set_thread(text_of(child))
            elif name == "sequence":
                builder.add_property(SEQUENCE_PROPERTY, text_of(child).strip())
            elif name == "message":
                builder.set_message(text_of(child))
            elif name == "class":
                class_name = text_of(child)
            elif name == "method":
                method = text_of(child)
            elif name == "exception":
                builder.set_throwable(_trace_lines(child))

        if class_name is not None or method is not None:
            builder.set_location(LocationInfo(class_name=class_name, method=method))
        return builder.build()


def _trace_lines(exception: ET.Element) -> list[str]:
    """Render the ``exception`` element as stack-trace lines."""

    lines: list[str] = []
    for child in exception:
        name = local_name(child.tag)
        if name == "message":
            lines.append(text_of(child))
        elif name == "frame":
            parts = {local_name(part.tag): text_of(part) for part in child}
            frame = f"\tat {parts.get('class', '?')}.{parts.get('method', '?')}"
            line = parts.get("line")
            lines.append(f"{frame}({line})" if line else f"{frame}(Unknown Source)")
    return lines


__all__ = ["SEQUENCE_PROPERTY", "UtilLoggingXMLDecoder"]
