"""Pull-based event source reading the log4j ``DBAppender`` tables.

Purpose
-------
On every invocation fetch the rows newer than the last seen id, rebuild one
:class:`StructuredEvent` per row (joined with its exception and property
rows) and forward it to the owning receiver's append boundary.

Contents
--------
* :class:`DatabasePollJob` - cursor-tracking job invoked by a scheduler.

Failure model
-------------
``last_id`` moves forward as soon as a row has been read, before it is
enriched. A failing secondary query therefore never causes the row to be
fetched again; the event is forwarded without the missing data. A failing
primary query is logged and the job returns; the next invocation retries from
the current cursor. The connection is released on every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from lib_log_receiver.domain.events import EventBuilder, LocationInfo, StructuredEvent
from lib_log_receiver.domain.levels import LogLevel

from .schema import (
    EXCEPTION_EXISTS,
    PROPERTIES_EXIST,
    UNKNOWN_LOCATION,
    logging_event,
    logging_event_exception,
    logging_event_property,
)


LOGGER = logging.getLogger(__name__)

INITIAL_LAST_ID = -32768
ID_PROPERTY = "log4jid"

EventSink = Callable[[StructuredEvent], Any]


class DatabasePollJob:
    """Fetch rows newer than :attr:`last_id` and forward them as events.

    Parameters
    ----------
    engine:
        SQLAlchemy :class:`Engine` used as the connection source.
    sink:
        Append boundary of the owning receiver (it applies pause and
        threshold checks).
    """

    def __init__(self, engine: Engine, sink: EventSink) -> None:
        self._engine = engine
        self._sink = sink
        self.last_id: int = INITIAL_LAST_ID

    def execute(self) -> int:
        """Run one poll cycle and return the number of events forwarded."""

        LOGGER.debug("Polling logging_event for ids greater than %d", self.last_id)
        forwarded = 0
        try:
            with self._engine.connect() as connection:
                rows = self._fetch_new_rows(connection)
                for row in rows:
                    self.last_id = int(row["event_id"])
                    event = self._build_event(connection, row)
                    if event is None:
                        continue
                    self._sink(event)
                    forwarded += 1
        except SQLAlchemyError as exc:
            LOGGER.error("Problem receiving events", exc_info=exc)
        return forwarded

    def _fetch_new_rows(self, connection: Connection) -> list[Mapping[str, Any]]:
        statement = (
            select(
                logging_event.c.sequence_number,
                logging_event.c.timestamp,
                logging_event.c.rendered_message,
                logging_event.c.logger_name,
                logging_event.c.level_string,
                logging_event.c.ndc,
                logging_event.c.thread_name,
                logging_event.c.reference_flag,
                logging_event.c.caller_filename,
                logging_event.c.caller_class,
                logging_event.c.caller_method,
                logging_event.c.caller_line,
                logging_event.c.event_id,
            )
            .where(logging_event.c.event_id > self.last_id)
            .order_by(logging_event.c.event_id.asc())
        )
        return list(connection.execute(statement).mappings().all())

    def _build_event(self, connection: Connection, row: Mapping[str, Any]) -> StructuredEvent | None:
        """Assemble the event for ``row``; ``None`` when the row is unusable."""

        event_id = int(row["event_id"])
        builder = EventBuilder()
        try:
            builder.set_timestamp_millis(int(row["timestamp"]))
            builder.set_message(row["rendered_message"])
            builder.set_logger(row["logger_name"])
            builder.set_level(LogLevel.to_level((row["level_string"] or "").strip(), LogLevel.DEBUG))
            builder.set_ndc(row["ndc"] or None)
            builder.set_thread(row["thread_name"])
            builder.set_location(_location(row))
        except (TypeError, ValueError) as exc:
            LOGGER.warning("Skipping logging_event row %d: %s", event_id, exc)
            return None
        builder.add_property(ID_PROPERTY, str(event_id))

        mask = int(row["reference_flag"] or 0)
        if mask & EXCEPTION_EXISTS:
            try:
                builder.set_throwable(self.fetch_exception(connection, event_id))
            except SQLAlchemyError as exc:
                LOGGER.error("Could not load exception rows for event %d", event_id, exc_info=exc)
                connection.rollback()
        if mask & PROPERTIES_EXIST:
            try:
                builder.update_properties(self.fetch_properties(connection, event_id))
            except SQLAlchemyError as exc:
                LOGGER.error("Could not load property rows for event %d", event_id, exc_info=exc)
                connection.rollback()
        return builder.build()

    def fetch_exception(self, connection: Connection, event_id: int) -> list[str]:
        """Return the trace lines stored for ``event_id`` in index order."""

        statement = (
            select(logging_event_exception.c.trace_line)
            .where(logging_event_exception.c.event_id == event_id)
            .order_by(logging_event_exception.c.i.asc())
        )
        return [line for (line,) in connection.execute(statement)]

    def fetch_properties(self, connection: Connection, event_id: int) -> dict[str, str]:
        """Return the key/value properties stored for ``event_id``."""

        statement = select(logging_event_property.c.mapped_key, logging_event_property.c.mapped_value).where(
            logging_event_property.c.event_id == event_id
        )
        return {key: value for key, value in connection.execute(statement)}


def _location(row: Mapping[str, Any]) -> LocationInfo | None:
    filename = row["caller_filename"]
    if filename is None or filename == UNKNOWN_LOCATION:
        return None
    line = (row["caller_line"] or "").strip()
    return LocationInfo(
        file=filename,
        class_name=row["caller_class"],
        method=row["caller_method"],
        line=line or None,
    )


__all__ = ["DatabasePollJob", "ID_PROPERTY", "INITIAL_LAST_ID"]
