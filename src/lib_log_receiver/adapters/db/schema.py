"""SQLAlchemy Core description of the log4j ``DBAppender`` tables.

The poll job only reads these tables; :data:`metadata` is exposed so tests and
tooling can create an empty schema with ``metadata.create_all(engine)``.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, ForeignKey, Integer, MetaData, SmallInteger, String, Table, Text

# Bits of ``logging_event.reference_flag`` announcing rows in the secondary tables.
PROPERTIES_EXIST = 0x01
EXCEPTION_EXISTS = 0x02

UNKNOWN_LOCATION = "?"

metadata = MetaData()

logging_event = Table(
    "logging_event",
    metadata,
    Column("event_id", BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    Column("sequence_number", BigInteger),
    Column("timestamp", BigInteger, nullable=False),
    Column("rendered_message", Text, nullable=False),
    Column("logger_name", String(254), nullable=False),
    Column("level_string", String(254), nullable=False),
    Column("ndc", Text),
    Column("thread_name", String(254)),
    Column("reference_flag", SmallInteger),
    Column("caller_filename", String(254), nullable=False),
    Column("caller_class", String(254), nullable=False),
    Column("caller_method", String(254), nullable=False),
    Column("caller_line", String(4), nullable=False),
)

logging_event_property = Table(
    "logging_event_property",
    metadata,
    Column("event_id", BigInteger, ForeignKey("logging_event.event_id"), primary_key=True),
    Column("mapped_key", String(254), primary_key=True),
    Column("mapped_value", Text),
)

logging_event_exception = Table(
    "logging_event_exception",
    metadata,
    Column("event_id", BigInteger, ForeignKey("logging_event.event_id"), primary_key=True),
    Column("i", SmallInteger, primary_key=True),
    Column("trace_line", String(254), nullable=False),
)


__all__ = [
    "EXCEPTION_EXISTS",
    "PROPERTIES_EXIST",
    "UNKNOWN_LOCATION",
    "logging_event",
    "logging_event_exception",
    "logging_event_property",
    "metadata",
]
