"""Relational polling source for the log4j ``DBAppender`` schema."""

from __future__ import annotations

from .poll_job import DatabasePollJob, ID_PROPERTY, INITIAL_LAST_ID
from .schema import metadata

__all__ = ["DatabasePollJob", "ID_PROPERTY", "INITIAL_LAST_ID", "metadata"]
