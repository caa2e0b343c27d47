"""Rich-powered batch listener printing delivered events.

Purpose
-------
Give command-line users a readable view of the batches a receiver delivers,
coloured per level.

Contents
--------
* :data:`_STYLE_MAP` - default level-to-style mapping.
* :class:`RichConsoleListener` - :class:`BatchListener` used by the CLI.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Mapping, MutableMapping

from rich.console import Console
from rich.markup import escape

from lib_log_receiver.application.ports.listener import BatchListener
from lib_log_receiver.domain.events import StructuredEvent
from lib_log_receiver.domain.levels import LogLevel


#: Default Rich styles keyed by :class:`LogLevel` severity.
_STYLE_MAP: Mapping[LogLevel, str] = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "cyan",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "red",
    LogLevel.FATAL: "bold red",
}


class RichConsoleListener(BatchListener):
    """Render each delivered event as one console line."""

    def __init__(
        self,
        *,
        console: Console | None = None,
        force_color: bool = False,
        no_color: bool = False,
        show_properties: bool = True,
        styles: MutableMapping[LogLevel | str, str] | None = None,
    ) -> None:
        if console is not None:
            self._console = console
        else:
            self._console = Console(force_terminal=force_color, no_color=no_color)
        self._no_color = no_color
        self._show_properties = show_properties
        merged = dict(_STYLE_MAP)
        for key, value in (styles or {}).items():
            level = LogLevel.from_name(key) if isinstance(key, str) else key
            merged[level] = value
        self._style_map = merged
        self.events_rendered = 0

    def on_batch(self, events: Sequence[StructuredEvent]) -> None:
        """Print every event in ``events``.

        Examples
        --------
        >>> from io import StringIO
        >>> from lib_log_receiver.domain import EventBuilder
        >>> event = EventBuilder().set_logger("svc").set_level(LogLevel.INFO).set_message("msg").build()
        >>> console = Console(file=StringIO(), record=True)
        >>> RichConsoleListener(console=console).on_batch([event])
        >>> 'msg' in console.export_text()
        True
        """
        for event in events:
            style = "" if self._no_color else self._style_map.get(event.level, "")
            self._console.print(escape(self.format_line(event)), style=style, highlight=False)
            for line in event.throwable:
                self._console.print(escape(line), style=style, highlight=False)
        self.events_rendered += len(events)

    def format_line(self, event: StructuredEvent) -> str:
        """Return a single-line rendering of ``event``.

        Examples
        --------
        >>> from lib_log_receiver.domain import EventBuilder
        >>> event = EventBuilder().set_logger("svc").set_level(LogLevel.WARN).set_thread("main").set_message("msg").build()
        >>> RichConsoleListener(console=Console(file=None)).format_line(event)
        '1970-01-01T00:00:00+00:00  WARN [main] svc - msg'
        """
        thread = f" [{event.thread_name}]" if event.thread_name else ""
        ndc = f" {event.ndc}" if event.ndc else ""
        line = f"{event.timestamp.isoformat()} {event.level.name:>5}{thread} {event.logger_name}{ndc} - {event.message}"
        if self._show_properties:
            context = {**event.mdc, **event.properties}
            if context:
                line += " " + " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return line


__all__ = ["RichConsoleListener"]
