"""Public package surface for the batched log receivers.

Exports the domain types, the decoders and the receivers so callers can write
``from lib_log_receiver import XMLSocketReceiver, StructuredEvent`` without
knowing the layer a class lives in. :func:`summary_info` backs the CLI
``info`` command.
"""

from __future__ import annotations

from .adapters import (
    DECODERS,
    BatchQueue,
    DatabasePollJob,
    ECSDecoder,
    RichConsoleListener,
    StreamingDecoder,
    UtilLoggingXMLDecoder,
    XMLDecoder,
)
from .application.ports import BatchListener
from .application.use_cases.shutdown import create_shutdown
from .config import ReceiverSettings, enable_dotenv
from .domain import EventBuilder, LocationInfo, LogLevel, StructuredEvent
from .receivers import DBReceiver, JsonReceiver, Receiver, UDPReceiver, XMLFileReceiver, XMLSocketReceiver


def summary_info() -> str:
    """Return the metadata banner printed by ``lib_log_receiver info``.

    Examples
    --------
    >>> "version" in summary_info()
    True
    """
    from . import __init__conf__

    lines: list[str] = []
    __init__conf__.print_info(writer=lines.append)
    return "".join(lines)


__all__ = [
    "BatchListener",
    "BatchQueue",
    "DBReceiver",
    "DECODERS",
    "DatabasePollJob",
    "ECSDecoder",
    "EventBuilder",
    "JsonReceiver",
    "LocationInfo",
    "LogLevel",
    "Receiver",
    "ReceiverSettings",
    "RichConsoleListener",
    "StreamingDecoder",
    "StructuredEvent",
    "UDPReceiver",
    "UtilLoggingXMLDecoder",
    "XMLDecoder",
    "XMLFileReceiver",
    "XMLSocketReceiver",
    "create_shutdown",
    "enable_dotenv",
    "summary_info",
]
