"""Receivers: the unit of lifecycle control owning one source and one queue."""

from __future__ import annotations

from .base import PropertyChangeCallback, Receiver
from .db import DBReceiver
from .file import XMLFileReceiver
from .json_socket import JsonReceiver
from .tcp import XMLSocketReceiver
from .udp import UDPReceiver

__all__ = [
    "DBReceiver",
    "JsonReceiver",
    "PropertyChangeCallback",
    "Receiver",
    "UDPReceiver",
    "XMLFileReceiver",
    "XMLSocketReceiver",
]
