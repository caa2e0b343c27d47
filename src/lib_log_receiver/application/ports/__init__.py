"""Protocols separating receivers from concrete adapters."""

from __future__ import annotations

from .decoder import DecoderPort
from .listener import BatchListener, CallbackListener, ListenerLike, as_listener
from .queue import BatchQueuePort

__all__ = [
    "BatchListener",
    "BatchQueuePort",
    "CallbackListener",
    "DecoderPort",
    "ListenerLike",
    "as_listener",
]
