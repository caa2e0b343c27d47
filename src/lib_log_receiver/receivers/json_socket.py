"""TCP receiver accepting Elastic Common Schema JSON events.

Peers write one JSON object per line. Connection handling (one thread and
one decoder per peer, ``hostname`` property) is shared with
:class:`XMLSocketReceiver`; only the decoder and the default port differ.
"""

from __future__ import annotations

from lib_log_receiver.adapters.ecs import ECSDecoder

from .tcp import DecoderFactory, XMLSocketReceiver


DEFAULT_PORT = 4449


class JsonReceiver(XMLSocketReceiver):
    """Listen on a TCP port and decode newline-framed ECS JSON events."""

    def __init__(
        self,
        *,
        port: int = DEFAULT_PORT,
        decoder_factory: DecoderFactory = ECSDecoder,
        **kwargs,
    ) -> None:
        kwargs.setdefault("name", f"json-tcp-{port}")
        super().__init__(port=port, decoder_factory=decoder_factory, **kwargs)


__all__ = ["DEFAULT_PORT", "JsonReceiver"]
