"""UDP receiver decoding one or more XML events per datagram."""

from __future__ import annotations

import logging
import socket
import threading

from lib_log_receiver.adapters.xml import XMLDecoder

from .base import Receiver
from .tcp import DecoderFactory


LOGGER = logging.getLogger(__name__)

PACKET_LENGTH = 16384
RECEIVE_TIMEOUT = 0.5


class UDPReceiver(Receiver):
    """Bind a datagram socket and feed every packet to a shared decoder."""

    def __init__(
        self,
        *,
        port: int,
        host: str = "0.0.0.0",
        decoder_factory: DecoderFactory = XMLDecoder,
        encoding: str = "utf-8",
        **kwargs,
    ) -> None:
        kwargs.setdefault("name", f"xml-udp-{port}")
        super().__init__(**kwargs)
        self.port = port
        self.host = host
        self._encoding = encoding
        self._decoder = decoder_factory()
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._closed = threading.Event()

    @property
    def bound_port(self) -> int | None:
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def _activate(self) -> None:
        self._closed.clear()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((self.host, self.port))
        except OSError:
            sock.close()
            LOGGER.error("%s could not bind %s:%d", self.name, self.host, self.port, exc_info=True)
            raise
        sock.settimeout(RECEIVE_TIMEOUT)
        self._socket = sock
        self._thread = threading.Thread(target=self._receive_loop, name=f"{self.name}-reader", daemon=True)
        self._thread.start()
        LOGGER.info("%s listening on %s:%d", self.name, self.host, self.bound_port)

    def _deactivate(self) -> None:
        if self._closed.is_set():
            return
        self._closed.set()
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._decoder.reset()

    def _receive_loop(self) -> None:
        sock = self._socket
        while sock is not None and not self._closed.is_set():
            try:
                data, _address = sock.recvfrom(PACKET_LENGTH)
            except socket.timeout:
                continue
            except OSError:
                if not self._closed.is_set():
                    LOGGER.error("%s receive failed", self.name, exc_info=True)
                break
            text = data.decode(self._encoding, errors="replace")
            self.append_decoded(self._decoder, text)
        LOGGER.debug("%s reader thread is ending", self.name)


__all__ = ["PACKET_LENGTH", "UDPReceiver"]
