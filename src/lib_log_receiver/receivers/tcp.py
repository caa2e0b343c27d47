"""TCP receiver accepting streamed XML log events.

Each accepted connection is read on its own thread with its own decoder, so
partial-record buffering never mixes bytes from two peers. The peer address
is attached to every event as the ``hostname`` property.
"""

from __future__ import annotations

import codecs
import logging
import socket
import threading
from collections.abc import Callable

from lib_log_receiver.adapters.xml import XMLDecoder
from lib_log_receiver.application.ports.decoder import DecoderPort

from .base import Receiver


LOGGER = logging.getLogger(__name__)

DEFAULT_PORT = 4448
READ_SIZE = 1024
ACCEPT_TIMEOUT = 0.5

DecoderFactory = Callable[[], DecoderPort]


class XMLSocketReceiver(Receiver):
    """Listen on a TCP port and decode XML events from every connection."""

    def __init__(
        self,
        *,
        port: int = DEFAULT_PORT,
        host: str = "0.0.0.0",
        decoder_factory: DecoderFactory = XMLDecoder,
        encoding: str = "utf-8",
        **kwargs,
    ) -> None:
        kwargs.setdefault("name", f"xml-tcp-{port}")
        super().__init__(**kwargs)
        self.port = port
        self.host = host
        self._decoder_factory = decoder_factory
        self._encoding = encoding
        self._server: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._connections: set[socket.socket] = set()
        self._connections_lock = threading.Lock()

    @property
    def bound_port(self) -> int | None:
        """Return the port actually bound (useful when ``port`` is ``0``)."""

        if self._server is None:
            return None
        return self._server.getsockname()[1]

    def _activate(self) -> None:
        self._stop.clear()
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind((self.host, self.port))
            server.listen(5)
        except OSError:
            server.close()
            LOGGER.error("Error starting %s, receiver did not start", self.name, exc_info=True)
            raise
        server.settimeout(ACCEPT_TIMEOUT)
        self._server = server
        self._accept_thread = threading.Thread(target=self._accept_loop, name=f"{self.name}-accept", daemon=True)
        self._accept_thread.start()
        LOGGER.info("%s listening on %s:%d", self.name, self.host, self.bound_port)

    def _deactivate(self) -> None:
        self._stop.set()
        server, self._server = self._server, None
        if server is not None:
            LOGGER.debug("%s closing server socket", self.name)
            server.close()
        with self._connections_lock:
            connections = list(self._connections)
        for connection in connections:
            _close_quietly(connection)
        if self._accept_thread is not None:
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None

    def _accept_loop(self) -> None:
        server = self._server
        while server is not None and not self._stop.is_set():
            try:
                connection, address = server.accept()
            except socket.timeout:
                continue
            except OSError:
                if not self._stop.is_set():
                    LOGGER.warning("%s socket server disconnected, stopping", self.name, exc_info=True)
                break
            LOGGER.debug("%s accepted connection from %s", self.name, address)
            with self._connections_lock:
                self._connections.add(connection)
            threading.Thread(
                target=self._read_connection,
                args=(connection, address[0]),
                name=f"{self.name}-{address[0]}:{address[1]}",
                daemon=True,
            ).start()

    def _read_connection(self, connection: socket.socket, remote_host: str) -> None:
        decoder = self._decoder_factory()
        decoder.additional_properties = {**decoder.additional_properties, "hostname": remote_host}
        text_decoder = codecs.getincrementaldecoder(self._encoding)(errors="replace")
        try:
            with connection:
                while not self._stop.is_set():
                    try:
                        data = connection.recv(READ_SIZE)
                    except OSError:
                        if not self._stop.is_set():
                            LOGGER.error("%s lost connection to %s", self.name, remote_host, exc_info=True)
                        break
                    if not data:
                        LOGGER.info("%s: no bytes read from %s - closing connection", self.name, remote_host)
                        break
                    self.append_decoded(decoder, text_decoder.decode(data))
        finally:
            decoder.reset()
            with self._connections_lock:
                self._connections.discard(connection)


def _close_quietly(connection: socket.socket) -> None:
    try:
        connection.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass
    connection.close()


__all__ = ["DEFAULT_PORT", "XMLSocketReceiver"]
