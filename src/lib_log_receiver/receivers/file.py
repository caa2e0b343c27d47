"""Receiver importing XML events from a file or URL.

Without ``tail`` the locator is decoded once on a background thread (zip
archives included). With ``tail`` a local file is followed: bytes appended
after start-up are fed to the decoder every ``poll_interval`` seconds.
"""

from __future__ import annotations

import codecs
import logging
import threading
import zipfile
from collections.abc import Mapping
from pathlib import Path

from lib_log_receiver.adapters.xml import XMLDecoder

from .base import Receiver
from .tcp import DecoderFactory


LOGGER = logging.getLogger(__name__)

TAIL_READ_SIZE = 64 * 1024


class XMLFileReceiver(Receiver):
    """Decode a log file, optionally following it as it grows."""

    def __init__(
        self,
        *,
        locator: str | Path,
        decoder_factory: DecoderFactory = XMLDecoder,
        additional_properties: Mapping[str, str] | None = None,
        tail: bool = False,
        poll_interval: float = 1.0,
        **kwargs,
    ) -> None:
        kwargs.setdefault("name", f"xml-file-{Path(str(locator)).name}")
        super().__init__(**kwargs)
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        self.locator = locator
        self.tail = tail
        self.poll_interval = poll_interval
        self._decoder = decoder_factory()
        if additional_properties:
            self._decoder.additional_properties = {**self._decoder.additional_properties, **additional_properties}
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.finished = threading.Event()
        self.error: Exception | None = None

    def _activate(self) -> None:
        self._stop.clear()
        self.finished.clear()
        self.error = None
        target = self._follow if self.tail else self._import_once
        self._thread = threading.Thread(target=target, name=f"{self.name}-reader", daemon=True)
        self._thread.start()

    def _deactivate(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=2.0)
        self._thread = None
        self._decoder.reset()

    def _import_once(self) -> None:
        try:
            events = self._decoder.decode_url(self.locator)
            if not self._stop.is_set():
                self.append_all(events)
        except (OSError, ValueError, zipfile.BadZipFile) as exc:
            self.error = exc
            LOGGER.error("%s could not read %s", self.name, self.locator, exc_info=exc)
        finally:
            self.finished.set()

    def _follow(self) -> None:
        text_decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            with open(self.locator, "rb") as handle:
                while not self._stop.is_set():
                    data = handle.read(TAIL_READ_SIZE)
                    if data:
                        self.append_decoded(self._decoder, text_decoder.decode(data))
                        continue
                    self.finished.set()
                    self._stop.wait(self.poll_interval)
        except OSError as exc:
            self.error = exc
            LOGGER.error("%s could not follow %s", self.name, self.locator, exc_info=exc)
        finally:
            self.finished.set()


__all__ = ["XMLFileReceiver"]
