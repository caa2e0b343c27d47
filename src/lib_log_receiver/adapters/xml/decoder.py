"""Chunk-aware XML decoding shared by both wire dialects.

Purpose
-------
Turn an arbitrarily chunked text stream into :class:`StructuredEvent` objects
without assuming chunk boundaries line up with record boundaries.

Contents
--------
* :class:`StreamingDecoder` - split / wrap / parse / walk algorithm plus
  locator reading; dialects subclass it and implement ``_decode_record``.
* :func:`open_locator` - open a path or URL, unpacking the first zip entry.
* :func:`fetch_url` - download HTTP(S) locators through :mod:`httpx`.

System Role
-----------
Decoders are stateful and single-stream: one instance per socket, datagram
source or file import, always fed from one thread.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import IO
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx

from lib_log_receiver.application.ports.decoder import DecoderPort
from lib_log_receiver.domain.events import EventBuilder, StructuredEvent

from ._fragment import FragmentEnvelope, local_name


LOGGER = logging.getLogger(__name__)

ENCODING = "utf-8"
DEFAULT_CHUNK_LINES = 1000
HTTP_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)


def fetch_url(url: str, *, client: httpx.Client | None = None) -> bytes:
    """Download ``url`` and return its body.

    Transport failures, timeouts and error statuses are raised as
    :class:`OSError` so callers treat them like unreadable files.
    """

    try:
        if client is not None:
            return _fetch_with_client(client, url)
        with httpx.Client(follow_redirects=True, timeout=HTTP_TIMEOUT) as local_client:
            return _fetch_with_client(local_client, url)
    except httpx.HTTPError as exc:
        raise OSError(f"could not fetch {url}: {exc}") from exc


def _fetch_with_client(client: httpx.Client, url: str) -> bytes:
    response = client.get(url)
    response.raise_for_status()
    return response.content


@contextmanager
def open_locator(locator: str | Path, *, http_client: httpx.Client | None = None) -> Iterator[IO[str]]:
    """Open ``locator`` (path, ``file:`` or HTTP(S) URL) as UTF-8 text.

    A locator whose path ends in ``.zip`` is treated as an archive and its
    first entry is opened instead.
    """

    text = str(locator)
    parsed = urlparse(text)
    scheme = parsed.scheme.lower() if len(parsed.scheme) > 1 else ""
    if scheme in {"http", "https"}:
        path = parsed.path
        raw: IO[bytes] = io.BytesIO(fetch_url(text, client=http_client))
    elif scheme == "file":
        path = url2pathname(parsed.path)
        raw = open(path, "rb")
    elif scheme:
        raise ValueError(f"Unsupported locator scheme {parsed.scheme!r} in {text!r}")
    else:
        path = text
        raw = open(path, "rb")
    is_zip = path.lower().endswith(".zip")

    try:
        if is_zip:
            with zipfile.ZipFile(raw) as archive:
                entries = [info for info in archive.infolist() if not info.is_dir()]
                if not entries:
                    raise ValueError(f"Archive {text!r} contains no entries")
                with archive.open(entries[0]) as member:
                    with io.TextIOWrapper(member, encoding=ENCODING) as reader:
                        yield reader
        else:
            with io.TextIOWrapper(raw, encoding=ENCODING) as reader:
                yield reader
    finally:
        raw.close()


class StreamingDecoder(DecoderPort):
    """Base class holding the partial-fragment buffer and decode pipeline.

    Subclasses provide :attr:`RECORD_TERMINATORS`, :attr:`ENVELOPE`,
    :attr:`RECORD_TAG` and :meth:`_decode_record`.
    """

    RECORD_TERMINATORS: tuple[str, ...] = ()
    RECORD_TAG: str = ""
    ENVELOPE: FragmentEnvelope

    def __init__(
        self,
        *,
        additional_properties: Mapping[str, str] | None = None,
        chunk_lines: int = DEFAULT_CHUNK_LINES,
        http_client: httpx.Client | None = None,
    ) -> None:
        if chunk_lines <= 0:
            raise ValueError("chunk_lines must be positive")
        self.http_client = http_client
        self.additional_properties: Mapping[str, str] = dict(additional_properties or {})
        self._chunk_lines = chunk_lines
        self._partial = ""

    @property
    def partial(self) -> str:
        """Return the buffered tail that does not yet end in a record terminator."""

        return self._partial

    def reset(self) -> None:
        self._partial = ""

    def decode_events(self, chunk: str) -> list[StructuredEvent] | None:
        """Decode every record completed by ``chunk``.

        Returns ``None`` when no record terminator has been seen yet; the
        text is buffered for the next call in that case.
        """

        if not chunk:
            return None
        combined = self._partial + chunk
        decodable, rest = self._split(combined)
        if decodable is None:
            self._partial = combined
            return None
        self._partial = rest
        return self._decode_fragment(decodable)

    def decode(self, document: str) -> list[StructuredEvent]:
        """Decode ``document`` as one fragment, ignoring any trailing partial record.

        The partial buffer is not consulted or modified. An empty list means
        the document held no complete record.
        """

        decodable, _rest = self._split(document or "")
        if decodable is None:
            return []
        return self._decode_fragment(decodable)

    def decode_first(self, document: str) -> StructuredEvent | None:
        """Return the first event in ``document`` or ``None`` when there is none."""

        events = self.decode(document)
        return events[0] if events else None

    def decode_url(self, locator: str | Path) -> list[StructuredEvent]:
        """Decode a whole file or URL by feeding line-grouped chunks.

        Raises :class:`OSError` when the locator cannot be opened.
        """

        events: list[StructuredEvent] = []
        self.reset()
        try:
            with open_locator(locator, http_client=self.http_client) as reader:
                for chunk in self._iter_chunks(reader):
                    decoded = self.decode_events(chunk)
                    if decoded:
                        events.extend(decoded)
        finally:
            self.reset()
        LOGGER.debug("Decoded %d events from %s", len(events), locator)
        return events

    def _iter_chunks(self, reader: IO[str]) -> Iterator[str]:
        lines: list[str] = []
        for line in reader:
            lines.append(line)
            if len(lines) >= self._chunk_lines:
                yield "".join(lines)
                lines = []
        if lines:
            yield "".join(lines)

    def _split(self, text: str) -> tuple[str | None, str]:
        """Split ``text`` after its last record terminator."""

        end = -1
        for terminator in self.RECORD_TERMINATORS:
            index = text.rfind(terminator)
            if index != -1:
                end = max(end, index + len(terminator))
        if end == -1:
            return None, text
        return text[:end], text[end:]

    def _decode_fragment(self, fragment: str) -> list[StructuredEvent]:
        """Wrap, parse and walk ``fragment``; malformed input yields no events."""

        try:
            root = self.ENVELOPE.parse(fragment)
        except ET.ParseError as exc:
            LOGGER.error("%s could not parse fragment of %d chars: %s", type(self).__name__, len(fragment), exc)
            return []

        events: list[StructuredEvent] = []
        builder = EventBuilder()
        for element in self.ENVELOPE.unwrap(root):
            if local_name(element.tag) != self.RECORD_TAG:
                continue
            builder.clear()
            try:
                event = self._decode_record(element, builder)
            except (KeyError, ValueError, OverflowError) as exc:
                LOGGER.warning("%s skipped an undecodable record: %s", type(self).__name__, exc)
                continue
            if self.additional_properties:
                event = event.with_properties(self.additional_properties)
            events.append(event)
        return events

    def _decode_record(self, element: ET.Element, builder: EventBuilder) -> StructuredEvent:
        raise NotImplementedError


__all__ = ["DEFAULT_CHUNK_LINES", "HTTP_TIMEOUT", "StreamingDecoder", "fetch_url", "open_locator"]
