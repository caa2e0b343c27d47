"""Synthetic-root envelope letting a tree parser accept event fragments.

A stream of log records is not a well-formed document: it has no single root
and, mid-stream, may start after the original prolog. The envelope performs
three explicit steps:

* ``wrap`` - drop any prolog, doctype or dialect root tags already present in
  the fragment and surround what remains with the dialect's synthetic root.
* ``parse`` - hand the wrapped text to :mod:`xml.etree.ElementTree`.
* ``unwrap`` - return the record elements directly below the synthetic root.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


_PROLOG_RE = re.compile(r"<\?xml[^>]*\?>")
_DOCTYPE_RE = re.compile(r"<!DOCTYPE[^>\[]*(\[[^\]]*\])?\s*>", re.IGNORECASE)


def local_name(tag: object) -> str:
    """Return the lower-cased tag name without namespace or prefix.

    Examples
    --------
    >>> local_name("{http://jakarta.apache.org/log4j/}Event")
    'event'
    >>> local_name("record")
    'record'
    """

    if not isinstance(tag, str):
        return ""
    if tag.startswith("{"):
        tag = tag.rsplit("}", 1)[1]
    return tag.rsplit(":", 1)[-1].lower()


def text_of(element: ET.Element) -> str:
    """Return the text and CDATA directly inside ``element``.

    Text belonging to nested elements is skipped; the tails of direct
    children are kept because they are character data of ``element`` itself.
    """

    parts = [element.text or ""]
    parts.extend(child.tail or "" for child in element)
    return "".join(parts)


@dataclass(frozen=True)
class FragmentEnvelope:
    """Dialect-specific synthetic root used to parse record fragments.

    Examples
    --------
    >>> envelope = FragmentEnvelope("<log>", "</log>", root_tags=("log",))
    >>> envelope.wrap('<?xml version="1.0"?><log><record/>')
    '<log><record/></log>'
    >>> [child.tag for child in envelope.unwrap(envelope.parse("<record/><record/>"))]
    ['record', 'record']
    """

    open_tag: str
    close_tag: str
    root_tags: tuple[str, ...] = ()
    _root_res: tuple[re.Pattern[str], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        patterns = tuple(re.compile(rf"</?{re.escape(tag)}(\s[^>]*)?/?>") for tag in self.root_tags)
        object.__setattr__(self, "_root_res", patterns)

    def wrap(self, fragment: str) -> str:
        """Strip pre-existing document scaffolding and add the synthetic root."""

        body = _PROLOG_RE.sub("", fragment)
        body = _DOCTYPE_RE.sub("", body)
        for pattern in self._root_res:
            body = pattern.sub("", body)
        return f"{self.open_tag}{body}{self.close_tag}"

    def parse(self, fragment: str) -> ET.Element:
        """Wrap and parse ``fragment``; raises :class:`ET.ParseError` on bad input."""

        return ET.fromstring(self.wrap(fragment))

    @staticmethod
    def unwrap(root: ET.Element) -> list[ET.Element]:
        """Return the record elements held by the synthetic root."""

        return list(root)


__all__ = ["FragmentEnvelope", "local_name", "text_of"]
