"""
draftgraph Message Codec — Document <-> node payload.

Payload layout:

    <title>
    <blank>
    <body ...>
    <blank>
    Key: value
    Other-Key: value

Decoding scans backward from the last line while lines look like
``Key: value`` and treats that contiguous run as the trailer block. A
``Key: value``-shaped line in the middle of the body therefore stays body
text; only the trailing run is captured.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Mapping, MutableMapping, Optional, Tuple

from draftgraph.engine.errors import CmsValidationError

TRAILER_LINE_RE = re.compile(r"^[A-Za-z0-9_-]+:\s")
TRAILER_PARSE_RE = re.compile(r"^([A-Za-z0-9_-]+):\s*(.*)$")
TRAILER_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class Trailers(MutableMapping[str, str]):
    """
    Ordered string→string map with case-insensitive keys.

    Keeps the spelling of the first insertion for encoding; decoded
    trailers arrive lowercased. Known keys have typed accessors.
    """

    STATUS = "status"
    CONTENT_ID = "contentId"
    UPDATED_AT = "updatedAt"
    RESTORED_FROM_SHA = "restoredFromSha"
    RESTORED_AT = "restoredAt"
    PARENT = "Parent"

    PROVENANCE_KEYS = (UPDATED_AT, RESTORED_FROM_SHA, RESTORED_AT)

    def __init__(self, data: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        self._items: Dict[str, Tuple[str, str]] = {}
        if data:
            self.update(data)
        if kwargs:
            self.update(kwargs)

    def __getitem__(self, key: str) -> str:
        return self._items[key.lower()][1]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            raise CmsValidationError(
                f"trailer names must be strings, got {type(key).__name__}",
                code="invalid_type",
                field="trailers",
            )
        folded = key.lower()
        display = self._items[folded][0] if folded in self._items else key
        self._items[folded] = (display, str(value))

    def __delitem__(self, key: str) -> None:
        del self._items[key.lower()]

    def __iter__(self) -> Iterator[str]:
        return (display for display, _ in self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._items

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        return {k.lower(): v for k, v in self.items()} == {
            str(k).lower(): str(v) for k, v in other.items()
        }

    def __repr__(self) -> str:
        return f"Trailers({dict(self.items())!r})"

    def copy(self) -> "Trailers":
        return Trailers(self)

    def without(self, *keys: str) -> "Trailers":
        """Copy with the given keys (case-insensitive) removed."""
        result = self.copy()
        for key in keys:
            result.pop(key, None)
        return result

    def merged(self, overrides: Mapping[str, Any]) -> "Trailers":
        """Copy with ``overrides`` applied on top."""
        result = self.copy()
        result.update(overrides)
        return result

    def to_dict(self) -> Dict[str, str]:
        """Plain dict keyed by lowercase names."""
        return {display.lower(): value for display, value in self._items.values()}

    # -- known keys --

    @property
    def status(self) -> Optional[str]:
        return self.get(self.STATUS)

    @property
    def content_id(self) -> Optional[str]:
        value = self.get(self.CONTENT_ID)
        return value or None

    @property
    def updated_at(self) -> Optional[str]:
        return self.get(self.UPDATED_AT)

    @property
    def restored_from_sha(self) -> Optional[str]:
        return self.get(self.RESTORED_FROM_SHA)

    @property
    def restored_at(self) -> Optional[str]:
        return self.get(self.RESTORED_AT)

    @property
    def parent(self) -> Optional[str]:
        return self.get(self.PARENT) or None


@dataclass
class Document:
    """Logical view of a node payload."""
    title: str
    body: str
    trailers: Trailers = field(default_factory=Trailers)

    def __post_init__(self) -> None:
        if not isinstance(self.trailers, Trailers):
            self.trailers = Trailers(self.trailers or {})


def encode_message(doc: Document) -> str:
    """Encode a document into a node payload."""
    if "\n" in doc.title or "\r" in doc.title:
        raise CmsValidationError(
            "title must be a single line",
            code="title_invalid",
            field="title",
        )

    for key, value in doc.trailers.items():
        if not TRAILER_KEY_RE.match(key):
            raise CmsValidationError(
                f"trailer key {key!r} must match {TRAILER_KEY_RE.pattern}",
                code="trailer_invalid",
                field=key,
            )
        if "\n" in value or "\r" in value:
            raise CmsValidationError(
                f"trailer {key!r} must be a single line",
                code="trailer_invalid",
                field=key,
            )

    body = doc.body.replace("\r\n", "\n").rstrip()
    out = f"{doc.title}\n\n"
    if body:
        out += body + "\n"
    if doc.trailers:
        if body:
            out += "\n"
        out += "".join(f"{key}: {value}\n" for key, value in doc.trailers.items())
    return out


def decode_message(payload: str) -> Document:
    """Decode a node payload into title, body and trailers."""
    lines = payload.replace("\r\n", "\n").rstrip("\n").split("\n")
    title = lines.pop(0) if lines else ""
    if lines and lines[0] == "":
        lines.pop(0)

    trailer_start = len(lines)
    for i in range(len(lines) - 1, -1, -1):
        if TRAILER_LINE_RE.match(lines[i]):
            trailer_start = i
        else:
            break

    body = "\n".join(lines[:trailer_start]).rstrip() + "\n"
    trailers = Trailers()
    for line in lines[trailer_start:]:
        m = TRAILER_PARSE_RE.match(line)
        if m:
            trailers[m.group(1).lower()] = m.group(2)

    return Document(title=title, body=body, trailers=trailers)
