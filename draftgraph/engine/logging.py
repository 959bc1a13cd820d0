"""
draftgraph Logging — JSONL audit trail for content operations.

Every accepted write and every rejected request leaves one JSON line in

    {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

``execution`` holds successful writes; ``security`` holds rejections.
The stdlib ``draftgraph`` logger hierarchy is configured separately by
configure_logging().
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger("draftgraph.engine.logging")

# Audit destinations: object type -> categories it may write to
OBJECT_TYPE_CATEGORIES = {
    "articles": ["execution", "security"],
    "assets": ["execution", "security"],
    "layout": ["execution"],
}


class LogEntry:
    """One audit record plus the folder it belongs in."""

    __slots__ = ("object_type", "category", "data")

    def __init__(self, object_type: str, category: str, data: Dict[str, Any]):
        self.object_type = object_type
        self.category = category
        self.data = data

    @property
    def destination(self) -> str:
        return f"{self.object_type}/{self.category}"

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


def _iter_records(path: Path) -> Iterator[Dict[str, Any]]:
    # Half-written or hand-edited lines are skipped rather than failing a query
    with path.open(encoding="utf-8") as handle:
        for raw in handle:
            raw = raw.strip()
            if not raw:
                continue
            try:
                yield json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed audit line in %s", path)


class FileLogger:
    """
    Append-only audit trail, one JSONL file per destination per day.

    Appends to the same file are serialised by a lock owned by that file.
    """

    def __init__(self, log_dir: str = ".draftgraph/logs"):
        self._root = Path(log_dir)
        self._locks: Dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        for object_type, categories in OBJECT_TYPE_CATEGORIES.items():
            for category in categories:
                (self._root / object_type / category).mkdir(parents=True, exist_ok=True)

    @property
    def log_dir(self) -> Path:
        return self._root

    def _day_file(self, object_type: str, category: str, day: date) -> Path:
        return self._root / object_type / category / f"{day.isoformat()}.jsonl"

    def _lock_for(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(path, threading.Lock())

    def write(self, entry: LogEntry) -> None:
        if entry.category not in OBJECT_TYPE_CATEGORIES.get(entry.object_type, ()):
            raise ValueError(f"Unknown log destination {entry.destination}")
        path = self._day_file(entry.object_type, entry.category, date.today())
        line = entry.to_json() + "\n"
        with self._lock_for(path):
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line)

    def query(
        self,
        object_type: str,
        category: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: int = 500,
    ) -> List[Dict[str, Any]]:
        """
        Return audit records for one destination, newest first.

        The window defaults to the last seven days up to today. Records must
        match every key/value in ``filters``; at most ``limit`` are returned.
        """
        last = end_date or date.today()
        first = start_date or last - timedelta(days=7)
        if not (self._root / object_type / category).is_dir():
            return []

        found: List[Dict[str, Any]] = []
        day = last
        while day >= first and len(found) < limit:
            path = self._day_file(object_type, category, day)
            day -= timedelta(days=1)
            if not path.is_file():
                continue
            try:
                matching = [
                    record for record in _iter_records(path)
                    if not filters or all(record.get(k) == v for k, v in filters.items())
                ]
            except OSError as exc:
                logger.warning("Could not read audit file %s: %s", path, exc)
                continue
            found.extend(reversed(matching))
        return found[:limit]


# -- audit record builders --

def _record(event: str, object_ref: str, level: str = "INFO", **fields: Any) -> Dict[str, Any]:
    """Common audit fields; ``None`` values are left out of the record."""
    record: Dict[str, Any] = dict(
        timestamp=datetime.now(timezone.utc).isoformat(),
        level=level,
        event=event,
        object_ref=object_ref,
    )
    record.update((k, v) for k, v in fields.items() if v is not None)
    return record


def log_article_event(
    event: str,
    slug: str,
    pointer: str,
    node_id: Optional[str],
    parent_id: Optional[str] = None,
    author: Optional[str] = None,
    **extra: Any,
) -> LogEntry:
    """Audit an accepted article write (saved, published, unpublished, ...)."""
    record = _record(
        f"article_{event}", pointer,
        slug=slug, node_id=node_id, parent_id=parent_id, author=author, **extra,
    )
    return LogEntry("articles", "execution", record)


def log_asset_event(
    event: str,
    slug: str,
    pointer: str,
    node_id: str,
    filename: str,
    size: int,
    chunk_count: int,
    encrypted: bool,
) -> LogEntry:
    record = _record(
        f"asset_{event}", pointer,
        slug=slug, node_id=node_id, filename=filename,
        size=size, chunk_count=chunk_count, encrypted=encrypted,
    )
    return LogEntry("assets", "execution", record)


def log_layout_event(from_version: int, to_version: int, applied: List[int], ref_prefix: str) -> LogEntry:
    record = _record(
        "layout_migrated", ref_prefix,
        from_version=from_version, to_version=to_version, applied=applied,
    )
    return LogEntry("layout", "execution", record)


def log_rejected_operation(
    operation: str,
    slug: Optional[str],
    code: str,
    field: str,
    object_type: str = "articles",
) -> LogEntry:
    """Audit a request turned away by validation, state policy or CAS."""
    record = _record(
        "operation_rejected", operation, level="WARNING",
        operation=operation, slug=slug, code=code, field=field,
    )
    return LogEntry(object_type, "security", record)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Set the ``draftgraph`` logger level; a stream handler is attached only once."""
    root = logging.getLogger("draftgraph")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(handler)
    return root
