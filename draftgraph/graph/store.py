"""
draftgraph Graph Store — Immutable content-addressed nodes + CAS pointers.

The graph store is the sole source of durability and atomicity:

- Nodes are immutable records addressed by a hash of their content and
  parents. Parent references are ids, never live objects.
- Pointers are mutable named bindings (``<namespace>/<kind>/<slug>``) to a
  node id. They change only through compare-and-swap.
- A small config channel stores string settings (layout version).

Stores that also implement BlobStore can hold raw blobs and flat trees,
which the chunked asset store needs.
"""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from draftgraph.engine.errors import CasConflictError, GraphStoreError

logger = logging.getLogger("draftgraph.graph.store")

DEFAULT_AUTHOR = "draftgraph"


@dataclass(frozen=True)
class NodeInfo:
    """Metadata for a stored node (everything except the payload)."""
    id: str
    parents: Tuple[str, ...] = field(default_factory=tuple)
    author: str = DEFAULT_AUTHOR
    date: str = ""
    signed: bool = False


@runtime_checkable
class GraphStore(Protocol):
    """Node/pointer/config contract consumed by the versioning core."""

    def create_node(
        self,
        payload: str,
        parents: Sequence[str] = (),
        sign: bool = False,
        author: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str: ...

    def read_node(self, node_id: str) -> str: ...

    def get_node_info(self, node_id: str) -> NodeInfo: ...

    def read_pointer(self, name: str) -> Optional[str]: ...

    def update_pointer(
        self,
        name: str,
        new_id: str,
        expected_old: Optional[str] = None,
        *,
        force: bool = False,
    ) -> None: ...

    def delete_pointer(self, name: str) -> None: ...

    def list_pointers(self, prefix: str) -> List[str]: ...

    def config_get(self, key: str) -> Optional[str]: ...

    def config_set(self, key: str, value: str) -> None: ...


@runtime_checkable
class BlobStore(Protocol):
    """Raw blob and flat tree storage (asset chunks and manifests)."""

    def write_blob(self, data: bytes) -> str: ...

    def read_blob(self, blob_id: str) -> bytes: ...

    def write_tree(self, entries: Mapping[str, str]) -> str: ...

    def read_tree(self, tree_id: str) -> Dict[str, str]: ...


# ---------------------------------------------------------------------------
# Content addressing
# ---------------------------------------------------------------------------

def format_timestamp(ts: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    ts = ts or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_node_id(
    payload: str,
    parents: Sequence[str],
    author: str,
    date: str,
    signed: bool = False,
) -> str:
    """SHA-1 over a canonical header followed by the payload."""
    header = ["node"]
    header.extend(f"parent {p}" for p in parents)
    header.append(f"author {author}")
    header.append(f"date {date}")
    header.append(f"signed {int(signed)}")
    raw = "\n".join(header) + "\n\n" + payload
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


def compute_blob_id(data: bytes) -> str:
    """SHA-1 over ``blob <len>\\0`` + data."""
    digest = hashlib.sha1()
    digest.update(f"blob {len(data)}\0".encode("ascii"))
    digest.update(data)
    return digest.hexdigest()


def compute_tree_id(entries: Mapping[str, str]) -> str:
    """SHA-1 over the sorted ``name\\tblob_id`` lines."""
    lines = "".join(f"{name}\t{blob_id}\n" for name, blob_id in sorted(entries.items()))
    return hashlib.sha1(("tree\n" + lines).encode("utf-8")).hexdigest()


def check_expected(
    name: str,
    live: Optional[str],
    expected_old: Optional[str],
    force: bool,
) -> None:
    """Raise CasConflictError unless the live value matches the expectation."""
    if force:
        return
    if live != expected_old:
        raise CasConflictError(name, expected_old, live)


def validate_tree_entries(entries: Mapping[str, str]) -> None:
    for name in entries:
        if not name or "/" in name or "\t" in name or "\n" in name:
            raise GraphStoreError(f"Invalid tree entry name: {name!r}")


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _NodeRecord:
    payload: str
    info: NodeInfo


class InMemoryGraphStore:
    """
    Arena of immutable records guarded by a single lock.

    Implements both GraphStore and BlobStore. Used for tests and for
    embedding the versioning core without a database.
    """

    def __init__(self, author: str = DEFAULT_AUTHOR):
        self._author = author
        self._lock = threading.RLock()
        self._nodes: Dict[str, _NodeRecord] = {}
        self._blobs: Dict[str, bytes] = {}
        self._trees: Dict[str, Dict[str, str]] = {}
        self._pointers: Dict[str, str] = {}
        self._config: Dict[str, str] = {}

    # -- nodes --

    def create_node(
        self,
        payload: str,
        parents: Sequence[str] = (),
        sign: bool = False,
        author: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        parents = tuple(parents)
        author = author or self._author
        date = format_timestamp(timestamp)
        node_id = compute_node_id(payload, parents, author, date, sign)

        with self._lock:
            missing = [p for p in parents if p not in self._nodes]
            if missing:
                raise GraphStoreError(f"Unknown parent node(s): {', '.join(missing)}")
            if node_id not in self._nodes:
                self._nodes[node_id] = _NodeRecord(
                    payload=payload,
                    info=NodeInfo(id=node_id, parents=parents, author=author, date=date, signed=sign),
                )
        return node_id

    def _record(self, node_id: str) -> _NodeRecord:
        with self._lock:
            record = self._nodes.get(node_id)
        if record is None:
            raise GraphStoreError(f"Node not found: {node_id}", object_ref=node_id)
        return record

    def read_node(self, node_id: str) -> str:
        return self._record(node_id).payload

    def get_node_info(self, node_id: str) -> NodeInfo:
        return self._record(node_id).info

    def has_node(self, node_id: str) -> bool:
        with self._lock:
            return node_id in self._nodes

    # -- pointers --

    def read_pointer(self, name: str) -> Optional[str]:
        with self._lock:
            return self._pointers.get(name)

    def update_pointer(
        self,
        name: str,
        new_id: str,
        expected_old: Optional[str] = None,
        *,
        force: bool = False,
    ) -> None:
        with self._lock:
            if new_id not in self._nodes:
                raise GraphStoreError(f"Cannot point {name} at unknown node {new_id}")
            check_expected(name, self._pointers.get(name), expected_old, force)
            self._pointers[name] = new_id

    def delete_pointer(self, name: str) -> None:
        with self._lock:
            self._pointers.pop(name, None)

    def list_pointers(self, prefix: str) -> List[str]:
        with self._lock:
            return sorted(name for name in self._pointers if name.startswith(prefix))

    # -- config --

    def config_get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._config.get(key)

    def config_set(self, key: str, value: str) -> None:
        with self._lock:
            self._config[key] = value

    # -- blobs & trees --

    def write_blob(self, data: bytes) -> str:
        blob_id = compute_blob_id(data)
        with self._lock:
            self._blobs.setdefault(blob_id, bytes(data))
        return blob_id

    def read_blob(self, blob_id: str) -> bytes:
        with self._lock:
            data = self._blobs.get(blob_id)
        if data is None:
            raise GraphStoreError(f"Blob not found: {blob_id}", object_ref=blob_id)
        return data

    def write_tree(self, entries: Mapping[str, str]) -> str:
        validate_tree_entries(entries)
        tree_id = compute_tree_id(entries)
        with self._lock:
            missing = [b for b in entries.values() if b not in self._blobs]
            if missing:
                raise GraphStoreError(f"Unknown blob(s) in tree: {', '.join(missing)}")
            self._trees.setdefault(tree_id, dict(entries))
        return tree_id

    def read_tree(self, tree_id: str) -> Dict[str, str]:
        with self._lock:
            entries = self._trees.get(tree_id)
        if entries is None:
            raise GraphStoreError(f"Tree not found: {tree_id}", object_ref=tree_id)
        return dict(entries)

    def __repr__(self) -> str:
        return f"<InMemoryGraphStore nodes={len(self._nodes)} pointers={len(self._pointers)}>"
