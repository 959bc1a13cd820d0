"""
draftgraph SQL Graph Store — Durable GraphStore + BlobStore on SQLAlchemy.

Pointer CAS is enforced by the database, not by a process-local lock:

- expected value given: ``UPDATE ... WHERE name = :name AND node_id = :expected``;
  zero affected rows means the pointer moved.
- "must not exist": plain INSERT; a primary-key violation means it exists.
- force: UPDATE, falling back to INSERT when the row is missing.

Any SQLAlchemy failure surfaces as GraphStoreError with the original
exception chained.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Generator, List, Mapping, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from draftgraph.db.graph_models import GraphBlob, GraphConfig, GraphNode, GraphPointer, GraphTree
from draftgraph.db.session import GRAPH_ENGINE_NAME, close_graph_db, init_graph_db, session_scope
from draftgraph.engine.errors import CasConflictError, GraphStoreError
from draftgraph.graph.store import (
    DEFAULT_AUTHOR,
    NodeInfo,
    compute_blob_id,
    compute_node_id,
    compute_tree_id,
    format_timestamp,
    validate_tree_entries,
)

logger = logging.getLogger("draftgraph.graph.sql_store")

_store_ids = itertools.count(1)


class SqlGraphStore:
    """
    Graph store persisted through SQLAlchemy.

    Usage:
        store = SqlGraphStore.from_url("sqlite:///graph.db")
        node_id = store.create_node("Title\\n\\nBody\\n")
        store.update_pointer("refs/cms/articles/hello", node_id, None)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        author: str = DEFAULT_AUTHOR,
        engine_name: Optional[str] = None,
    ):
        self._factory = session_factory
        self._author = author
        self._engine_name = engine_name

    @classmethod
    def from_url(
        cls,
        db_url: str,
        author: str = DEFAULT_AUTHOR,
        create_tables: bool = True,
        engine_name: Optional[str] = None,
        **engine_kwargs,
    ) -> "SqlGraphStore":
        """
        Initialise the graph DB at ``db_url`` and return a store owning its engine.

        Each call registers a fresh engine name, so opening a second store
        never disposes the pool (or the in-memory database) of the first.
        """
        name = engine_name or f"{GRAPH_ENGINE_NAME}-{next(_store_ids)}"
        factory = init_graph_db(db_url, create_tables=create_tables, name=name, **engine_kwargs)
        return cls(factory, author=author, engine_name=name)

    @property
    def engine_name(self) -> Optional[str]:
        return self._engine_name

    def close(self) -> None:
        """Dispose the engine registered by from_url. Safe to call twice."""
        if self._engine_name is not None:
            close_graph_db(self._engine_name)

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        try:
            with session_scope(self._factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Graph store failure: {e}")
            raise GraphStoreError(f"Graph store failure: {e}") from e

    def _insert_if_absent(self, row) -> bool:
        """Insert an immutable row. Returns False if the primary key already exists."""
        try:
            with session_scope(self._factory) as session:
                session.add(row)
                session.flush()
        except IntegrityError:
            return False
        except SQLAlchemyError as e:
            raise GraphStoreError(f"Graph store failure: {e}") from e
        return True

    # -- nodes --

    def create_node(
        self,
        payload: str,
        parents: Sequence[str] = (),
        sign: bool = False,
        author: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> str:
        parents = list(parents)
        author = author or self._author
        date = format_timestamp(timestamp)
        node_id = compute_node_id(payload, parents, author, date, sign)

        if parents:
            with self._session() as session:
                found = session.scalar(
                    select(func.count()).select_from(GraphNode).where(GraphNode.id.in_(set(parents)))
                )
            if found != len(set(parents)):
                raise GraphStoreError(f"Unknown parent node(s) in {parents}")

        self._insert_if_absent(
            GraphNode(
                id=node_id,
                payload=payload,
                parents=parents,
                author=author,
                created_at=date,
                signed=sign,
            )
        )
        return node_id

    def _node(self, session: Session, node_id: str) -> GraphNode:
        node = session.get(GraphNode, node_id)
        if node is None:
            raise GraphStoreError(f"Node not found: {node_id}", object_ref=node_id)
        return node

    def read_node(self, node_id: str) -> str:
        with self._session() as session:
            return self._node(session, node_id).payload

    def get_node_info(self, node_id: str) -> NodeInfo:
        with self._session() as session:
            node = self._node(session, node_id)
            return NodeInfo(
                id=node.id,
                parents=tuple(node.parents or ()),
                author=node.author,
                date=node.created_at,
                signed=bool(node.signed),
            )

    # -- pointers --

    def read_pointer(self, name: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(GraphPointer, name)
            return row.node_id if row is not None else None

    def update_pointer(
        self,
        name: str,
        new_id: str,
        expected_old: Optional[str] = None,
        *,
        force: bool = False,
    ) -> None:
        with self._session() as session:
            if session.get(GraphNode, new_id) is None:
                raise GraphStoreError(f"Cannot point {name} at unknown node {new_id}")

        if force:
            with self._session() as session:
                result = session.execute(
                    update(GraphPointer).where(GraphPointer.name == name).values(node_id=new_id)
                )
                updated = result.rowcount
            if updated == 0 and not self._insert_if_absent(GraphPointer(name=name, node_id=new_id)):
                # Created concurrently between UPDATE and INSERT; last write wins
                self.update_pointer(name, new_id, force=True)
            return

        if expected_old is None:
            if not self._insert_if_absent(GraphPointer(name=name, node_id=new_id)):
                raise CasConflictError(name, None, self.read_pointer(name))
            return

        with self._session() as session:
            result = session.execute(
                update(GraphPointer)
                .where(GraphPointer.name == name, GraphPointer.node_id == expected_old)
                .values(node_id=new_id)
            )
            updated = result.rowcount
        if updated != 1:
            raise CasConflictError(name, expected_old, self.read_pointer(name))

    def delete_pointer(self, name: str) -> None:
        with self._session() as session:
            session.execute(delete(GraphPointer).where(GraphPointer.name == name))

    def list_pointers(self, prefix: str) -> List[str]:
        with self._session() as session:
            rows = session.scalars(
                select(GraphPointer.name)
                .where(GraphPointer.name.startswith(prefix, autoescape=True))
                .order_by(GraphPointer.name)
            )
            return list(rows)

    # -- config --

    def config_get(self, key: str) -> Optional[str]:
        with self._session() as session:
            row = session.get(GraphConfig, key)
            return row.value if row is not None else None

    def config_set(self, key: str, value: str) -> None:
        with self._session() as session:
            session.merge(GraphConfig(key=key, value=value))

    # -- blobs & trees --

    def write_blob(self, data: bytes) -> str:
        blob_id = compute_blob_id(data)
        self._insert_if_absent(GraphBlob(id=blob_id, data=bytes(data), size=len(data)))
        return blob_id

    def read_blob(self, blob_id: str) -> bytes:
        with self._session() as session:
            row = session.get(GraphBlob, blob_id)
            if row is None:
                raise GraphStoreError(f"Blob not found: {blob_id}", object_ref=blob_id)
            return bytes(row.data)

    def write_tree(self, entries: Mapping[str, str]) -> str:
        validate_tree_entries(entries)
        tree_id = compute_tree_id(entries)
        blob_ids = set(entries.values())
        with self._session() as session:
            found = session.scalar(
                select(func.count()).select_from(GraphBlob).where(GraphBlob.id.in_(blob_ids))
            )
        if found != len(blob_ids):
            raise GraphStoreError(f"Tree {tree_id} references unknown blobs")
        self._insert_if_absent(GraphTree(id=tree_id, entries=dict(entries)))
        return tree_id

    def read_tree(self, tree_id: str) -> Dict[str, str]:
        with self._session() as session:
            row = session.get(GraphTree, tree_id)
            if row is None:
                raise GraphStoreError(f"Tree not found: {tree_id}", object_ref=tree_id)
            return dict(row.entries)

    def __repr__(self) -> str:
        return f"<SqlGraphStore author='{self._author}'>"
