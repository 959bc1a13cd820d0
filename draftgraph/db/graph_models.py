"""
draftgraph Graph Tables — SQLAlchemy models backing SqlGraphStore.

Nodes, blobs and trees are insert-only. Pointers and config rows are the
only mutable state; pointer updates go through a conditional UPDATE.
"""

from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, Integer, LargeBinary, String, Text

from draftgraph.db.base import Base


class GraphNode(Base):
    __tablename__ = "graph_nodes"

    id = Column(String(40), primary_key=True)
    payload = Column(Text, nullable=False)
    parents = Column(JSON, default=list, nullable=False)
    author = Column(String(200), nullable=False)
    # ISO-8601 text so the value used for the id round-trips exactly
    created_at = Column(String(40), nullable=False)
    signed = Column(Boolean, default=False, nullable=False)


class GraphBlob(Base):
    __tablename__ = "graph_blobs"

    id = Column(String(40), primary_key=True)
    data = Column(LargeBinary, nullable=False)
    size = Column(Integer, nullable=False)


class GraphTree(Base):
    __tablename__ = "graph_trees"

    id = Column(String(40), primary_key=True)
    entries = Column(JSON, default=dict, nullable=False)


class GraphPointer(Base):
    __tablename__ = "graph_pointers"

    name = Column(String(500), primary_key=True)
    node_id = Column(String(40), nullable=False)


class GraphConfig(Base):
    __tablename__ = "graph_config"

    key = Column(String(200), primary_key=True)
    value = Column(Text, nullable=False)
