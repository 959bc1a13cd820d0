"""
draftgraph Graph Store — Content-addressed nodes, CAS pointers, blobs.

InMemoryGraphStore is the dependency-free implementation; SqlGraphStore
(draftgraph.graph.sql_store) persists through SQLAlchemy.
"""

from draftgraph.graph.store import (
    BlobStore,
    GraphStore,
    InMemoryGraphStore,
    NodeInfo,
    compute_blob_id,
    compute_node_id,
    compute_tree_id,
)

__all__ = [
    "BlobStore",
    "GraphStore",
    "InMemoryGraphStore",
    "NodeInfo",
    "compute_blob_id",
    "compute_node_id",
    "compute_tree_id",
]
