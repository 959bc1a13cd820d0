"""
draftgraph Documents — Article lifecycle on top of the graph store.

Provides:
- codec: document <-> node payload (title, body, trailers)
- identity / state: slug and editorial state policies
- assets: chunked, optionally encrypted binary storage
- diff: unified diffs between two versions
- layout: store layout versioning and migration
- service: VersioningService and its factory
"""

from draftgraph.documents.codec import Document, Trailers, decode_message, encode_message
from draftgraph.documents.service import VersioningService, create_versioning_service
from draftgraph.documents.state import ContentState

__all__ = [
    "ContentState",
    "Document",
    "Trailers",
    "VersioningService",
    "create_versioning_service",
    "decode_message",
    "encode_message",
]
