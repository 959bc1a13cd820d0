"""
draftgraph — Git-style content versioning for a headless CMS.

Articles live as chains of immutable, content-addressed nodes. Named
pointers mark the draft tip and the published version of each article and
move only through compare-and-swap. Binary assets are chunked (and
optionally encrypted) into the same store.

Entry point:
    from draftgraph.documents.service import create_versioning_service
    service = create_versioning_service()
"""

__version__ = "1.0.0"
__all__ = ["db", "documents", "engine", "graph"]
