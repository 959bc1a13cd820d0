"""
draftgraph Document Models — Pydantic result and manifest definitions.

Article*: views returned by VersioningService operations.
Comment*, VersionDiff: comment threads and version comparison.
AssetManifest: chunk index for an uploaded binary asset.
MigrationResult: outcome of a layout migration run.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from draftgraph.documents.state import ContentState


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------

class ArticleListing(BaseModel):
    pointer: str = Field(description="Full pointer name (<ns>/<kind>/<slug>)")
    id: str = Field(description="Node id the pointer resolves to")
    slug: str


class ArticleVersion(BaseModel):
    """Decoded content of one node in an article's lineage."""

    id: str
    title: str
    body: str
    trailers: Dict[str, str] = Field(
        default_factory=dict,
        description="Trailers keyed by lowercase name",
    )


class ArticleState(BaseModel):
    slug: str
    state: ContentState
    draft_status: Optional[str] = Field(default=None, description="status trailer of the draft tip")
    draft_id: Optional[str] = None
    published_id: Optional[str] = None


class SaveResult(BaseModel):
    """A new node committed to the draft line."""

    pointer: str
    id: str
    parent_id: Optional[str] = Field(default=None, description="Previous draft tip")


class RestoreResult(SaveResult):
    restored_from: str = Field(description="Ancestor whose content was restored")


class PublishResult(BaseModel):
    pointer: str
    id: str
    previous_id: Optional[str] = Field(
        default=None,
        description="Published pointer value before the call (equals id on a no-op)",
    )


class UnpublishResult(SaveResult):
    published_pointer: str
    previous_published_id: Optional[str] = None


class HistoryEntry(BaseModel):
    id: str
    title: str
    status: Optional[str] = None
    author: str
    date: str


# ---------------------------------------------------------------------------
# Comments and diffs
# ---------------------------------------------------------------------------

class CommentEntry(BaseModel):
    id: str
    author: str
    date: str
    message: str
    parent: Optional[str] = Field(default=None, description="Comment this one replies to")


class CommentResult(BaseModel):
    """A comment appended to an article thread."""

    pointer: str
    id: str
    parent_id: Optional[str] = Field(default=None, description="Previous thread tip")
    reply_to: Optional[str] = None


class DiffHunk(BaseModel):
    header: str
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: List[str] = Field(default_factory=list)


class VersionDiff(BaseModel):
    slug: str
    left_id: str
    right_id: str
    diff: str = Field(description="Unified diff of the two payloads; empty when identical")
    hunks: List[DiffHunk] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

class ChunkRecord(BaseModel):
    index: int = Field(ge=0)
    size: int = Field(ge=0)
    digest: str = Field(description="SHA-256 hex digest of the stored chunk bytes")
    blob_id: str


class EncryptionMeta(BaseModel):
    algorithm: str = "aes-256-gcm"
    nonce: str = Field(description="Base64 nonce")
    tag: str = Field(description="Base64 authentication tag")
    encrypted: bool = True


class AssetManifest(BaseModel):
    """
    Chunk index for one asset epoch.

    ``size`` is the total stored size (ciphertext size when encrypted).
    """

    slug: str
    epoch: str
    filename: str
    size: int = Field(default=0, ge=0)
    chunks: List[ChunkRecord] = Field(default_factory=list)
    encryption: Optional[EncryptionMeta] = None

    @property
    def encrypted(self) -> bool:
        return self.encryption is not None and self.encryption.encrypted


class AssetUploadResult(BaseModel):
    pointer: str
    node_id: str
    tree_id: str
    manifest_id: str
    manifest: AssetManifest


class AssetListing(BaseModel):
    pointer: str
    id: str
    slug: str
    epoch: str


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

class MigrationResult(BaseModel):
    from_version: int
    to_version: int
    applied: List[int] = Field(default_factory=list)
