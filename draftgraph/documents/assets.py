"""
draftgraph Chunked Asset Store — Content-addressed, optionally encrypted chunks.

Upload pipeline:
    1. Resolve the chunk encryption key (optional).
    2. With a key: buffer the whole file, encrypt once with AES-256-GCM and
       chunk the ciphertext. Without: stream and chunk the plaintext.
    3. Each chunk (256 KiB) is SHA-256 hashed and stored as its own blob.
    4. The manifest is stored as a blob; manifest + chunk blobs form a tree.
    5. A wrapping node ``asset:<filename>`` with a ``manifest: <treeId>``
       trailer is committed and ``<ns>/chunks/<slug>@<epoch>`` is pointed at it.

The chunk pointer is written unconditionally (last write wins); article
pointers are the only CAS-guarded ones.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Tuple, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError

from draftgraph.documents.codec import Document, decode_message, encode_message
from draftgraph.documents.identity import canonicalize_slug
from draftgraph.documents.models import (
    AssetListing,
    AssetManifest,
    AssetUploadResult,
    ChunkRecord,
    EncryptionMeta,
)
from draftgraph.engine.errors import CmsValidationError
from draftgraph.engine.secrets import SecretResolver
from draftgraph.graph.store import BlobStore, GraphStore

logger = logging.getLogger("draftgraph.documents.assets")

CHUNK_SIZE = 256 * 1024
KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
ALGORITHM = "aes-256-gcm"
MANIFEST_ENTRY = "manifest.json"
DEFAULT_EPOCH = "current"
EPOCH_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")

AssetSource = Union[str, os.PathLike, BinaryIO]


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def validate_epoch(epoch: str) -> str:
    if not isinstance(epoch, str) or not EPOCH_RE.match(epoch):
        raise CmsValidationError(
            f"epoch must match {EPOCH_RE.pattern}",
            code="epoch_invalid",
            field="epoch",
        )
    return epoch


def encrypt_buffer(data: bytes, key: bytes) -> Tuple[bytes, EncryptionMeta]:
    """Encrypt ``data`` once; returns ciphertext (tag split off) and its metadata."""
    nonce = os.urandom(NONCE_SIZE)
    sealed = AESGCM(key).encrypt(nonce, data, None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
    meta = EncryptionMeta(
        algorithm=ALGORITHM,
        nonce=base64.b64encode(nonce).decode("ascii"),
        tag=base64.b64encode(tag).decode("ascii"),
        encrypted=True,
    )
    return ciphertext, meta


def decrypt_buffer(data: bytes, meta: Optional[EncryptionMeta], key: Optional[bytes]) -> bytes:
    """Inverse of encrypt_buffer. Plaintext passes through when ``meta`` is unset."""
    if meta is None or not meta.encrypted:
        return data
    if key is None:
        raise CmsValidationError(
            "Cannot decrypt asset: no encryption key is configured",
            code="encryption_key_missing",
            field="encryption",
        )
    try:
        nonce = base64.b64decode(meta.nonce)
        tag = base64.b64decode(meta.tag)
        return AESGCM(key).decrypt(nonce, data + tag, None)
    except (InvalidTag, ValueError):
        raise CmsValidationError(
            "Asset failed authentication (wrong key or tampered data)",
            code="asset_decrypt_failed",
            field="encryption",
        )


class ChunkedAssetStore:
    """
    Splits files into content-addressed blobs grouped under a tree node.

    Usage:
        store = ChunkedAssetStore(graph, graph, "refs/cms", secrets=resolver)
        result = store.store_file("cover.png", slug="hello-world")
        data = store.read_asset("hello-world")
    """

    def __init__(
        self,
        graph: GraphStore,
        blobs: BlobStore,
        ref_prefix: str,
        secrets: Optional[SecretResolver] = None,
        key_name: str = "CHUNK_ENC_KEY",
        chunk_size: int = CHUNK_SIZE,
        sign: bool = False,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._graph = graph
        self._blobs = blobs
        self._ref_prefix = ref_prefix.rstrip("/")
        self._secrets = secrets
        self._key_name = key_name
        self._chunk_size = chunk_size
        self._sign = sign

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def pointer_for(self, slug: str, epoch: str = DEFAULT_EPOCH) -> str:
        return f"{self._ref_prefix}/chunks/{slug}@{epoch}"

    def _resolve_key(self) -> Optional[bytes]:
        if self._secrets is None:
            return None
        key = self._secrets.resolve_secret(self._key_name)
        if key is None:
            return None
        if len(key) != KEY_SIZE:
            raise CmsValidationError(
                f"{self._key_name} must decode to {KEY_SIZE} bytes, got {len(key)}",
                code="encryption_key_invalid",
                field=self._key_name,
            )
        return key

    # -------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------

    def store_file(
        self,
        source: AssetSource,
        slug: str,
        filename: Optional[str] = None,
        epoch: str = DEFAULT_EPOCH,
    ) -> AssetUploadResult:
        """Chunk ``source`` (path or binary stream) and point the asset epoch at it."""
        slug = canonicalize_slug(slug)
        epoch = validate_epoch(epoch)
        if isinstance(source, (str, os.PathLike)):
            filename = filename or Path(source).name
            with open(source, "rb") as f:
                return self._store_stream(f, slug, filename, epoch)
        filename = filename or Path(getattr(source, "name", "") or "asset.bin").name
        return self._store_stream(source, slug, filename, epoch)

    def _store_stream(
        self,
        stream: BinaryIO,
        slug: str,
        filename: str,
        epoch: str,
    ) -> AssetUploadResult:
        manifest = AssetManifest(slug=slug, epoch=epoch, filename=filename)
        key = self._resolve_key()

        if key is not None:
            ciphertext, meta = encrypt_buffer(stream.read(), key)
            manifest.encryption = meta
            pieces: Iterator[bytes] = self._split(ciphertext)
        else:
            pieces = self._read_chunks(stream)

        for index, piece in enumerate(pieces):
            record = ChunkRecord(
                index=index,
                size=len(piece),
                digest=sha256_hex(piece),
                blob_id=self._blobs.write_blob(piece),
            )
            manifest.chunks.append(record)
            manifest.size += record.size

        manifest_id = self._blobs.write_blob(manifest.model_dump_json(indent=2).encode("utf-8"))
        entries = {MANIFEST_ENTRY: manifest_id}
        entries.update({chunk.digest: chunk.blob_id for chunk in manifest.chunks})
        tree_id = self._blobs.write_tree(entries)

        payload = encode_message(
            Document(title=f"asset:{filename}", body="", trailers={"manifest": tree_id})
        )
        node_id = self._graph.create_node(payload, [], sign=self._sign)

        pointer = self.pointer_for(slug, epoch)
        self._graph.update_pointer(pointer, node_id, force=True)

        logger.info(
            f"Stored asset {pointer}: {len(manifest.chunks)} chunks, "
            f"{manifest.size} bytes{' (encrypted)' if manifest.encrypted else ''}"
        )
        return AssetUploadResult(
            pointer=pointer,
            node_id=node_id,
            tree_id=tree_id,
            manifest_id=manifest_id,
            manifest=manifest,
        )

    def _read_chunks(self, stream: BinaryIO) -> Iterator[bytes]:
        while True:
            chunk = stream.read(self._chunk_size)
            if not chunk:
                break
            # Streams may return short reads; top up to a full chunk
            while len(chunk) < self._chunk_size:
                more = stream.read(self._chunk_size - len(chunk))
                if not more:
                    break
                chunk += more
            yield chunk

    def _split(self, data: bytes) -> Iterator[bytes]:
        for offset in range(0, len(data), self._chunk_size):
            yield data[offset:offset + self._chunk_size]

    # -------------------------------------------------------------------
    # Read back
    # -------------------------------------------------------------------

    def _tree_for(self, slug: str, epoch: str) -> Tuple[str, dict]:
        pointer = self.pointer_for(slug, epoch)
        node_id = self._graph.read_pointer(pointer)
        if node_id is None:
            raise CmsValidationError(
                f"No asset stored for {slug}@{epoch}",
                code="asset_not_found",
                field="slug",
            )
        tree_id = decode_message(self._graph.read_node(node_id)).trailers.get("manifest")
        if not tree_id:
            raise CmsValidationError(
                f"Asset node {node_id} has no manifest trailer",
                code="asset_corrupt",
                field="manifest",
            )
        return tree_id, self._blobs.read_tree(tree_id)

    def read_manifest(self, slug: str, epoch: str = DEFAULT_EPOCH) -> AssetManifest:
        slug = canonicalize_slug(slug)
        epoch = validate_epoch(epoch)
        tree_id, entries = self._tree_for(slug, epoch)
        manifest_id = entries.get(MANIFEST_ENTRY)
        if manifest_id is None:
            raise CmsValidationError(
                f"Tree {tree_id} has no {MANIFEST_ENTRY}",
                code="asset_corrupt",
                field="manifest",
            )
        try:
            return AssetManifest.model_validate_json(self._blobs.read_blob(manifest_id))
        except ValidationError as e:
            raise CmsValidationError(
                f"Manifest {manifest_id} is malformed: {e.error_count()} error(s)",
                code="asset_corrupt",
                field="manifest",
            )

    def read_asset(self, slug: str, epoch: str = DEFAULT_EPOCH) -> bytes:
        """Reassemble (and decrypt) an asset, verifying every chunk digest."""
        manifest = self.read_manifest(slug, epoch)
        parts: List[bytes] = []
        for chunk in sorted(manifest.chunks, key=lambda c: c.index):
            data = self._blobs.read_blob(chunk.blob_id)
            if len(data) != chunk.size or sha256_hex(data) != chunk.digest:
                raise CmsValidationError(
                    f"Chunk {chunk.index} of {slug}@{epoch} does not match its digest",
                    code="asset_corrupt",
                    field="chunks",
                )
            parts.append(data)
        stored = b"".join(parts)
        if len(stored) != manifest.size:
            raise CmsValidationError(
                f"Asset {slug}@{epoch} is {len(stored)} bytes, manifest says {manifest.size}",
                code="asset_corrupt",
                field="size",
            )
        key = self._resolve_key() if manifest.encrypted else None
        return decrypt_buffer(stored, manifest.encryption, key)

    def list_assets(self) -> List[AssetListing]:
        prefix = f"{self._ref_prefix}/chunks/"
        listings: List[AssetListing] = []
        for pointer in self._graph.list_pointers(prefix):
            node_id = self._graph.read_pointer(pointer)
            if node_id is None:
                continue
            slug, _, epoch = pointer[len(prefix):].rpartition("@")
            listings.append(AssetListing(pointer=pointer, id=node_id, slug=slug, epoch=epoch))
        return listings
