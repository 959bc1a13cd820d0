"""
draftgraph Versioning Service — Draft/publish lifecycle over the graph store.

Handles:
- Draft snapshots chained by parent links (one node per save)
- Publish / unpublish / revert / restore as state-machine guarded writes
- Bounded ancestry walks for history, version reads and diffs
- Per-article comment threads
- Chunked asset upload and read-back
- Store layout migration

Pointer layout:
    <ns>/articles/<slug>        draft tip
    <ns>/published/<slug>       published node
    <ns>/comments/<slug>        comment thread tip
    <ns>/chunks/<slug>@<epoch>  asset wrapper node

Every article pointer write is compare-and-swap against the value read at
the start of the operation. A lost race surfaces as CasConflictError and is
never retried here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, List, Optional, Tuple

from sqlalchemy.engine import make_url

from draftgraph.documents.assets import CHUNK_SIZE, DEFAULT_EPOCH, AssetSource, ChunkedAssetStore
from draftgraph.documents.codec import Document, Trailers, decode_message, encode_message
from draftgraph.documents.diff import DEFAULT_CONTEXT, parse_hunks, unified_diff
from draftgraph.documents.identity import canonicalize_kind, canonicalize_slug, resolve_content_identity
from draftgraph.documents.layout import check_layout, migrate, read_layout_version
from draftgraph.documents.models import (
    ArticleListing,
    ArticleState,
    ArticleVersion,
    AssetListing,
    AssetUploadResult,
    CommentEntry,
    CommentResult,
    HistoryEntry,
    MigrationResult,
    PublishResult,
    RestoreResult,
    SaveResult,
    UnpublishResult,
    VersionDiff,
)
from draftgraph.documents.state import ContentState, resolve_effective_state, validate_transition
from draftgraph.engine.config import CmsConfig, get_config
from draftgraph.engine.errors import CmsValidationError, NamespaceNotFoundError
from draftgraph.engine.logging import (
    FileLogger,
    LogEntry,
    log_article_event,
    log_asset_event,
    log_layout_event,
    log_rejected_operation,
)
from draftgraph.engine.secrets import CredentialStore, SecretResolver, build_secret_resolver
from draftgraph.graph.store import BlobStore, GraphStore, InMemoryGraphStore, format_timestamp

logger = logging.getLogger("draftgraph.documents.service")

HISTORY_WALK_LIMIT = 200

DRAFT_KIND = "articles"
PUBLISHED_KIND = "published"
COMMENTS_KIND = "comments"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VersioningService:
    """
    Editorial operations for one pointer namespace.

    Usage:
        service = VersioningService(InMemoryGraphStore(), ref_prefix="refs/cms")
        service.save_snapshot("hello-world", "Hello", "First draft")
        service.publish_article("hello-world")
    """

    def __init__(
        self,
        graph: GraphStore,
        ref_prefix: str = "refs/cms",
        blobs: Optional[BlobStore] = None,
        secrets: Optional[SecretResolver] = None,
        author: str = "draftgraph",
        sign: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
        audit: Optional[FileLogger] = None,
        chunk_size: int = CHUNK_SIZE,
        default_history_limit: int = 20,
        key_name: str = "CHUNK_ENC_KEY",
    ):
        self._graph = graph
        self._ns = ref_prefix.rstrip("/")
        self._author = author
        self._sign = sign
        self._clock = clock or _utcnow
        self._audit = audit
        self._default_history_limit = default_history_limit

        if blobs is None and isinstance(graph, BlobStore):
            blobs = graph
        self._assets: Optional[ChunkedAssetStore] = None
        if blobs is not None:
            self._assets = ChunkedAssetStore(
                graph,
                blobs,
                self._ns,
                secrets=secrets,
                key_name=key_name,
                chunk_size=chunk_size,
                sign=sign,
            )

    @property
    def ref_prefix(self) -> str:
        return self._ns

    @property
    def graph(self) -> GraphStore:
        return self._graph

    def pointer_for(self, slug: str, kind: str = DRAFT_KIND) -> str:
        return f"{self._ns}/{kind}/{slug}"

    def close(self) -> None:
        """Release the graph store's resources when it owns any (SQL engines)."""
        close = getattr(self._graph, "close", None)
        if callable(close):
            close()

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------

    def _record(self, entry: LogEntry) -> None:
        if self._audit is not None:
            self._audit.write(entry)

    @contextmanager
    def _operation(self, name: str, slug: Any, object_type: str = "articles") -> Iterator[None]:
        """Record validation rejections; they are expected and never logged as errors."""
        try:
            yield
        except CmsValidationError as e:
            label = slug if isinstance(slug, str) else None
            logger.info(f"{name} rejected for {label!r}: [{e.code}] {e.message}")
            self._record(log_rejected_operation(name, label, e.code, e.field, object_type=object_type))
            raise

    def _now(self) -> Tuple[datetime, str]:
        now = self._clock()
        return now, format_timestamp(now)

    def _commit(self, doc: Document, parent: Optional[str], now: datetime) -> str:
        return self._graph.create_node(
            encode_message(doc),
            [parent] if parent else [],
            sign=self._sign,
            author=self._author,
            timestamp=now,
        )

    def _decode(self, node_id: str) -> Document:
        return decode_message(self._graph.read_node(node_id))

    def _pointers(self, slug: str) -> Tuple[Optional[str], Optional[str]]:
        return (
            self._graph.read_pointer(self.pointer_for(slug, DRAFT_KIND)),
            self._graph.read_pointer(self.pointer_for(slug, PUBLISHED_KIND)),
        )

    def _effective_state(self, draft_id: Optional[str], published_id: Optional[str]) -> ContentState:
        draft_status = self._decode(draft_id).trailers.status if draft_id else None
        return resolve_effective_state(draft_status, published_id)

    def _require_draft(self, slug: str, draft_id: Optional[str], published_id: Optional[str]) -> str:
        if draft_id:
            return draft_id
        if published_id:
            raise CmsValidationError(f"No draft exists for {slug}", code="no_draft", field="slug")
        raise CmsValidationError(f"Article not found: {slug}", code="article_not_found", field="slug")

    def _resolve_tip(self, slug: str) -> str:
        draft_id, published_id = self._pointers(slug)
        tip = draft_id or published_id
        if not tip:
            raise CmsValidationError(f"Article not found: {slug}", code="article_not_found", field="slug")
        return tip

    def _assert_in_lineage(
        self,
        slug: str,
        tip: str,
        node_id: Any,
        field: str = "id",
        missing_code: str = "invalid_version_for_article",
    ) -> None:
        """
        Walk first parents from ``tip`` looking for ``node_id``.

        At most HISTORY_WALK_LIMIT nodes are inspected. Reaching the root
        without a match raises ``missing_code``; running out of steps is
        reported separately so callers can tell the two apart.
        """
        if not isinstance(node_id, str) or not node_id:
            raise CmsValidationError(f"Version id is required for {slug}", code=missing_code, field=field)
        current = tip
        for _ in range(HISTORY_WALK_LIMIT):
            if current == node_id:
                return
            parents = self._graph.get_node_info(current).parents
            if not parents:
                raise CmsValidationError(
                    f"Version {node_id} does not belong to {slug}",
                    code=missing_code,
                    field=field,
                )
            current = parents[0]
        raise CmsValidationError(
            f"Version {node_id} not found within {HISTORY_WALK_LIMIT} ancestors of {slug}",
            code="history_walk_limit_exceeded",
            field=field,
        )

    def _validate_limit(self, limit: Any) -> int:
        if limit is None:
            limit = self._default_history_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise CmsValidationError(
                f"limit must be a positive integer, got {limit!r}",
                code="limit_invalid",
                field="limit",
            )
        return min(limit, HISTORY_WALK_LIMIT)

    def _to_version(self, node_id: str) -> ArticleVersion:
        doc = self._decode(node_id)
        return ArticleVersion(id=node_id, title=doc.title, body=doc.body, trailers=doc.trailers.to_dict())

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------

    def list_articles(self, kind: str = DRAFT_KIND) -> List[ArticleListing]:
        """List pointers under ``<ns>/<kind>/``. A missing namespace is an empty list."""
        kind = canonicalize_kind(kind)
        prefix = f"{self._ns}/{kind}/"
        try:
            names = self._graph.list_pointers(prefix)
        except NamespaceNotFoundError:
            return []

        listings = []
        for name in names:
            node_id = self._graph.read_pointer(name)
            if node_id:
                listings.append(ArticleListing(pointer=name, id=node_id, slug=name[len(prefix):]))
        return listings

    def read_article(self, slug: str, kind: str = DRAFT_KIND) -> ArticleVersion:
        with self._operation("read_article", slug):
            slug = canonicalize_slug(slug)
            kind = canonicalize_kind(kind)
            node_id = self._graph.read_pointer(self.pointer_for(slug, kind))
            if not node_id:
                raise CmsValidationError(
                    f"Article not found: {slug} ({kind})",
                    code="article_not_found",
                    field="slug",
                )
            return self._to_version(node_id)

    def get_article_state(self, slug: str) -> ArticleState:
        """Derive the effective state from the draft status trailer and the published pointer."""
        with self._operation("get_article_state", slug):
            slug = canonicalize_slug(slug)
            draft_id, published_id = self._pointers(slug)
            if not draft_id and not published_id:
                raise CmsValidationError(f"Article not found: {slug}", code="article_not_found", field="slug")
            draft_status = self._decode(draft_id).trailers.status if draft_id else None
            return ArticleState(
                slug=slug,
                state=resolve_effective_state(draft_status, published_id),
                draft_status=draft_status,
                draft_id=draft_id,
                published_id=published_id,
            )

    def get_article_history(self, slug: str, limit: Optional[int] = None) -> List[HistoryEntry]:
        """Newest-first entries along the first-parent chain of the tip."""
        with self._operation("get_article_history", slug):
            slug = canonicalize_slug(slug)
            limit = self._validate_limit(limit)

            entries: List[HistoryEntry] = []
            current: Optional[str] = self._resolve_tip(slug)
            while current and len(entries) < limit:
                info = self._graph.get_node_info(current)
                doc = self._decode(current)
                entries.append(HistoryEntry(
                    id=current,
                    title=doc.title,
                    status=doc.trailers.status,
                    author=info.author,
                    date=info.date,
                ))
                current = info.parents[0] if info.parents else None
            return entries

    def read_version(self, slug: str, node_id: str) -> ArticleVersion:
        with self._operation("read_version", slug):
            slug = canonicalize_slug(slug)
            self._assert_in_lineage(slug, self._resolve_tip(slug), node_id)
            return self._to_version(node_id)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------

    def save_snapshot(
        self,
        slug: str,
        title: str,
        body: str,
        trailers: Optional[Mapping] = None,
    ) -> SaveResult:
        """Commit a new draft node on top of the current draft tip."""
        with self._operation("save_snapshot", slug):
            if trailers is not None and not isinstance(trailers, Mapping):
                raise CmsValidationError("trailers must be a mapping", code="invalid_type", field="trailers")
            if trailers is not None and not all(isinstance(key, str) for key in trailers):
                raise CmsValidationError("trailer names must be strings", code="invalid_type", field="trailers")
            for name, value in (("title", title), ("body", body)):
                if not isinstance(value, str):
                    raise CmsValidationError(f"{name} must be a string", code="invalid_type", field=name)

            identity = resolve_content_identity(slug, trailers)
            slug = identity.slug
            pointer = self.pointer_for(slug, DRAFT_KIND)
            draft_id, published_id = self._pointers(slug)
            if draft_id:
                validate_transition(self._effective_state(draft_id, published_id), ContentState.DRAFT)

            now, stamp = self._now()
            merged = Trailers(trailers or {}).merged({
                Trailers.STATUS: ContentState.DRAFT.value,
                Trailers.UPDATED_AT: stamp,
                Trailers.CONTENT_ID: identity.content_id,
            })
            new_id = self._commit(Document(title=title, body=body, trailers=merged), draft_id, now)
            self._graph.update_pointer(pointer, new_id, draft_id)

        logger.info(f"Saved {pointer} -> {new_id}")
        self._record(log_article_event("saved", slug, pointer, new_id, parent_id=draft_id, author=self._author))
        return SaveResult(pointer=pointer, id=new_id, parent_id=draft_id)

    def publish_article(self, slug: str, node_id: Optional[str] = None) -> PublishResult:
        """
        Point the published pointer at ``node_id`` or the current draft tip.

        An explicit id must belong to the draft lineage. Publishing the id
        the pointer already holds performs no write.
        """
        with self._operation("publish_article", slug):
            slug = canonicalize_slug(slug)
            pointer = self.pointer_for(slug, PUBLISHED_KIND)
            draft_id, published_id = self._pointers(slug)
            if draft_id or published_id:
                validate_transition(self._effective_state(draft_id, published_id), ContentState.PUBLISHED)
            if not draft_id:
                raise CmsValidationError(f"Nothing to publish for {slug}", code="nothing_to_publish", field="slug")

            if node_id is not None:
                self._assert_in_lineage(slug, draft_id, node_id)
                target = node_id
            else:
                target = draft_id

            if published_id == target:
                logger.debug(f"{pointer} already at {target}")
                return PublishResult(pointer=pointer, id=target, previous_id=published_id)

            self._graph.update_pointer(pointer, target, published_id)

        logger.info(f"Published {pointer} -> {target}")
        self._record(log_article_event("published", slug, pointer, target, previous_id=published_id))
        return PublishResult(pointer=pointer, id=target, previous_id=published_id)

    def unpublish_article(self, slug: str) -> UnpublishResult:
        """
        Record an unpublished draft node, then drop the published pointer.

        The draft pointer moves first. If the delete fails afterwards the
        article is left published with an unpublished draft, which a retry
        resolves.
        """
        with self._operation("unpublish_article", slug):
            slug = canonicalize_slug(slug)
            pointer = self.pointer_for(slug, DRAFT_KIND)
            published_pointer = self.pointer_for(slug, PUBLISHED_KIND)
            draft_id, published_id = self._pointers(slug)
            draft_id = self._require_draft(slug, draft_id, published_id)
            validate_transition(self._effective_state(draft_id, published_id), ContentState.UNPUBLISHED)

            now, stamp = self._now()
            doc = self._decode(draft_id)
            doc.trailers = doc.trailers.without(Trailers.UPDATED_AT).merged({
                Trailers.STATUS: ContentState.UNPUBLISHED.value,
                Trailers.UPDATED_AT: stamp,
            })
            new_id = self._commit(doc, draft_id, now)
            self._graph.update_pointer(pointer, new_id, draft_id)
            self._graph.delete_pointer(published_pointer)

        logger.info(f"Unpublished {published_pointer} (was {published_id})")
        self._record(log_article_event(
            "unpublished", slug, pointer, new_id,
            parent_id=draft_id, author=self._author, previous_published_id=published_id,
        ))
        return UnpublishResult(
            pointer=pointer,
            id=new_id,
            parent_id=draft_id,
            published_pointer=published_pointer,
            previous_published_id=published_id,
        )

    def revert_article(self, slug: str) -> SaveResult:
        """Commit the previous version's content on top of the tip, marked reverted."""
        with self._operation("revert_article", slug):
            slug = canonicalize_slug(slug)
            pointer = self.pointer_for(slug, DRAFT_KIND)
            draft_id, published_id = self._pointers(slug)
            draft_id = self._require_draft(slug, draft_id, published_id)
            validate_transition(self._effective_state(draft_id, published_id), ContentState.REVERTED)

            parents = self._graph.get_node_info(draft_id).parents
            if not parents:
                raise CmsValidationError(
                    f"{slug} has no previous version to revert to",
                    code="revert_no_parent",
                    field="slug",
                )

            now, stamp = self._now()
            doc = self._decode(parents[0])
            doc.trailers = doc.trailers.without(Trailers.UPDATED_AT).merged({
                Trailers.STATUS: ContentState.REVERTED.value,
                Trailers.UPDATED_AT: stamp,
            })
            new_id = self._commit(doc, draft_id, now)
            self._graph.update_pointer(pointer, new_id, draft_id)

        logger.info(f"Reverted {pointer} to content of {parents[0]}")
        self._record(log_article_event(
            "reverted", slug, pointer, new_id,
            parent_id=draft_id, author=self._author, reverted_to=parents[0],
        ))
        return SaveResult(pointer=pointer, id=new_id, parent_id=draft_id)

    def restore_version(self, slug: str, node_id: str) -> RestoreResult:
        """Commit an ancestor's content as a new draft. History is not rewritten."""
        with self._operation("restore_version", slug):
            slug = canonicalize_slug(slug)
            pointer = self.pointer_for(slug, DRAFT_KIND)
            draft_id, published_id = self._pointers(slug)
            draft_id = self._require_draft(slug, draft_id, published_id)
            validate_transition(self._effective_state(draft_id, published_id), ContentState.DRAFT)
            self._assert_in_lineage(slug, draft_id, node_id)

            now, stamp = self._now()
            doc = self._decode(node_id)
            doc.trailers = doc.trailers.without(*Trailers.PROVENANCE_KEYS).merged({
                Trailers.STATUS: ContentState.DRAFT.value,
                Trailers.UPDATED_AT: stamp,
                Trailers.RESTORED_FROM_SHA: node_id,
                Trailers.RESTORED_AT: stamp,
            })
            new_id = self._commit(doc, draft_id, now)
            self._graph.update_pointer(pointer, new_id, draft_id)

        logger.info(f"Restored {pointer} from {node_id}")
        self._record(log_article_event(
            "restored", slug, pointer, new_id,
            parent_id=draft_id, author=self._author, restored_from=node_id,
        ))
        return RestoreResult(pointer=pointer, id=new_id, parent_id=draft_id, restored_from=node_id)

    # -------------------------------------------------------------------
    # Comments and diffs
    # -------------------------------------------------------------------

    def add_comment(self, slug: str, message: str, parent: Optional[str] = None) -> CommentResult:
        """
        Append a comment to the article's thread.

        The thread is a single chain: each comment node's parent is the
        previous thread tip. A reply target goes in the Parent trailer and
        must already be on the thread.
        """
        with self._operation("add_comment", slug):
            slug = canonicalize_slug(slug)
            if not isinstance(message, str) or not message.strip():
                raise CmsValidationError("Comment message is required", code="comment_empty", field="message")
            self._resolve_tip(slug)

            pointer = self.pointer_for(slug, COMMENTS_KIND)
            thread_tip = self._graph.read_pointer(pointer)
            if parent is not None:
                if not thread_tip:
                    raise CmsValidationError(
                        f"{slug} has no comments to reply to",
                        code="comment_parent_not_found",
                        field="parent",
                    )
                self._assert_in_lineage(
                    slug, thread_tip, parent,
                    field="parent", missing_code="comment_parent_not_found",
                )

            title, _, rest = message.replace("\r\n", "\n").strip().partition("\n")
            trailers = Trailers({Trailers.PARENT: parent}) if parent else Trailers()
            now, _ = self._now()
            new_id = self._commit(Document(title=title.strip(), body=rest.strip(), trailers=trailers), thread_tip, now)
            self._graph.update_pointer(pointer, new_id, thread_tip)

        logger.info(f"Comment {new_id} added to {pointer}")
        self._record(log_article_event(
            "commented", slug, pointer, new_id,
            parent_id=thread_tip, author=self._author, reply_to=parent,
        ))
        return CommentResult(pointer=pointer, id=new_id, parent_id=thread_tip, reply_to=parent)

    def list_comments(self, slug: str, limit: Optional[int] = None) -> List[CommentEntry]:
        """Newest-first comments. An article nobody commented on has an empty thread."""
        with self._operation("list_comments", slug):
            slug = canonicalize_slug(slug)
            limit = self._validate_limit(limit)

            entries: List[CommentEntry] = []
            current = self._graph.read_pointer(self.pointer_for(slug, COMMENTS_KIND))
            while current and len(entries) < limit:
                info = self._graph.get_node_info(current)
                doc = self._decode(current)
                body = doc.body.strip()
                entries.append(CommentEntry(
                    id=current,
                    author=info.author,
                    date=info.date,
                    message=f"{doc.title}\n\n{body}" if body else doc.title,
                    parent=doc.trailers.parent,
                ))
                current = info.parents[0] if info.parents else None
            return entries

    def diff_versions(
        self,
        slug: str,
        left_id: str,
        right_id: str,
        context: int = DEFAULT_CONTEXT,
    ) -> VersionDiff:
        """Unified diff between two versions of the same article."""
        with self._operation("diff_versions", slug):
            slug = canonicalize_slug(slug)
            if isinstance(context, bool) or not isinstance(context, int) or context < 0:
                raise CmsValidationError(
                    f"context must be a non-negative integer, got {context!r}",
                    code="context_invalid",
                    field="context",
                )
            tip = self._resolve_tip(slug)
            self._assert_in_lineage(slug, tip, left_id, field="left_id")
            self._assert_in_lineage(slug, tip, right_id, field="right_id")

            text = unified_diff(
                self._graph.read_node(left_id),
                self._graph.read_node(right_id),
                left_label=left_id,
                right_label=right_id,
                context=context,
            )
            return VersionDiff(slug=slug, left_id=left_id, right_id=right_id, diff=text, hunks=parse_hunks(text))

    # -------------------------------------------------------------------
    # Assets
    # -------------------------------------------------------------------

    def _asset_store(self) -> ChunkedAssetStore:
        if self._assets is None:
            raise CmsValidationError(
                "Asset storage needs a blob-capable graph store",
                code="unsupported_in_di_mode",
                field="graph",
            )
        return self._assets

    def upload_asset(
        self,
        slug: str,
        source: AssetSource,
        filename: Optional[str] = None,
        epoch: str = DEFAULT_EPOCH,
    ) -> AssetUploadResult:
        with self._operation("upload_asset", slug, object_type="assets"):
            result = self._asset_store().store_file(source, slug, filename=filename, epoch=epoch)

        manifest = result.manifest
        self._record(log_asset_event(
            "uploaded",
            manifest.slug,
            result.pointer,
            result.node_id,
            manifest.filename,
            manifest.size,
            len(manifest.chunks),
            manifest.encrypted,
        ))
        return result

    def read_asset(self, slug: str, epoch: str = DEFAULT_EPOCH) -> bytes:
        with self._operation("read_asset", slug, object_type="assets"):
            return self._asset_store().read_asset(slug, epoch)

    def list_assets(self) -> List[AssetListing]:
        return self._asset_store().list_assets()

    # -------------------------------------------------------------------
    # Layout
    # -------------------------------------------------------------------

    def layout_version(self) -> int:
        return read_layout_version(self._graph)

    def migrate_layout(self) -> MigrationResult:
        with self._operation("migrate_layout", None, object_type="layout"):
            result = migrate(self._graph, self._ns)
        if result.applied:
            self._record(log_layout_event(result.from_version, result.to_version, result.applied, self._ns))
        return result

    def __repr__(self) -> str:
        return f"<VersioningService ns={self._ns} graph={type(self._graph).__name__}>"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def _ensure_sqlite_directory(db_url: str) -> None:
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def build_graph_store(config: CmsConfig) -> GraphStore:
    """Instantiate the graph store selected by ``storage.backend``."""
    storage = config.storage
    if storage.backend == "memory":
        return InMemoryGraphStore(author=config.author)

    from draftgraph.graph.sql_store import SqlGraphStore

    _ensure_sqlite_directory(storage.url)
    return SqlGraphStore.from_url(
        storage.url,
        author=config.author,
        create_tables=storage.create_tables,
        pool_size=storage.pool_size,
        max_overflow=storage.max_overflow,
        pool_timeout=storage.pool_timeout,
        pool_recycle=storage.pool_recycle,
        pool_pre_ping=storage.pool_pre_ping,
    )


def create_versioning_service(
    config: Optional[CmsConfig] = None,
    graph: Optional[GraphStore] = None,
    secrets: Optional[SecretResolver] = None,
    credential_store: Optional[CredentialStore] = None,
) -> VersioningService:
    """
    Wire a VersioningService from configuration.

    Without explicit ``secrets`` the chunk key is read from the environment,
    then from ``credential_store`` under the environment's secret target.
    Refuses to start against a store whose layout is newer than this
    release understands.
    """
    config = config or get_config()
    graph = graph if graph is not None else build_graph_store(config)

    audit = FileLogger(config.logging.directory) if config.logging.audit else None
    service = VersioningService(
        graph,
        ref_prefix=config.ref_prefix,
        secrets=secrets or build_secret_resolver(
            credential_store=credential_store,
            targets={config.chunks.encryption_key_env: config.secret_target},
        ),
        author=config.author,
        sign=config.sign,
        audit=audit,
        chunk_size=config.chunks.chunk_size,
        default_history_limit=config.history.default_limit,
        key_name=config.chunks.encryption_key_env,
    )

    version = check_layout(graph)
    logger.info(f"Versioning service ready: {service!r} (layout v{version}, env={config.environment})")
    return service
