"""
draftgraph Layout Migration — Versioning of the store's own layout.

The layout version lives in the graph store's config channel under
``cms.layout.version``. A missing key means version 0 (pre-versioned store).

Each migration step persists its target version as soon as it completes.
A failure part-way leaves the version at the last completed step: safe to
resume, but not atomic across steps.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Sequence, Tuple

from draftgraph.documents.models import MigrationResult
from draftgraph.engine.errors import CmsValidationError
from draftgraph.graph.store import GraphStore

logger = logging.getLogger("draftgraph.documents.layout")

LAYOUT_VERSION_KEY = "cms.layout.version"
CURRENT_LAYOUT_VERSION = 1

_VERSION_RE = re.compile(r"[0-9]+")

MigrationStep = Callable[[GraphStore, str], None]


def _stamp_v1(graph: GraphStore, ref_prefix: str) -> None:
    """v0 -> v1: the pointer layout is unchanged; only the version is stamped."""


MIGRATIONS: List[Tuple[int, MigrationStep]] = [
    (1, _stamp_v1),
]


def read_layout_version(graph: GraphStore) -> int:
    """Return the stored layout version (0 when unset)."""
    raw = graph.config_get(LAYOUT_VERSION_KEY)
    if raw is None:
        return 0
    if not _VERSION_RE.fullmatch(raw):
        raise CmsValidationError(
            f'Invalid layout version in config: "{raw}"',
            code="layout_version_invalid",
            field=LAYOUT_VERSION_KEY,
        )
    return int(raw)


def write_layout_version(graph: GraphStore, version: int) -> None:
    if isinstance(version, bool) or not isinstance(version, int) or version < 0:
        raise CmsValidationError(
            f"Layout version must be a non-negative integer, got {version!r}",
            code="layout_version_invalid",
            field=LAYOUT_VERSION_KEY,
        )
    graph.config_set(LAYOUT_VERSION_KEY, str(version))


def latest_version(migrations: Sequence[Tuple[int, MigrationStep]] = MIGRATIONS) -> int:
    return max((target for target, _ in migrations), default=0)


def pending_migrations(
    current_version: int,
    migrations: Sequence[Tuple[int, MigrationStep]] = MIGRATIONS,
) -> List[Tuple[int, MigrationStep]]:
    """Steps whose target exceeds ``current_version``, in ascending order."""
    return sorted(
        ((target, step) for target, step in migrations if target > current_version),
        key=lambda pair: pair[0],
    )


def _guard_too_new(version: int, known: int) -> None:
    if version > known:
        raise CmsValidationError(
            f"Store layout version ({version}) is newer than this codebase ({known}). "
            "Upgrade draftgraph first.",
            code="layout_version_too_new",
            field=LAYOUT_VERSION_KEY,
        )


def check_layout(
    graph: GraphStore,
    migrations: Sequence[Tuple[int, MigrationStep]] = MIGRATIONS,
) -> int:
    """Return the stored version, refusing stores written by a newer release."""
    version = read_layout_version(graph)
    _guard_too_new(version, latest_version(migrations))
    return version


def migrate(
    graph: GraphStore,
    ref_prefix: str,
    migrations: Sequence[Tuple[int, MigrationStep]] = MIGRATIONS,
) -> MigrationResult:
    """
    Run all pending migrations in order.

    Never downgrades: a stored version above the highest known target
    raises layout_version_too_new. Re-running after a full migration is a
    no-op.
    """
    from_version = check_layout(graph, migrations)

    applied: List[int] = []
    for target, step in pending_migrations(from_version, migrations):
        logger.info(f"Migrating layout {ref_prefix}: -> v{target}")
        step(graph, ref_prefix)
        write_layout_version(graph, target)
        applied.append(target)

    to_version = read_layout_version(graph)
    if applied:
        logger.info(f"Layout migrated from v{from_version} to v{to_version} ({ref_prefix})")
    return MigrationResult(from_version=from_version, to_version=to_version, applied=applied)
