"""
draftgraph Content Identity Policy — Canonical slugs, kinds and content ids.

Content ids are slug-backed: the canonical slug is also the content id, and
a ``contentId`` trailer, when supplied, must canonicalize to the same value.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from draftgraph.engine.errors import CmsValidationError

CONTENT_ID_POLICY_VERSION = "1.0.0"
SLUG_MIN_LENGTH = 1
SLUG_MAX_LENGTH = 64

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

RESERVED_SLUGS = frozenset({
    ".",
    "..",
    "admin",
    "api",
    "assets",
    "chunks",
    "draft",
    "new",
    "published",
    "refs",
    "root",
})

ALLOWED_KINDS = ("articles", "published", "comments")


@dataclass(frozen=True)
class ContentIdentity:
    slug: str
    content_id: str


def _as_string(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise CmsValidationError(
            f"{field} must be a string",
            code="invalid_type",
            field=field,
        )
    return value


def canonicalize_slug(value: Any, field: str = "slug") -> str:
    """
    NFKC-normalize, trim and lowercase ``value``, then validate it.

    Raises CmsValidationError with code slug_empty, slug_too_long,
    slug_invalid_format or slug_reserved.
    """
    slug = unicodedata.normalize("NFKC", _as_string(value, field)).strip().lower()

    if len(slug) < SLUG_MIN_LENGTH:
        raise CmsValidationError(f"{field} cannot be empty", code="slug_empty", field=field)

    if len(slug) > SLUG_MAX_LENGTH:
        raise CmsValidationError(
            f"{field} must be {SLUG_MAX_LENGTH} characters or fewer",
            code="slug_too_long",
            field=field,
        )

    if not SLUG_RE.match(slug):
        raise CmsValidationError(
            f"{field} must match {SLUG_RE.pattern} (lowercase letters, numbers, single hyphens)",
            code="slug_invalid_format",
            field=field,
        )

    if slug in RESERVED_SLUGS:
        raise CmsValidationError(f'{field} "{slug}" is reserved', code="slug_reserved", field=field)

    return slug


def canonicalize_kind(value: Any, field: str = "kind") -> str:
    """Lowercase ``value`` and require it to be one of ALLOWED_KINDS."""
    kind = _as_string(value, field).strip().lower()
    if kind not in ALLOWED_KINDS:
        raise CmsValidationError(
            f"{field} must be one of: {', '.join(ALLOWED_KINDS)}",
            code="kind_invalid",
            field=field,
        )
    return kind


def resolve_content_identity(
    slug: Any,
    trailers: Optional[Mapping[str, Any]] = None,
) -> ContentIdentity:
    """
    Resolve the content identity for ``slug``.

    Without a contentId trailer the identity is the canonical slug. With
    one, it must canonicalize to that same slug (content_id_mismatch).
    """
    canonical = canonicalize_slug(slug, field="slug")

    candidate = None
    for key, value in (trailers or {}).items():
        if not isinstance(key, str):
            raise CmsValidationError(
                f"trailer names must be strings, got {type(key).__name__}",
                code="invalid_type",
                field="trailers",
            )
        if key.lower() == "contentid":
            candidate = value
            break

    if candidate is None or candidate == "":
        return ContentIdentity(slug=canonical, content_id=canonical)

    content_id = canonicalize_slug(candidate, field="contentId")
    if content_id != canonical:
        raise CmsValidationError(
            f'contentId "{content_id}" must match canonical slug "{canonical}"',
            code="content_id_mismatch",
            field="contentId",
        )
    return ContentIdentity(slug=canonical, content_id=content_id)
