"""
draftgraph Content State Policy — Editorial state machine.

Effective state is always derived from two signals, never stored:

    | State       | draft `status` trailer | published pointer |
    |-------------|------------------------|-------------------|
    | draft       | draft                  | absent            |
    | published   | (any)                  | present           |
    | unpublished | unpublished            | absent            |
    | reverted    | reverted               | absent            |
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional

from draftgraph.engine.errors import CmsValidationError

CONTENT_STATE_POLICY_VERSION = "1.0.0"


class ContentState(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    UNPUBLISHED = "unpublished"
    REVERTED = "reverted"


TRANSITIONS: Dict[ContentState, FrozenSet[ContentState]] = {
    ContentState.DRAFT: frozenset({ContentState.DRAFT, ContentState.PUBLISHED, ContentState.REVERTED}),
    ContentState.PUBLISHED: frozenset({ContentState.PUBLISHED, ContentState.UNPUBLISHED}),
    ContentState.UNPUBLISHED: frozenset({ContentState.DRAFT, ContentState.PUBLISHED}),
    ContentState.REVERTED: frozenset({ContentState.DRAFT}),
}


def resolve_effective_state(
    draft_status: Optional[str],
    published_id: Optional[str],
) -> ContentState:
    """Derive the effective state; a present published pointer always wins."""
    if published_id:
        return ContentState.PUBLISHED
    if draft_status == ContentState.UNPUBLISHED.value:
        return ContentState.UNPUBLISHED
    if draft_status == ContentState.REVERTED.value:
        return ContentState.REVERTED
    if draft_status == ContentState.DRAFT.value:
        return ContentState.DRAFT
    raise CmsValidationError(
        f'Unrecognized draft status: "{draft_status}"',
        code="unknown_status",
        field="status",
    )


def can_transition(from_state: ContentState, to_state: ContentState) -> bool:
    return ContentState(to_state) in TRANSITIONS.get(ContentState(from_state), frozenset())


def validate_transition(from_state: ContentState, to_state: ContentState) -> None:
    """Raise invalid_state_transition unless ``from_state -> to_state`` is allowed."""
    if not can_transition(from_state, to_state):
        raise CmsValidationError(
            f'Cannot transition from "{ContentState(from_state).value}" '
            f'to "{ContentState(to_state).value}"',
            code="invalid_state_transition",
            field="status",
        )
