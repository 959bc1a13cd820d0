"""draftgraph Engine — Errors, configuration, logging, secret resolution."""

from draftgraph.engine.errors import (  # noqa: F401
    CasConflictError,
    CmsValidationError,
    DraftGraphConfigError,
    DraftGraphError,
    GraphStoreError,
    NamespaceNotFoundError,
)

__all__ = [
    "CasConflictError",
    "CmsValidationError",
    "DraftGraphConfigError",
    "DraftGraphError",
    "GraphStoreError",
    "NamespaceNotFoundError",
]
