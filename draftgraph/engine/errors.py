"""
draftgraph Error Hierarchy — Structured exceptions with stable codes.

Validation and policy failures carry a stable ``code`` and the offending
``field`` so that a transport layer can map them onto status codes without
parsing messages. Everything else is an opaque internal error.

Hierarchy:
    DraftGraphError
    ├── CmsValidationError          — Expected, caller-recoverable outcome
    │   └── CasConflictError        — Pointer moved under the caller (code=cas_conflict)
    ├── GraphStoreError             — Store I/O failure (opaque)
    │   └── NamespaceNotFoundError  — Listing prefix does not exist
    └── DraftGraphConfigError       — Invalid draftgraph.yaml
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class DraftGraphError(Exception):
    """
    Base error for all draftgraph failures.
    All context is serializable to JSON.
    """

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.object_ref: Optional[str] = context.get("object_ref")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "object_ref": self.object_ref,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("object_ref", "code", "field")
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.object_ref:
            parts.append(f"object_ref={self.object_ref}")
        return " | ".join(parts)


class CmsValidationError(DraftGraphError):
    """
    Validation or policy failure (bad slug, illegal state transition, ...).

    Carries a stable ``code`` and the ``field`` it applies to. These are
    expected outcomes and are never logged as internal errors.
    """

    def __init__(
        self,
        message: str,
        code: str = "validation_error",
        field: str = "input",
        **context: Any,
    ):
        self.code = code
        self.field = field
        super().__init__(message, code=code, field=field, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["code"] = self.code
        d["field"] = self.field
        return d

    def __repr__(self) -> str:
        return f"{self.error_type}[{self.code}] {self.field}: {self.message}"


class CasConflictError(CmsValidationError):
    """Compare-and-swap rejected: the live pointer value differs from the expected one."""

    def __init__(
        self,
        pointer: str,
        expected: Optional[str],
        actual: Optional[str],
        **context: Any,
    ):
        self.pointer = pointer
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Pointer '{pointer}' changed concurrently "
            f"(expected {expected or '<absent>'}, found {actual or '<absent>'})",
            code="cas_conflict",
            field=pointer,
            object_ref=pointer,
            **context,
        )

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["expected"] = self.expected
        d["actual"] = self.actual
        return d


class GraphStoreError(DraftGraphError):
    """Graph store I/O failed. Propagated unchanged, never exposed verbatim."""
    pass


class NamespaceNotFoundError(GraphStoreError):
    """A pointer namespace does not exist (listing an empty prefix)."""
    pass


class DraftGraphConfigError(DraftGraphError):
    """Configuration error — invalid draftgraph.yaml."""
    pass


# ---------------------------------------------------------------------------
# Boundary translation
# ---------------------------------------------------------------------------

GENERIC_ERROR_MESSAGE = "Internal error"


def is_client_error(exc: BaseException) -> bool:
    """True when ``exc`` is an expected, caller-recoverable validation outcome."""
    return isinstance(exc, CmsValidationError)


def public_error(exc: BaseException) -> Dict[str, Any]:
    """
    Translate an exception into a dict safe to return across the system boundary.

    Validation errors keep their code, field and message. Anything else is
    collapsed into a generic internal error so store or transport details
    never leak to clients.
    """
    if isinstance(exc, CmsValidationError):
        return {"code": exc.code, "field": exc.field, "message": exc.message}
    return {"code": "internal_error", "message": GENERIC_ERROR_MESSAGE}
