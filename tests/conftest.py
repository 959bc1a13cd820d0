"""
draftgraph Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import base64
import os
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from draftgraph.documents.service import VersioningService
from draftgraph.engine.secrets import MappingSecretResolver
from draftgraph.graph.store import InMemoryGraphStore


# ---------------------------------------------------------------------------
# Environment setup — keep config singletons and env overrides out of tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Reset global singletons between tests."""
    import draftgraph.engine.config as cfg_mod

    cfg_mod._config = None
    for var in ("CMS_SIGN", "DRAFTGRAPH_ENV", "CHUNK_ENC_KEY"):
        monkeypatch.delenv(var, raising=False)


class FixedClock:
    """Deterministic clock; each call advances by one second."""

    def __init__(self, start: datetime = datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def graph() -> InMemoryGraphStore:
    return InMemoryGraphStore(author="tester")


@pytest.fixture
def service(graph, clock) -> VersioningService:
    """VersioningService over an in-memory store with a fixed clock."""
    return VersioningService(graph, ref_prefix="refs/cms", author="tester", clock=clock)


@pytest.fixture
def enc_key() -> bytes:
    return bytes(range(32))


@pytest.fixture
def enc_key_b64(enc_key) -> str:
    return base64.b64encode(enc_key).decode("ascii")


@pytest.fixture
def secrets(enc_key) -> MappingSecretResolver:
    return MappingSecretResolver({"CHUNK_ENC_KEY": enc_key})


@pytest.fixture
def make_lineage(service) -> Callable[[str, int], list]:
    """Save ``count`` drafts for ``slug``; returns the node ids oldest first."""

    def _make(slug: str, count: int) -> list:
        ids = []
        for i in range(count):
            ids.append(service.save_snapshot(slug, f"V{i + 1}", f"Body {i + 1}").id)
        return ids

    return _make


@pytest.fixture
def random_bytes() -> Callable[[int], bytes]:
    return os.urandom
