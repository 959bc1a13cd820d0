"""
Integration test fixtures — SQLite-backed stores and on-disk projects.
Mark with @pytest.mark.integration to skip in unit-only runs.

Run: pytest tests/integration/ -v -m integration
"""

from __future__ import annotations

import pytest

from draftgraph.db.session import close_graph_db


# Custom marker for integration tests
def pytest_configure(config):
    config.addinivalue_line("markers", "integration: exercises the SQLite-backed store end to end")


@pytest.fixture
def integration_project(tmp_path, monkeypatch):
    """
    Create a project directory with draftgraph.yaml selecting the SQL backend.
    The working directory is switched into it.
    """
    root = tmp_path / "project"
    root.mkdir()
    (root / "draftgraph.yaml").write_text(
        "cms:\n"
        "  ref_prefix: refs/_blog/dev\n"
        "  environment: dev\n"
        "  author: integration\n"
        "storage:\n"
        "  backend: sql\n"
        "  url: sqlite:///.draftgraph/graph.db\n"
        "logging:\n"
        "  audit: true\n"
        "  directory: .draftgraph/logs\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(root)
    yield root
    close_graph_db()
