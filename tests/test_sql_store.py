"""Unit tests for draftgraph.graph.sql_store and draftgraph.db — SQLite-backed persistence."""

from unittest.mock import patch

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from draftgraph.db.base import EngineRegistry, engine_registry
from draftgraph.db.session import GRAPH_ENGINE_NAME, close_graph_db, init_graph_db, session_scope
from draftgraph.db.graph_models import GraphConfig
from draftgraph.engine.errors import CasConflictError, GraphStoreError
from draftgraph.graph.sql_store import SqlGraphStore


@pytest.fixture
def db_url(tmp_path):
    yield f"sqlite:///{tmp_path / 'graph.db'}"
    close_graph_db()


class TestEngineRegistry:
    def test_register_sqlite_ignores_pool_args(self, tmp_path):
        registry = EngineRegistry()
        engine = registry.register("t", f"sqlite:///{tmp_path / 'x.db'}", pool_size=50)
        assert registry.get("t") is engine
        assert registry.registered_names == ["t"]
        registry.dispose()
        assert registry.registered_names == []

    def test_get_unknown(self):
        with pytest.raises(KeyError, match="No graph engine"):
            EngineRegistry().get("missing")

    def test_get_session(self, tmp_path):
        registry = EngineRegistry()
        registry.register("t", f"sqlite:///{tmp_path / 'x.db'}")
        session = registry.get_session("t")
        session.close()
        registry.dispose("t")


class TestInitGraphDb:
    def test_creates_tables(self, db_url):
        init_graph_db(db_url)
        tables = set(inspect(engine_registry.get(GRAPH_ENGINE_NAME)).get_table_names())
        assert {"graph_nodes", "graph_blobs", "graph_trees", "graph_pointers", "graph_config"} <= tables

    def test_session_scope_rolls_back(self, db_url):
        factory = init_graph_db(db_url)
        with pytest.raises(RuntimeError):
            with session_scope(factory) as session:
                session.add(GraphConfig(key="k", value="v"))
                session.flush()
                raise RuntimeError("abort")
        with session_scope(factory) as session:
            assert session.get(GraphConfig, "k") is None


class TestSqlGraphStore:
    def test_persists_across_instances(self, db_url):
        first = SqlGraphStore.from_url(db_url)
        node_id = first.create_node("Title\n\nBody\n")
        first.update_pointer("refs/cms/articles/a", node_id, None)
        close_graph_db()

        second = SqlGraphStore.from_url(db_url)
        assert second.read_pointer("refs/cms/articles/a") == node_id
        assert second.read_node(node_id) == "Title\n\nBody\n"

    def test_stale_cas_between_instances(self, db_url):
        factory = init_graph_db(db_url)
        writer_a = SqlGraphStore(factory)
        writer_b = SqlGraphStore(factory)
        root = writer_a.create_node("root")
        writer_a.update_pointer("p", root, None)

        left = writer_a.create_node("left", [root])
        right = writer_b.create_node("right", [root])
        writer_a.update_pointer("p", left, root)
        with pytest.raises(CasConflictError) as exc:
            writer_b.update_pointer("p", right, root)
        assert exc.value.actual == left

    def test_sqlalchemy_errors_wrapped(self, db_url):
        store = SqlGraphStore.from_url(db_url)
        failure = OperationalError("SELECT 1", {}, Exception("database is locked"))
        with patch("sqlalchemy.orm.Session.get", side_effect=failure):
            with pytest.raises(GraphStoreError) as exc:
                store.read_pointer("p")
        assert isinstance(exc.value.__cause__, OperationalError)

    def test_repr(self, db_url):
        assert "tester" in repr(SqlGraphStore.from_url(db_url, author="tester"))

    def test_stores_keep_separate_engines(self):
        first = SqlGraphStore.from_url("sqlite://")
        node_id = first.create_node("Title\n\nBody\n")
        first.update_pointer("refs/cms/articles/a", node_id, None)

        second = SqlGraphStore.from_url("sqlite://")
        try:
            assert first.engine_name != second.engine_name
            assert first.read_pointer("refs/cms/articles/a") == node_id
            assert second.read_pointer("refs/cms/articles/a") is None
        finally:
            first.close()
            second.close()

    def test_close_disposes_only_own_engine(self, db_url):
        first = SqlGraphStore.from_url(db_url)
        second = SqlGraphStore.from_url(db_url)
        first.close()
        assert first.engine_name not in engine_registry.registered_names
        assert second.engine_name in engine_registry.registered_names
        first.close()

    def test_explicit_engine_name(self, db_url):
        store = SqlGraphStore.from_url(db_url, engine_name="articles-db")
        assert store.engine_name == "articles-db"
        assert "articles-db" in engine_registry.registered_names

    def test_shared_factory_owns_no_engine(self, db_url):
        store = SqlGraphStore(init_graph_db(db_url))
        assert store.engine_name is None
        store.close()
        assert GRAPH_ENGINE_NAME in engine_registry.registered_names
