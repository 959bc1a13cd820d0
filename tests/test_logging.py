"""Unit tests for draftgraph.engine.logging — FileLogger, entry builders, query."""

import json
import logging
from datetime import date, timedelta

import pytest

from draftgraph.engine.logging import (
    OBJECT_TYPE_CATEGORIES,
    FileLogger,
    LogEntry,
    configure_logging,
    log_article_event,
    log_asset_event,
    log_layout_event,
    log_rejected_operation,
)


class TestObjectTypeCategories:
    def test_types(self):
        assert set(OBJECT_TYPE_CATEGORIES) == {"articles", "assets", "layout"}

    def test_categories_are_lists(self):
        for obj_type, cats in OBJECT_TYPE_CATEGORIES.items():
            assert isinstance(cats, list), f"{obj_type} categories not a list"


class TestLogEntry:
    def test_creation(self):
        entry = LogEntry(object_type="articles", category="execution", data={"key": "value"})
        assert entry.object_type == "articles"
        assert entry.category == "execution"
        assert entry.data == {"key": "value"}

    def test_to_json_is_compact(self):
        raw = LogEntry("articles", "execution", {"slug": "hello", "n": 1}).to_json()
        assert " " not in raw
        assert json.loads(raw) == {"slug": "hello", "n": 1}


class TestFileLogger:
    """Test FileLogger file writing."""

    def test_creates_category_directories(self, tmp_path):
        FileLogger(log_dir=str(tmp_path / "logs"))
        assert (tmp_path / "logs" / "articles" / "security").is_dir()
        assert (tmp_path / "logs" / "layout" / "execution").is_dir()

    def test_write_creates_file(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        logger.write(LogEntry("articles", "execution", {"event": "article_saved", "slug": "a"}))

        log_dir = tmp_path / "logs" / "articles" / "execution"
        files = list(log_dir.glob("*.jsonl"))
        assert len(files) == 1
        assert files[0].name == f"{date.today().isoformat()}.jsonl"
        assert json.loads(files[0].read_text().strip())["slug"] == "a"

    def test_write_unknown_destination(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        with pytest.raises(ValueError, match="Unknown log destination"):
            logger.write(LogEntry("layout", "security", {}))

    def test_query_newest_first(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        for i in range(3):
            logger.write(LogEntry("articles", "execution", {"n": i}))
        results = logger.query("articles", "execution")
        assert [r["n"] for r in results] == [2, 1, 0]

    def test_query_filters_and_limit(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        for i in range(5):
            logger.write(LogEntry("articles", "execution", {"n": i, "slug": "a" if i % 2 else "b"}))
        results = logger.query("articles", "execution", filters={"slug": "b"}, limit=2)
        assert [r["n"] for r in results] == [4, 2]

    def test_query_spans_days(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        base = tmp_path / "logs" / "articles" / "execution"
        yesterday = date.today() - timedelta(days=1)
        (base / f"{yesterday.isoformat()}.jsonl").write_text('{"n": "old"}\n', encoding="utf-8")
        logger.write(LogEntry("articles", "execution", {"n": "new"}))
        assert [r["n"] for r in logger.query("articles", "execution")] == ["new", "old"]

    def test_query_skips_corrupt_lines(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        path = tmp_path / "logs" / "assets" / "execution" / f"{date.today().isoformat()}.jsonl"
        path.write_text('{"ok": 1}\nnot json\n\n{"ok": 2}\n', encoding="utf-8")
        assert [r["ok"] for r in logger.query("assets", "execution")] == [2, 1]

    def test_query_missing_directory(self, tmp_path):
        logger = FileLogger(log_dir=str(tmp_path / "logs"))
        assert logger.query("comments", "execution") == []


class TestLogBuilders:
    """Test convenience log entry builder functions."""

    def test_log_article_event(self):
        entry = log_article_event(
            "saved", "hello", "refs/cms/articles/hello", "abc",
            parent_id=None, author="tester",
        )
        assert entry.object_type == "articles"
        assert entry.category == "execution"
        assert entry.data["event"] == "article_saved"
        assert entry.data["object_ref"] == "refs/cms/articles/hello"
        assert entry.data["node_id"] == "abc"
        assert "parent_id" not in entry.data
        assert entry.data["level"] == "INFO"

    def test_log_article_event_extra(self):
        entry = log_article_event("published", "a", "p", "n", previous_id="old")
        assert entry.data["previous_id"] == "old"

    def test_log_asset_event(self):
        entry = log_asset_event("uploaded", "a", "refs/cms/chunks/a@current", "n", "f.png", 10, 1, False)
        assert entry.object_type == "assets"
        assert entry.data["event"] == "asset_uploaded"
        assert entry.data["chunk_count"] == 1
        assert entry.data["encrypted"] is False

    def test_log_layout_event(self):
        entry = log_layout_event(0, 1, [1], "refs/cms")
        assert entry.object_type == "layout"
        assert entry.data["applied"] == [1]

    def test_log_rejected_operation(self):
        entry = log_rejected_operation("publish_article", "a", "nothing_to_publish", "slug")
        assert entry.category == "security"
        assert entry.data["level"] == "WARNING"
        assert entry.data["code"] == "nothing_to_publish"


class TestConfigureLogging:
    def test_sets_level(self):
        root = configure_logging("debug")
        assert root.name == "draftgraph"
        assert root.level == logging.DEBUG
        handlers = len(root.handlers)
        configure_logging("INFO")
        assert len(root.handlers) == handlers
        assert root.level == logging.INFO
