"""Unit tests for comment threads on VersioningService."""

from unittest.mock import patch

import pytest

from draftgraph.documents.service import VersioningService
from draftgraph.engine.errors import CasConflictError, CmsValidationError
from draftgraph.engine.logging import FileLogger


def _code(fn, *args, **kwargs) -> str:
    with pytest.raises(CmsValidationError) as exc:
        fn(*args, **kwargs)
    return exc.value.code


@pytest.fixture
def article(service):
    return service.save_snapshot("hello", "V1", "Body 1")


class TestAddComment:
    def test_first_comment(self, service, graph, article):
        result = service.add_comment("hello", "Nice post")
        assert result.pointer == "refs/cms/comments/hello"
        assert result.parent_id is None
        assert result.reply_to is None
        assert graph.read_pointer(result.pointer) == result.id
        assert graph.get_node_info(result.id).parents == ()

    def test_thread_is_a_chain(self, service, graph, article):
        first = service.add_comment("hello", "One")
        second = service.add_comment("hello", "Two")
        assert second.parent_id == first.id
        assert graph.get_node_info(second.id).parents == (first.id,)
        assert graph.read_pointer("refs/cms/comments/hello") == second.id

    def test_reply_records_parent_trailer(self, service, article):
        first = service.add_comment("hello", "Question?")
        service.add_comment("hello", "Other")
        reply = service.add_comment("hello", "Answer", parent=first.id)
        assert reply.reply_to == first.id
        assert service.list_comments("hello")[0].parent == first.id

    def test_comment_leaves_article_untouched(self, service, graph, article):
        service.add_comment("hello", "Nice post")
        assert graph.read_pointer("refs/cms/articles/hello") == article.id
        assert service.get_article_state("hello").state.value == "draft"

    def test_reply_to_unknown_comment(self, service, article):
        service.add_comment("hello", "One")
        assert _code(service.add_comment, "hello", "Reply", parent=article.id) == "comment_parent_not_found"

    def test_reply_without_thread(self, service, article):
        assert _code(service.add_comment, "hello", "Reply", parent="f" * 40) == "comment_parent_not_found"

    @pytest.mark.parametrize("message", ["", "   \n ", None, 42])
    def test_empty_message(self, service, article, message):
        assert _code(service.add_comment, "hello", message) == "comment_empty"

    def test_unknown_article(self, service, graph):
        assert _code(service.add_comment, "ghost", "Hi") == "article_not_found"
        assert graph.read_pointer("refs/cms/comments/ghost") is None

    def test_concurrent_commenter_loses(self, service, graph, article):
        service.add_comment("hello", "One")
        original = graph.read_pointer

        def racing_read(name):
            value = original(name)
            if name.endswith("/comments/hello"):
                other = graph.create_node("Sneaky\n\n", [value])
                graph.update_pointer(name, other, value)
            return value

        with patch.object(graph, "read_pointer", side_effect=racing_read):
            with pytest.raises(CasConflictError) as exc:
                service.add_comment("hello", "Two")
        assert exc.value.field == "refs/cms/comments/hello"

    def test_audited(self, graph, clock, tmp_path):
        audit = FileLogger(str(tmp_path / "logs"))
        service = VersioningService(graph, clock=clock, audit=audit)
        service.save_snapshot("hello", "V1", "B")
        result = service.add_comment("hello", "Nice")
        [entry] = audit.query("articles", "execution", filters={"event": "article_commented"})
        assert entry["node_id"] == result.id
        assert entry["object_ref"] == "refs/cms/comments/hello"


class TestListComments:
    def test_newest_first(self, service, article):
        for text in ("c1", "c2", "c3"):
            service.add_comment("hello", text)
        assert [c.message for c in service.list_comments("hello")] == ["c3", "c2", "c1"]
        assert [c.message for c in service.list_comments("hello", limit=2)] == ["c3", "c2"]

    def test_multiline_message_kept(self, service, article):
        service.add_comment("hello", "Great post\r\n\r\nSecond paragraph\nthird line\n")
        [comment] = service.list_comments("hello")
        assert comment.message == "Great post\n\nSecond paragraph\nthird line"
        assert comment.parent is None

    def test_author_and_date(self, service, article):
        service.add_comment("hello", "Nice")
        [comment] = service.list_comments("hello")
        assert comment.author == "tester"
        assert comment.date == "2026-01-15T09:30:01.000Z"

    def test_no_thread(self, service, article):
        assert service.list_comments("hello") == []

    def test_invalid_limit(self, service, article):
        assert _code(service.list_comments, "hello", limit=0) == "limit_invalid"

    def test_listed_under_comments_kind(self, service, article):
        service.add_comment("hello", "Nice")
        assert [a.slug for a in service.list_articles("comments")] == ["hello"]
