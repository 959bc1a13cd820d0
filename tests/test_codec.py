"""Unit tests for draftgraph.documents.codec — Trailers and payload encoding."""

import pytest

from draftgraph.documents.codec import Document, Trailers, decode_message, encode_message
from draftgraph.engine.errors import CmsValidationError


class TestTrailers:
    def test_case_insensitive_lookup(self):
        t = Trailers({"contentId": "hello"})
        assert t["contentid"] == "hello"
        assert t["CONTENTID"] == "hello"
        assert "ContentId" in t

    def test_keeps_first_spelling(self):
        t = Trailers({"updatedAt": "1"})
        t["UPDATEDAT"] = "2"
        assert list(t) == ["updatedAt"]
        assert t["updatedat"] == "2"

    def test_preserves_order(self):
        t = Trailers()
        t["b"] = "1"
        t["a"] = "2"
        assert list(t.items()) == [("b", "1"), ("a", "2")]

    def test_values_coerced_to_str(self):
        assert Trailers({"n": 3})["n"] == "3"

    def test_known_accessors(self):
        t = Trailers({
            "status": "draft",
            "contentid": "hello",
            "updatedat": "t1",
            "restoredfromsha": "abc",
            "restoredat": "t2",
        })
        assert t.status == "draft"
        assert t.content_id == "hello"
        assert t.updated_at == "t1"
        assert t.restored_from_sha == "abc"
        assert t.restored_at == "t2"

    def test_empty_content_id_is_none(self):
        assert Trailers({"contentId": ""}).content_id is None

    def test_without_and_merged_copy(self):
        t = Trailers({"status": "draft", "updatedAt": "t1", "tags": "x"})
        stripped = t.without("UPDATEDAT", "missing")
        assert "updatedAt" not in stripped
        assert "updatedAt" in t
        merged = t.merged({"status": "reverted"})
        assert merged.status == "reverted"
        assert t.status == "draft"

    def test_to_dict_lowercases(self):
        assert Trailers({"contentId": "a"}).to_dict() == {"contentid": "a"}

    def test_equality_folds_case(self):
        assert Trailers({"Status": "draft"}) == Trailers({"status": "draft"})
        assert Trailers({"status": "draft"}) == {"STATUS": "draft"}

    def test_non_string_key_rejected(self):
        with pytest.raises(CmsValidationError) as exc:
            Trailers({1: "x"})
        assert exc.value.code == "invalid_type"
        assert exc.value.field == "trailers"


class TestEncode:
    def test_full_layout(self):
        doc = Document("Hello", "Body line", {"status": "draft", "contentId": "hello"})
        assert encode_message(doc) == "Hello\n\nBody line\n\nstatus: draft\ncontentId: hello\n"

    def test_no_trailers(self):
        assert encode_message(Document("T", "B\n\n\n")) == "T\n\nB\n"

    def test_empty_body_with_trailers(self):
        payload = encode_message(Document("asset:a.png", "", {"manifest": "abc"}))
        assert payload == "asset:a.png\n\nmanifest: abc\n"

    def test_multiline_title_rejected(self):
        with pytest.raises(CmsValidationError) as exc:
            encode_message(Document("two\nlines", "b"))
        assert exc.value.code == "title_invalid"

    @pytest.mark.parametrize("key", ["bad key", "colon:", "", "dot.key"])
    def test_invalid_trailer_key(self, key):
        with pytest.raises(CmsValidationError) as exc:
            encode_message(Document("T", "B", {key: "v"}))
        assert exc.value.code == "trailer_invalid"

    def test_multiline_trailer_value_rejected(self):
        with pytest.raises(CmsValidationError) as exc:
            encode_message(Document("T", "B", {"k": "a\nb"}))
        assert exc.value.code == "trailer_invalid"
        assert exc.value.field == "k"


class TestDecode:
    def test_basic(self):
        doc = decode_message("Title\n\nBody text\n\nStatus: draft\nupdatedAt: 2026-01-01T00:00:00.000Z\n")
        assert doc.title == "Title"
        assert doc.body == "Body text\n"
        assert doc.trailers.to_dict() == {"status": "draft", "updatedat": "2026-01-01T00:00:00.000Z"}
        assert list(doc.trailers) == ["status", "updatedat"]

    def test_crlf_normalized(self):
        doc = decode_message("Title\r\n\r\nBody\r\n\r\nstatus: draft\r\n")
        assert doc.body == "Body\n"
        assert doc.trailers.status == "draft"

    def test_trailer_shaped_body_line_stays_body(self):
        doc = decode_message("T\n\nNote: this is prose\nmore prose\n\nstatus: draft\n")
        assert doc.body == "Note: this is prose\nmore prose\n"
        assert doc.trailers.to_dict() == {"status": "draft"}

    def test_only_contiguous_trailing_run(self):
        doc = decode_message("T\n\nkey: one\nplain\nstatus: draft\n")
        assert "key" not in doc.trailers
        assert doc.trailers.status == "draft"

    def test_no_trailers(self):
        doc = decode_message("Title\n\nJust a body\n")
        assert doc.body == "Just a body\n"
        assert len(doc.trailers) == 0

    def test_title_only(self):
        doc = decode_message("Title")
        assert doc.title == "Title"
        assert doc.body == "\n"
        assert len(doc.trailers) == 0

    def test_round_trip(self):
        original = Document(
            "Release notes",
            "First paragraph.\n\nSecond paragraph.",
            {"status": "draft", "contentId": "release-notes", "x-custom": "v"},
        )
        decoded = decode_message(encode_message(original))
        assert decoded.title == original.title
        assert decoded.body == "First paragraph.\n\nSecond paragraph.\n"
        assert decoded.trailers == original.trailers
