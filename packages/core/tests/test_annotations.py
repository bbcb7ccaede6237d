"""Tests for annotation models and the compact tuple codec."""

import pytest

from reviewgate_core.errors import DecodeError, MalformedAnnotation
from reviewgate_core.models import Annotation, AnnotationKind, Side
from reviewgate_core.sharing.annotations import from_shareable, from_tuple, to_shareable, to_tuple


def _ann(kind, original="", text=None, author=None, **kw):
    return Annotation(id=kw.pop("id", "a1"), kind=kind, original_text=original, text=text, author=author, **kw)


class TestToTuple:
    def test_deletion_drops_text(self):
        assert to_tuple(_ann(AnnotationKind.DELETION, "old step", author="ana")) == ("D", "old step", "ana")

    def test_replacement(self):
        ann = _ann(AnnotationKind.REPLACEMENT, "use sqlite", "use postgres")
        assert to_tuple(ann) == ("R", "use sqlite", "use postgres", None)

    def test_comment_and_insertion_share_layout(self):
        assert to_tuple(_ann(AnnotationKind.COMMENT, "step 3", "why?"))[0] == "C"
        assert to_tuple(_ann(AnnotationKind.INSERTION, "after this", "add tests")) == (
            "I",
            "after this",
            "add tests",
            None,
        )

    def test_global_comment_has_no_original(self):
        assert to_tuple(_ann(AnnotationKind.GLOBAL_COMMENT, text="looks good")) == ("G", "looks good", None)

    def test_empty_author_is_sent_as_null(self):
        assert to_tuple(_ann(AnnotationKind.DELETION, "x", author=""))[2] is None

    def test_to_shareable_preserves_order(self):
        anns = [_ann(AnnotationKind.DELETION, "a"), _ann(AnnotationKind.GLOBAL_COMMENT, text="b")]
        assert [t[0] for t in to_shareable(anns)] == ["D", "G"]


class TestFromTuple:
    def test_comment_scenario(self):
        ann = from_tuple(["C", "step 3", "why?", None], index=0, now=1000)
        assert ann.kind == AnnotationKind.COMMENT
        assert ann.original_text == "step 3"
        assert ann.text == "why?"
        assert ann.author is None
        assert ann.id.startswith("shared-0-")

    def test_created_at_follows_index(self):
        anns = from_shareable([["D", "a", None], ["G", "b", None], ["R", "c", "d", "bo"]], now=5000)
        assert [a.created_at for a in anns] == [5000, 5001, 5002]
        assert anns[2].author == "bo"

    def test_ids_are_unique(self):
        anns = from_shareable([["D", "a", None], ["D", "a", None]], now=0)
        assert anns[0].id != anns[1].id

    def test_unknown_tag_rejected(self):
        with pytest.raises(MalformedAnnotation, match="unknown tag"):
            from_tuple(["X", "a", None], index=0, now=0)

    def test_wrong_arity_rejected(self):
        with pytest.raises(MalformedAnnotation, match="expects 4 fields"):
            from_tuple(["R", "a", None], index=0, now=0)

    def test_non_string_text_rejected(self):
        with pytest.raises(MalformedAnnotation):
            from_tuple(["C", "a", 42, None], index=0, now=0)

    def test_whole_list_rejected_for_one_bad_item(self):
        with pytest.raises(MalformedAnnotation):
            from_shareable([["D", "fine", None], ["Z"]], now=0)

    def test_malformed_annotation_is_a_decode_error(self):
        assert issubclass(MalformedAnnotation, DecodeError)


class TestAnnotationDict:
    def test_from_dict_accepts_client_shape(self):
        ann = Annotation.from_dict(
            {
                "id": "c1",
                "type": "COMMENT",
                "originalText": "def foo()",
                "text": "rename",
                "createdAt": 7,
                "filePath": "src/app.py",
                "lineStart": 3,
                "lineEnd": 5,
                "side": "new",
            }
        )
        assert ann.kind == AnnotationKind.COMMENT
        assert ann.file_path == "src/app.py"
        assert ann.side == Side.NEW
        assert ann.created_at == 7

    def test_to_dict_omits_code_fields_for_plans(self):
        d = _ann(AnnotationKind.GLOBAL_COMMENT, text="ok").to_dict()
        assert d["kind"] == "GLOBAL_COMMENT"
        assert "filePath" not in d

    def test_to_dict_round_trips_code_fields(self):
        ann = _ann(AnnotationKind.COMMENT, "x", "y", file_path="a.py", line_start=1, line_end=2, side=Side.OLD)
        again = Annotation.from_dict(ann.to_dict())
        assert again == ann

    def test_unknown_kind(self):
        with pytest.raises(MalformedAnnotation, match="unknown annotation kind"):
            Annotation.from_dict({"kind": "SHOUT"})

    def test_text_required_except_for_deletions(self):
        with pytest.raises(MalformedAnnotation, match="requires text"):
            Annotation.from_dict({"kind": "COMMENT", "originalText": "x"})
        assert Annotation.from_dict({"kind": "DELETION", "originalText": "x"}).text is None

    def test_inverted_line_range_rejected(self):
        with pytest.raises(MalformedAnnotation):
            Annotation.from_dict({"kind": "COMMENT", "text": "t", "filePath": "a", "lineStart": 5, "lineEnd": 2})

    def test_rename_author(self):
        ann = _ann(AnnotationKind.COMMENT, "x", "y", author="old")
        ann.rename_author("")
        assert ann.author is None
        ann.rename_author("new")
        assert ann.author == "new"

    def test_dedup_key_ignores_author_and_id(self):
        a = _ann(AnnotationKind.COMMENT, "x", "y", author="one", id="1")
        b = _ann(AnnotationKind.COMMENT, "x", "y", author="two", id="2")
        assert a.dedup_key() == b.dedup_key()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("lineStart", "3"),
            ("lineEnd", 2.5),
            ("lineStart", True),
            ("originalText", 7),
            ("text", ["y"]),
            ("author", {"name": "ana"}),
            ("filePath", 1),
        ],
    )
    def test_badly_typed_fields_are_malformed(self, field, value):
        d = {"kind": "COMMENT", "originalText": "x", "text": "y", "filePath": "a.py", "lineStart": 1, "lineEnd": 4}
        d[field] = value
        with pytest.raises(MalformedAnnotation, match=field):
            Annotation.from_dict(d)

    def test_string_line_with_int_end_is_malformed(self):
        with pytest.raises(MalformedAnnotation):
            Annotation.from_dict({"kind": "COMMENT", "originalText": "x", "text": "y", "lineStart": "3", "lineEnd": 5})

    def test_deletion_text_is_dropped(self):
        assert Annotation.from_dict({"kind": "DELETION", "originalText": "x", "text": ""}).text is None

    def test_dedup_key_treats_empty_text_as_missing(self):
        a = _ann(AnnotationKind.DELETION, "x", text="")
        b = _ann(AnnotationKind.DELETION, "x", text=None)
        assert a.dedup_key() == b.dedup_key()
