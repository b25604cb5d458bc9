"""Tests for the mention tokenizer, the composer buffer and the HTML sanitizer."""

import pytest

from proofmark.composer import ComposerBuffer, plain_text, sanitize_html
from proofmark.mentions import active_mention_query, filter_members, insert_mention
from proofmark.types import Member, MentionToken

ANN = Member("u1", "Ann Lee")


class TestMentionQuery:
    def test_query_at_cursor(self):
        assert active_mention_query("hey @ann", 8) == "ann"

    def test_query_stops_at_cursor(self):
        assert active_mention_query("hey @ann", 6) == "a"

    def test_bare_at_sign_gives_empty_query(self):
        assert active_mention_query("@", 1) == ""

    def test_at_inside_word_is_not_a_mention(self):
        assert active_mention_query("mail a@b", 8) is None

    def test_after_whitespace_there_is_no_query(self):
        assert active_mention_query("hey @ann ", 9) is None
        assert active_mention_query("", 0) is None

    def test_filter_members_prefers_prefix(self):
        members = [Member("u3", "Joanna"), Member("u2", "Bob"), ANN]
        assert [m.id for m in filter_members(members, "AN")] == ["u1", "u3"]

    def test_insert_mention(self):
        text, cursor, token = insert_mention("hey @ann", 8, ANN)
        assert text == "hey @Ann Lee "
        assert cursor == len(text)
        assert token == MentionToken(4, 12, "u1", "Ann Lee")

    def test_insert_mention_keeps_trailing_text(self):
        text, cursor, _ = insert_mention("@an, thanks", 3, ANN)
        assert text == "@Ann Lee , thanks"
        assert cursor == 9

    def test_insert_mention_outside_token(self):
        with pytest.raises(ValueError):
            insert_mention("hey ann", 7, ANN)


@pytest.fixture
def mentioned():
    buffer, cursor = ComposerBuffer().insert_text(0, "hey @ann").insert_mention(8, ANN)
    return buffer, cursor


class TestComposerMentions:
    def test_mention_is_atomic_token(self, mentioned):
        buffer, cursor = mentioned
        assert buffer.text == "hey @Ann Lee "
        assert cursor == 13
        assert buffer.mentions == (MentionToken(4, 12, "u1", "Ann Lee"),)
        assert buffer.mentioned_ids() == ["u1"]

    def test_no_query_inside_placed_mention(self, mentioned):
        buffer, _ = mentioned
        assert buffer.active_mention_query(12) is None
        assert buffer.active_mention_query(8) is None

    def test_typing_inside_mention_lands_after_it(self, mentioned):
        buffer, _ = mentioned
        typed = buffer.insert_text(6, "X")
        assert typed.text == "hey @Ann LeeX "
        assert typed.mentions[0].end == 12

    def test_backspace_removes_whole_mention(self, mentioned):
        buffer, _ = mentioned
        trimmed = buffer.delete_range(11, 12)
        assert trimmed.text == "hey  "
        assert trimmed.mentions == ()

    def test_edits_before_mention_shift_it(self, mentioned):
        buffer, _ = mentioned
        shifted = buffer.insert_text(0, "oh ")
        assert shifted.mentions[0].start == 7
        assert shifted.delete_range(0, 3).mentions[0].start == 4

    def test_mention_html(self, mentioned):
        buffer, _ = mentioned
        assert buffer.to_html() == '<p>hey <span data-mention-id="u1">@Ann Lee</span> </p>'


class TestComposerFormatting:
    def test_bold_toggles(self):
        buffer = ComposerBuffer(text="hello world").apply_bold(0, 5)
        assert buffer.to_html() == "<p><strong>hello</strong> world</p>"
        assert buffer.apply_bold(0, 5).marks == ()

    def test_typing_at_end_of_bold_extends_it(self):
        buffer = ComposerBuffer(text="hello world").apply_bold(0, 5).insert_text(5, "!")
        assert buffer.to_html() == "<p><strong>hello!</strong> world</p>"

    def test_partial_unbold_splits_span(self):
        buffer = ComposerBuffer(text="hello").apply_bold(0, 5).apply_bold(1, 4)
        assert buffer.to_html() == "<p><strong>h</strong>ell<strong>o</strong></p>"

    def test_nested_marks(self):
        buffer = ComposerBuffer(text="hello world").apply_bold(0, 5).apply_italic(0, 11)
        assert buffer.to_html() == "<p><strong><em>hello</em></strong><em> world</em></p>"

    def test_link(self):
        buffer = ComposerBuffer(text="hello world").apply_link(6, 11, "https://example.com")
        assert buffer.to_html() == '<p>hello <a href="https://example.com">world</a></p>'
        assert buffer.apply_link(6, 11, "").marks == ()

    def test_unsafe_link_is_rejected(self):
        with pytest.raises(ValueError):
            ComposerBuffer(text="x").apply_link(0, 1, "javascript:alert(1)")

    def test_list_lines(self):
        buffer = ComposerBuffer(text="one\ntwo\nthree").apply_list(0, 5)
        assert buffer.to_html() == "<ul><li>one</li><li>two</li></ul><p>three</p>"
        assert buffer.apply_list(0, 5).list_lines == ()

    def test_numbered_list(self):
        buffer = ComposerBuffer(text="a\nb").apply_list(0, 3, "ol")
        assert buffer.to_html() == "<ol><li>a</li><li>b</li></ol>"

    def test_new_line_shifts_later_list_items(self):
        buffer = ComposerBuffer(text="intro\nitem").apply_list(6, 6).insert_text(5, "\nmore")
        assert buffer.list_lines == ((2, "ul"),)

    def test_text_is_escaped(self):
        assert ComposerBuffer(text="<b>&").to_html() == "<p>&lt;b&gt;&amp;</p>"

    def test_empty_buffer(self):
        assert ComposerBuffer().to_html() == ""

    def test_rendered_html_survives_sanitizer(self, mentioned):
        buffer, cursor = mentioned
        buffer = buffer.insert_text(cursor, "see\nnotes").apply_bold(0, 3)
        buffer = buffer.apply_link(13, 16, "mailto:ann@example.com").apply_list(17, 17)
        rendered = buffer.to_html()
        assert sanitize_html(rendered) == rendered


class TestSanitizer:
    def test_scripts_are_removed(self):
        assert sanitize_html("<script>alert(1)</script>ok") == "ok"

    def test_attributes_are_stripped(self):
        assert sanitize_html('<p style="color:red" onclick="x()">hi</p>') == "<p>hi</p>"

    def test_unsafe_link_keeps_text(self):
        assert sanitize_html('<p><a href="javascript:alert(1)">x</a></p>') == "<p>x</p>"

    def test_disallowed_tags_keep_text(self):
        assert sanitize_html("<div><h1>Title</h1></div>") == "Title"

    def test_plain_span_is_dropped(self):
        assert sanitize_html('<span data-mention-id="u1"><span>x</span>y</span>') == (
            '<span data-mention-id="u1">xy</span>'
        )

    def test_unclosed_tags_are_closed(self):
        assert sanitize_html("<b>bold") == "<b>bold</b>"

    def test_plain_text_passes_escaped(self):
        assert sanitize_html("Tom & Jerry") == "Tom &amp; Jerry"

    def test_plain_text_extraction(self):
        content = "<p>Hello <b>world</b></p><ul><li>one</li></ul>"
        assert plain_text(content) == "Hello world one"
