"""Tests for the notepad markup parser."""

from DualChat.notepad import (
    Append,
    DeleteLine,
    InsertAfterLine,
    Prepend,
    ReplaceAll,
    ReplaceLine,
    SearchReplace,
    parse_response,
)


def test_plain_text_has_no_actions():
    result = parse_response("  Just talking.  ")
    assert result.spoken_text == "Just talking."
    assert result.actions == []
    assert result.termination_signal is False
    assert result.errors == []


def test_all_tag_kinds_in_order():
    raw = (
        "Updating.\n"
        "<np-replace-all>\nTitle\n</np-replace-all>\n"
        "<np-append>tail</np-append>\n"
        "<np-prepend>head</np-prepend>\n"
        '<np-insert line="1">inserted</np-insert>\n'
        '<np-replace line="2">swapped</np-replace>\n'
        '<np-delete line="3" />\n'
        '<np-search-replace find="a" with="b" all="TRUE" />\n'
        "Done."
    )
    result = parse_response(raw)
    assert result.actions == [
        ReplaceAll("Title"),
        Append("tail"),
        Prepend("head"),
        InsertAfterLine(1, "inserted"),
        ReplaceLine(2, "swapped"),
        DeleteLine(3),
        SearchReplace("a", "b", replace_all=True),
    ]
    assert result.errors == []
    assert result.spoken_text.startswith("Updating.")
    assert result.spoken_text.endswith("Done.")
    assert "<np-" not in result.spoken_text


def test_tag_names_are_case_insensitive():
    result = parse_response("<NP-Append>x</np-APPEND>")
    assert result.actions == [Append("x")]


def test_content_is_trimmed_but_keeps_inner_newlines():
    result = parse_response("<np-append>\n  line one\nline two  \n</np-append>")
    assert result.actions == [Append("line one\nline two")]


def test_delete_closed_by_following_tag():
    result = parse_response('<np-delete line="2"></np-delete> ok')
    assert result.actions == [DeleteLine(2)]
    assert result.spoken_text == "ok"


def test_delete_closing_tag_swallows_enclosed_text():
    result = parse_response('Trim it. <np-delete line="3">junk</np-delete>')
    assert result.actions == [DeleteLine(3)]
    assert result.spoken_text == "Trim it."


def test_bare_delete_does_not_swallow_a_later_tag():
    raw = '<np-delete line="1"> keep <np-delete line="2"></np-delete>'
    result = parse_response(raw)
    assert result.actions == [DeleteLine(1), DeleteLine(2)]
    assert result.spoken_text == "keep"


def test_search_replace_defaults_to_first_match():
    result = parse_response('<np-search-replace find="x" with="y" />')
    assert result.actions == [SearchReplace("x", "y", replace_all=False)]


def test_sentinel_sets_signal_and_is_stripped():
    result = parse_response("I think we are done. <DISCUSSION_COMPLETE>")
    assert result.termination_signal is True
    assert result.spoken_text == "I think we are done."


def test_sentinel_after_notepad_tags():
    result = parse_response("Final.<np-append>z</np-append>\n<DISCUSSION_COMPLETE>")
    assert result.termination_signal is True
    assert result.spoken_text == "Final."
    assert result.actions == [Append("z")]


def test_sentinel_only_counts_at_the_end():
    result = parse_response("<DISCUSSION_COMPLETE> but wait, more to say")
    assert result.termination_signal is False


def test_placeholder_for_actions_and_signal():
    result = parse_response("<np-append>a</np-append><np-append>b</np-append><DISCUSSION_COMPLETE>")
    assert result.spoken_text == "(AI modified the notepad (2 actions) and suggested ending the discussion)"


def test_placeholder_for_actions_only():
    result = parse_response("<np-replace-all>x</np-replace-all>")
    assert result.spoken_text == "(AI modified the notepad (1 actions))"


def test_placeholder_for_empty_reply():
    assert parse_response("   ").spoken_text == "(AI provided no additional text reply)"


def test_non_integer_line_is_a_parse_error_and_stays_in_text():
    result = parse_response('Before <np-delete line="two" /> after')
    assert result.actions == []
    assert len(result.errors) == 1
    assert '<np-delete line="two" />' in result.spoken_text


def test_missing_required_attribute():
    result = parse_response('<np-search-replace find="x" />')
    assert result.actions == []
    assert any('"with"' in e for e in result.errors)


def test_invalid_all_value():
    result = parse_response('<np-search-replace find="x" with="y" all="yes" />')
    assert result.actions == []
    assert len(result.errors) == 1


def test_unclosed_content_tag_is_reported_and_kept():
    result = parse_response("Talk <np-append>dangling text")
    assert result.actions == []
    assert len(result.errors) == 1
    assert "<np-append>" in result.spoken_text
    assert "dangling text" in result.spoken_text


def test_nested_tags_are_literal_content():
    result = parse_response("<np-replace-all>keep <np-append>this</np-append> literal</np-replace-all>")
    assert len(result.actions) == 1
    assert isinstance(result.actions[0], ReplaceAll)
    assert "<np-append>this</np-append>" in result.actions[0].content


def test_unknown_np_tag_is_plain_text():
    result = parse_response("<np-bogus>hi</np-bogus>")
    assert result.actions == []
    assert result.spoken_text == "<np-bogus>hi</np-bogus>"
