"""Tests for the HTML allow-list sanitizer and token tag stripper."""

from __future__ import annotations

import pytest

from quarry.rag.sanitizer import TokenTagStripper, html_to_text, sanitize_html

_SAMPLES = [
    "<p>Plain answer.</p>",
    '<p class="x" onclick="evil()">Hi <a href="javascript:alert(1)">there</a></p>',
    "<ul><li><strong>One</strong></li><li><em>Two</em> &amp; more</li></ul>",
    "<h4>Title</h4><blockquote>quote<br>line</blockquote><script>alert(1)</script>",
    "<div><span>nested <b>bold</b></span></div><!-- hidden -->",
    "no markup at all 1 < 2",
    "<p>unclosed <strong>tag",
    "<p>a</p>\n<div>\n<p>b</p>\n</div>",
    "<p>See <a href='x'>link</a></p>\n\n<div>\n</div>\n<p>c</p>",
    "<div>\n  <section>\n    <p>deep</p>\n  </section>\n</div>\n\n<span> </span>\n",
]


def test_allowed_tags_kept():
    html = "<p>a</p><ul><li><strong>b</strong> <em>c</em> <code>d</code></li></ul><h4>e</h4>"
    assert sanitize_html(html) == html


def test_attributes_stripped():
    assert sanitize_html('<p style="color:red" id="x">Hi</p>') == "<p>Hi</p>"


def test_links_unwrapped_keep_text():
    assert sanitize_html('<p>See <a href="javascript:alert(1)">this</a></p>') == "<p>See this</p>"


def test_images_removed():
    assert sanitize_html('<p>x<img src="data:image/png;base64,AAA" onerror="e()"></p>') == "<p>x</p>"


def test_script_and_style_removed_with_content():
    html = "<p>ok</p><script>steal()</script><style>p{}</style>"
    assert sanitize_html(html) == "<p>ok</p>"


def test_comments_removed():
    assert sanitize_html("<p>a<!-- secret --></p>") == "<p>a</p>"


def test_disallowed_wrappers_unwrapped():
    assert sanitize_html("<div><p>in <span>div</span></p></div>") == "<p>in div</p>"


@pytest.mark.parametrize("html", _SAMPLES)
def test_sanitize_is_idempotent(html):
    once = sanitize_html(html)
    assert sanitize_html(once) == once


@pytest.mark.parametrize("html", _SAMPLES)
def test_sanitized_output_has_no_attributes_or_scripts(html):
    out = sanitize_html(html)
    assert "=" not in out.replace("&amp;", "")
    assert "script" not in out


def test_html_to_text_block_boundaries():
    assert html_to_text("<p>One</p><p>Two<br/>Three</p>") == "One\nTwo\nThree"


def test_html_to_text_lists_and_entities():
    assert html_to_text("<ul><li>a &amp; b</li><li>c</li></ul>") == "a & b\nc"


def test_html_to_text_plain_input():
    assert html_to_text("just text") == "just text"


def test_token_stripper_tag_split_across_tokens():
    stripper = TokenTagStripper()
    assert [stripper.feed(t) for t in ["<str", "ong>Hi", "</strong", "> there"]] == [
        "",
        "Hi",
        "",
        " there",
    ]


def test_token_stripper_whole_tags_in_token():
    assert TokenTagStripper().feed("<p>Hello <em>world</em></p>") == "Hello world"


def test_token_stripper_plain_tokens_pass_through():
    stripper = TokenTagStripper()
    assert stripper.feed("plain") == "plain"
    assert stripper.feed(" text") == " text"


def test_unwrapped_wrappers_leave_single_newline():
    assert sanitize_html("<p>a</p>\n<div>\n<p>b</p>\n</div>") == "<p>a</p>\n<p>b</p>"


def test_token_stripper_keeps_comparison_operators():
    stripper = TokenTagStripper()
    tokens = ["<p>If x ", "< 5 then ", "stop now.", "</p>", "<p>Next</p>"]
    assert "".join(stripper.feed(t) for t in tokens) == "If x < 5 then stop now.Next"


def test_token_stripper_plain_answer_without_closing_bracket():
    stripper = TokenTagStripper()
    tokens = ["Costs are < 10", " euros; a ratio of 3<4", " holds."]
    assert [stripper.feed(t) for t in tokens] == [
        "Costs are < 10",
        " euros; a ratio of 3<4",
        " holds.",
    ]


def test_token_stripper_tag_opening_at_token_end():
    stripper = TokenTagStripper()
    assert [stripper.feed(t) for t in ["Hello <", "em>world</em>"]] == ["Hello ", "world"]
