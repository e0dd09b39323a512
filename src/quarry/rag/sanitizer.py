"""HTML allow-list sanitizer for model answers (BeautifulSoup).

Allowed tags: p, br, ul, ol, li, strong, em, code, h4, blockquote.
Allowed attributes: none. Allowed URL schemes: none (no attribute can carry
a URL, so javascript:/data: links cannot survive).

Disallowed tags are unwrapped (their text is kept); script-like containers
are dropped together with their content. Comments, doctypes and processing
instructions are removed. Sanitizing sanitized output is a no-op.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup, NavigableString
from bs4.element import PreformattedString

ALLOWED_TAGS: frozenset[str] = frozenset(
    ["p", "br", "ul", "ol", "li", "strong", "em", "code", "h4", "blockquote"]
)

# Removed with everything inside them.
_DROP_WITH_CONTENT: frozenset[str] = frozenset(
    [
        "script", "style", "iframe", "frame", "frameset", "object", "embed",
        "applet", "template", "noscript", "head", "title", "textarea",
        "select", "svg", "math",
    ]
)

_BLOCK_TAGS: frozenset[str] = frozenset(["p", "li", "h4", "blockquote", "ul", "ol"])

_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def sanitize_html(html: str) -> str:
    """Return *html* reduced to the allow-listed tags with no attributes."""
    soup = BeautifulSoup(html, "html.parser")

    for node in soup.find_all(string=lambda s: isinstance(s, PreformattedString)):
        node.extract()

    for tag in soup.find_all(list(_DROP_WITH_CONTENT)):
        if not tag.decomposed:
            tag.decompose()

    for tag in soup.find_all(True):
        if tag.name in ALLOWED_TAGS:
            tag.attrs = {}
        else:
            tag.unwrap()

    # unwrap() leaves adjacent text nodes that a fresh parse would merge and
    # collapse; re-parsing here makes the output a fixpoint.
    return str(BeautifulSoup(str(soup), "html.parser")).strip()


def html_to_text(html: str) -> str:
    """Strip all tags from (sanitized) *html*, keeping block boundaries as newlines."""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with(NavigableString("\n"))
    for tag in soup.find_all(list(_BLOCK_TAGS)):
        tag.insert_after(NavigableString("\n"))
    text = soup.get_text()
    lines = [line.strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


class TokenTagStripper:
    """Strip markup from a token stream where tags may span several tokens.

    ``feed("<str")`` then ``feed("ong>Hi")`` yields ``""`` then ``"Hi"``.
    A ``<`` only opens a tag when a letter, ``/`` or ``!`` follows it, so
    prose such as ``x < 5`` passes through. A ``<`` that ends a token is held
    back until the next token decides it.

    The output is display-only; the stored answer is always rebuilt from the
    full buffer via sanitize_html().
    """

    def __init__(self) -> None:
        self._in_tag = False
        self._held_lt = False

    def feed(self, token: str) -> str:
        out: list[str] = []
        for ch in token:
            if self._held_lt:
                self._held_lt = False
                if ch.isalpha() or ch in "/!":
                    self._in_tag = True
                    continue
                out.append("<")
            if self._in_tag:
                if ch == ">":
                    self._in_tag = False
            elif ch == "<":
                self._held_lt = True
            else:
                out.append(ch)
        return "".join(out)
