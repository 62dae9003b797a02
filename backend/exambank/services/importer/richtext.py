"""Rich (HTML) text helpers for question content."""

import re

from bs4 import BeautifulSoup

_MARKUP_RE = re.compile(r"<\s*/?\s*[a-zA-Z][^>]*>|&(?:[a-zA-Z]+|#\d+|#x[0-9a-fA-F]+);")
_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")

# Block elements that end a line when flattened to plain text
_BLOCK_TAGS = ["p", "div", "li", "tr", "h1", "h2", "h3", "h4", "h5", "h6"]


def looks_like_markup(value: str) -> bool:
    """True if the value contains HTML tags or entities."""
    return bool(value) and bool(_MARKUP_RE.search(value))


def html_to_text(markup: str) -> str:
    """Flatten formatted markup to the plain text shown in search and exports."""
    if not markup:
        return ""
    soup = BeautifulSoup(markup, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(_BLOCK_TAGS):
        block.append("\n")
    text = soup.get_text()
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n", "\n".join(lines)).strip()


def split_rich(value: str) -> tuple[str, str]:
    """Split a cell value into (plain, rich).

    Markup is kept as the rich companion and the plain text is derived from
    it; a plain value has no rich companion.
    """
    value = value.strip()
    if looks_like_markup(value):
        return html_to_text(value), value
    return value, ""
