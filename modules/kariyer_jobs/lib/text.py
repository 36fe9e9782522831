from __future__ import annotations

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .utils import clean_text

# Content that never renders as visible text
NON_TEXT_TAGS = ("script", "style", "noscript", "iframe", "template")

# Elements that start a new line when rendered; inline markup joins with no gap
BLOCK_LEVEL_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "br", "dd", "div", "dl", "dt",
    "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4",
    "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p", "pre", "section",
    "table", "tbody", "td", "tfoot", "th", "thead", "tr", "ul",
})


def _collect_text(node: Tag, out: list[str]) -> None:
    for child in node.children:
        if isinstance(child, Tag):
            if child.name in NON_TEXT_TAGS:
                continue
            block = child.name in BLOCK_LEVEL_TAGS
            if block:
                out.append(" ")
            _collect_text(child, out)
            if block:
                out.append(" ")
        elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
            # comments, doctypes and CDATA are PreformattedString
            out.append(str(child))


def visible_text(el: Tag) -> str:
    """
    Rendered text of an element: hidden content dropped, a space at block
    boundaries only, whitespace collapsed. Never None.
    """
    out: list[str] = []
    _collect_text(el, out)
    return clean_text("".join(out)) or ""


def html_to_text(fragment: str | None) -> str | None:
    """
    Plain-text render of an HTML fragment ("Java<b>Script</b>" -> "JavaScript",
    "<li>A</li><li>B</li>" -> "A B").

    None stays None; any other input yields a string (possibly empty).
    """
    if fragment is None:
        return None
    return visible_text(BeautifulSoup(fragment, "html.parser"))
