"""
Field extraction for kariyer.net listing and detail pages.

Listing pages yield one PartialJob per card; a card without a resolvable detail
URL is dropped. Every other card field is looked up on its own, so a missing
company badge never hides the title.

Detail pages are read tier by tier. Each field has an ordered tuple of
strategies (plain functions of a DetailPage); the first one that returns a
non-empty value wins:

    structured data (JSON-LD JobPosting)
      -> direct selectors
      -> keyword section detection (description)
      -> longest text block (description)
      -> full-text date regex (date_posted)

Nothing here raises on a selector miss or a broken JSON-LD block; the field
just stays None.
"""

from __future__ import annotations

import html
import json
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from .models import PartialJob
from .text import visible_text
from .utils import clean_text

log = logging.getLogger(__name__)

BASE_URL = "https://www.kariyer.net"
JOB_PATH = "/is-ilani/"

# Keyword section detection
SECTION_MIN_CHARS = 300
SECTION_KEYWORDS: tuple[str, ...] = (
    "iş tanımı",
    "is tanimi",
    "genel nitelikler",
    "aranan nitelikler",
    "nitelikler",
    "görev tanımı",
    "sorumluluklar",
    "job description",
    "qualifications",
    "responsibilities",
    "requirements",
)
BLOCK_TAGS = ("div", "section", "article", "main")
HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")

# Longest-block fallback
LONGEST_BLOCK_MIN_CHARS = 100
LONGEST_BLOCK_TAGS = ("div", "section", "article", "p", "td")
PAGE_CHROME_TAGS = ("nav", "header", "footer", "aside")
# Share of the text an inner block needs before the capture narrows to it
DOMINANT_SHARE = 0.8


class ExtractMode(str, Enum):
    LISTING_CARD = "LISTING_CARD"
    DETAIL = "DETAIL"


# =============================================================================
# Shared helpers
# =============================================================================
def parse_html(markup: str | bytes, parser: str = "html.parser") -> BeautifulSoup:
    return BeautifulSoup(markup, parser)


def _as_soup(page: str | bytes | BeautifulSoup) -> BeautifulSoup:
    return page if isinstance(page, BeautifulSoup) else parse_html(page)


def _first(strategies: Iterable[Callable[[Any], Any]], page: Any) -> Any:
    """Apply strategies in order; first non-empty result wins."""
    for strategy in strategies:
        try:
            value = strategy(page)
        except (AttributeError, KeyError, TypeError, ValueError, IndexError) as e:
            log.debug("strategy %s failed: %r", getattr(strategy, "__name__", strategy), e)
            continue
        if value not in (None, ""):
            return value
    return None


def _text_of(el: Tag | None) -> str | None:
    if el is None:
        return None
    return visible_text(el) or None


def _fold(s: str) -> str:
    # str.lower() turns "İ" into "i" + combining dot
    return s.replace("İ", "i").lower()


def job_id_from_url(url: str | None) -> str | None:
    """Trailing digit run of the URL's last path segment ('.../java-dev-4123456' -> '4123456')."""
    if not url:
        return None
    segment = urlsplit(url).path.rstrip("/").rsplit("/", 1)[-1]
    m = re.search(r"(\d+)$", segment)
    return m.group(1) if m else None


# =============================================================================
# Listing cards
# =============================================================================
LIST_CONTAINER_SELECTORS: Sequence[str] = (
    ".list-items-wrapper",
    "[data-test='ad-list']",
    ".job-list",
    "main",
)
CARD_SELECTORS: Sequence[str] = (
    ".list-items",
    "[data-test='ad-card']",
    ".k-ad-card",
    "article.job-card",
)


def _sel_text(*selectors: str) -> Callable[[Tag], str | None]:
    def lookup(node: Tag) -> str | None:
        for sel in selectors:
            value = _text_of(node.select_one(sel))
            if value:
                return value
        return None

    lookup.__name__ = f"text{selectors!r}"
    return lookup


def _sel_attr(attrs: Sequence[str], *selectors: str) -> Callable[[Tag], str | None]:
    def lookup(node: Tag) -> str | None:
        for sel in selectors:
            el = node.select_one(sel)
            if el is None:
                continue
            for attr in attrs:
                value = clean_text(el.get(attr))
                if value:
                    return value
        return None

    lookup.__name__ = f"attr{attrs!r}{selectors!r}"
    return lookup


def _self_href(card: Tag) -> str | None:
    return clean_text(card.get("href")) if card.name == "a" else None


CARD_URL_STRATEGIES: Sequence[Callable[[Tag], str | None]] = (
    _self_href,
    _sel_attr(("href",), "a.k-ad-card[href]", "a[data-test='ad-card-item'][href]", "a.card-link[href]"),
    _sel_attr(("href",), f"a[href*='{JOB_PATH}']"),
)

CARD_FIELDS: dict[str, Sequence[Callable[[Tag], Any]]] = {
    "title": (_sel_text("[data-test='ad-card-title']", ".k-ad-card-title", "h3", "h2"),),
    "company": (_sel_text("[data-test='subtitle']", ".k-ad-card-subtitle", "[class*=company]"),),
    "location": (_sel_text("[data-test='location']", ".location", "[class*=location]"),),
    "work_model": (_sel_text("[data-test='work-model']", "[class*=work-model]"),),
    "employment_type": (_sel_text("[data-test='employment-type']", "[class*=working-type]"),),
    "date_posted": (_sel_text("[data-test='ad-date-item']", ".ad-date", "time"),),
    "logo_url": (
        _sel_attr(("data-src", "src"), "img[data-test='company-image']", "img.company-logo", "img"),
    ),
    "is_sponsored": (lambda card: True if card.select_one("[data-test='sponsored'], .sponsored") else None,),
}


def _cards(soup: BeautifulSoup) -> list[Tag]:
    containers = [soup.select_one(sel) for sel in LIST_CONTAINER_SELECTORS]
    container = next((c for c in containers if c), soup)
    for scope in (container, soup):
        for sel in CARD_SELECTORS:
            found = scope.select(sel)
            if found:
                return found
    return []


def extract_listing(page: str | bytes | BeautifulSoup, *, base_url: str = BASE_URL) -> list[PartialJob]:
    """One PartialJob per card with a resolvable URL, in card order."""
    soup = _as_soup(page)
    out: list[PartialJob] = []
    for idx, card in enumerate(_cards(soup)):
        href = _first(CARD_URL_STRATEGIES, card)
        if not href:
            log.debug("card %d: no detail url, skipped", idx)
            continue
        url = urljoin(base_url, href)
        values = {name: _first(strategies, card) for name, strategies in CARD_FIELDS.items()}
        out.append(PartialJob(url=url, id=job_id_from_url(url), **values))
    return out


# =============================================================================
# JSON search API
# =============================================================================
def parse_api_listing(body: str | bytes, *, base_url: str = BASE_URL) -> tuple[list[PartialJob], int]:
    """
    Read one page of the JSON search endpoint:

        {"data": {"positions": [{"positionUrl", "title", "companyName",
                                 "location", "publishDate", ...}, ...]}}

    Returns (jobs, positions on the page). Positions without a positionUrl are
    dropped from `jobs` but still counted; a page with zero positions is the
    last one. A missing `data` or `positions` key reads as an empty page.

    Raises ValueError when the body is not JSON or not a JSON object.
    """
    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError(f"unexpected API payload type: {type(payload).__name__}")
    data = payload.get("data") or {}
    positions = data.get("positions") if isinstance(data, dict) else None
    if not isinstance(positions, list):
        positions = []

    out: list[PartialJob] = []
    for idx, pos in enumerate(positions):
        if not isinstance(pos, dict):
            continue
        href = clean_text(pos.get("positionUrl"))
        if not href:
            log.debug("position %d: no positionUrl, skipped", idx)
            continue
        url = urljoin(base_url, href)
        out.append(PartialJob(
            url=url,
            id=job_id_from_url(url) or _ld_str(pos.get("id")),
            title=_ld_str(pos.get("title")),
            company=_ld_str(pos.get("companyName")),
            location=_ld_str(pos.get("location")),
            date_posted=_ld_str(pos.get("publishDate")),
        ))
    return out, len(positions)


# =============================================================================
# Detail pages
# =============================================================================
@dataclass(frozen=True)
class DetailPage:
    soup: BeautifulSoup
    posting: dict[str, Any] | None  # first JSON-LD JobPosting object, if any


def _is_job_posting(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    typ = obj.get("@type")
    if isinstance(typ, list):
        return "JobPosting" in typ
    return typ == "JobPosting"


def _find_posting(data: Any) -> dict[str, Any] | None:
    if _is_job_posting(data):
        return data
    if isinstance(data, list):
        for item in data:
            found = _find_posting(item)
            if found:
                return found
    elif isinstance(data, dict) and isinstance(data.get("@graph"), list):
        return _find_posting(data["@graph"])
    return None


def find_job_posting(soup: BeautifulSoup) -> dict[str, Any] | None:
    """First JobPosting object across all ld+json blocks; bad JSON is skipped."""
    for script in soup.select("script[type='application/ld+json']"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError as e:
            log.debug("ld+json block skipped: %s", e)
            continue
        found = _find_posting(data)
        if found:
            return found
    return None


# ---- tier 1: structured data ----
def _ld_str(value: Any) -> str | None:
    if isinstance(value, list):
        parts = [clean_text(str(v)) for v in value if v not in (None, "")]
        return ", ".join(p for p in parts if p) or None
    if isinstance(value, (str, int, float)):
        return clean_text(str(value))
    return None


def _ld_field(*path: str) -> Callable[[DetailPage], str | None]:
    def lookup(page: DetailPage) -> str | None:
        node: Any = page.posting
        for key in path:
            if isinstance(node, list):
                node = node[0] if node else None
            if not isinstance(node, dict):
                return None
            node = node.get(key)
        return _ld_str(node)

    lookup.__name__ = "ld:" + ".".join(path)
    return lookup


def _ld_location(page: DetailPage) -> str | None:
    locs = (page.posting or {}).get("jobLocation")
    if isinstance(locs, dict):
        locs = [locs]
    names: list[str] = []
    for loc in locs or []:
        addr = loc.get("address") if isinstance(loc, dict) else None
        if not isinstance(addr, dict):
            continue
        name = _ld_str(addr.get("addressLocality")) or _ld_str(addr.get("addressRegion"))
        if name and name not in names:
            names.append(name)
    return ", ".join(names) or None


_LOCATION_TYPES = {"TELECOMMUTE": "Uzaktan"}


def _ld_work_model(page: DetailPage) -> str | None:
    raw = _ld_str((page.posting or {}).get("jobLocationType"))
    if not raw:
        return None
    return _LOCATION_TYPES.get(raw.upper(), raw)


def _ld_description(page: DetailPage) -> str | None:
    raw = (page.posting or {}).get("description")
    if not isinstance(raw, str) or not raw.strip():
        return None
    # Some feeds ship the markup entity-escaped
    if "<" not in raw and "&lt;" in raw:
        raw = html.unescape(raw)
    return raw.strip()


# ---- tier 2: direct selectors ----
def _css_text(*selectors: str) -> Callable[[DetailPage], str | None]:
    inner = _sel_text(*selectors)

    def lookup(page: DetailPage) -> str | None:
        return inner(page.soup)

    lookup.__name__ = inner.__name__
    return lookup


def _css_attr(attrs: Sequence[str], *selectors: str) -> Callable[[DetailPage], str | None]:
    inner = _sel_attr(attrs, *selectors)

    def lookup(page: DetailPage) -> str | None:
        return inner(page.soup)

    lookup.__name__ = inner.__name__
    return lookup


def _css_html(*selectors: str) -> Callable[[DetailPage], str | None]:
    def lookup(page: DetailPage) -> str | None:
        for sel in selectors:
            el = page.soup.select_one(sel)
            if el is not None and visible_text(el):
                return el.decode_contents().strip()
        return None

    lookup.__name__ = f"html{selectors!r}"
    return lookup


# ---- tier 3: keyword section ----
def _strip_headings(el: Tag) -> str:
    frag = BeautifulSoup(el.decode_contents(), "html.parser")
    for h in frag.find_all(HEADING_TAGS):
        h.decompose()
    return str(frag).strip()


def keyword_section(page: DetailPage) -> str | None:
    """
    Block whose text is long enough and mentions a description/qualifications
    keyword. Headings inside it are dropped from the captured HTML.

    Outer wrappers (page containers, the whole main column) qualify too, since
    their text contains the keyword as well. So this returns the first
    *innermost* qualifying block in document order, not the first match:
    the first match would almost always be the page wrapper.
    """
    root = page.soup.body or page.soup
    candidates = []
    for el in root.find_all(BLOCK_TAGS):
        text = visible_text(el)
        if len(text) < SECTION_MIN_CHARS:
            continue
        low = _fold(text)
        if any(kw in low for kw in SECTION_KEYWORDS):
            candidates.append(el)
    if not candidates:
        return None
    cand_ids = {id(c) for c in candidates}
    for el in candidates:
        if not any(id(d) in cand_ids for d in el.find_all(BLOCK_TAGS)):
            return _strip_headings(el) or None
    return None


# ---- tier 4: longest block ----
def longest_text_block(page: DetailPage) -> str | None:
    """
    Block with the most visible text, ignoring anything that holds (or sits
    in) page chrome. When one inner block carries nearly all of the winner's
    text, the capture narrows to it, so a lone wrapper div collapses onto its
    content while a div of many short paragraphs is kept whole.
    """
    root = page.soup.body or page.soup
    sizes: dict[int, int] = {}

    def size(el: Tag) -> int:
        if id(el) not in sizes:
            sizes[id(el)] = len(visible_text(el))
        return sizes[id(el)]

    best: Tag | None = None
    for el in root.find_all(LONGEST_BLOCK_TAGS):
        if el.find(PAGE_CHROME_TAGS) or el.find_parent(PAGE_CHROME_TAGS):
            continue
        if size(el) >= LONGEST_BLOCK_MIN_CHARS and (best is None or size(el) > size(best)):
            best = el
    if best is None:
        return None

    while True:
        inner = max(best.find_all(LONGEST_BLOCK_TAGS), key=size, default=None)
        if inner is None or size(inner) < max(LONGEST_BLOCK_MIN_CHARS, size(best) * DOMINANT_SHARE):
            break
        best = inner
    return best.decode_contents().strip() or None


# ---- tier 5: full-text regex ----
_DATE_PATTERNS = (
    re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
    re.compile(r"\b(\d{2}\.\d{2}\.\d{4})\b"),
)


def date_in_text(page: DetailPage) -> str | None:
    root = page.soup.body or page.soup
    text = visible_text(root)
    for pattern in _DATE_PATTERNS:
        m = pattern.search(text)
        if m:
            return m.group(1)
    return None


DETAIL_FIELDS: dict[str, Sequence[Callable[[DetailPage], Any]]] = {
    "title": (
        _ld_field("title"),
        _css_text("h1", "[data-test='job-title']"),
        _css_attr(("content",), "meta[property='og:title']"),
    ),
    "company": (
        _ld_field("hiringOrganization", "name"),
        _css_text("[class*=company]", "h1 a"),
    ),
    "location": (
        _ld_location,
        _css_text("[data-test='location']", "[class*=location]"),
    ),
    "employment_type": (
        _ld_field("employmentType"),
        _css_text("[data-test='employment-type']", "[class*=working-type]"),
    ),
    "work_model": (
        _ld_work_model,
        _css_text("[data-test='work-model']", "[class*=work-model]"),
    ),
    "date_posted": (
        _ld_field("datePosted"),
        _css_attr(("datetime",), "time[datetime]"),
        date_in_text,
    ),
    "description_html": (
        _ld_description,
        _css_html("[class*=job-description]", ".description", "#job-description"),
        keyword_section,
        longest_text_block,
    ),
    "logo_url": (
        _ld_field("hiringOrganization", "logo"),
        _ld_field("hiringOrganization", "logo", "url"),
        _css_attr(("data-src", "src"), "img[class*=company-logo]", "img[data-test='company-image']"),
    ),
}


def extract_detail(page: str | bytes | BeautifulSoup, *, url: str | None = None) -> PartialJob:
    soup = _as_soup(page)
    detail = DetailPage(soup=soup, posting=find_job_posting(soup))
    values = {name: _first(strategies, detail) for name, strategies in DETAIL_FIELDS.items()}
    ld_id = _ld_field("identifier", "value")(detail) if detail.posting else None
    return PartialJob(url=url, id=job_id_from_url(url) or ld_id, **values)


def extract(
    page: str | bytes | BeautifulSoup,
    mode: ExtractMode,
    *,
    base_url: str = BASE_URL,
    url: str | None = None,
) -> list[PartialJob] | PartialJob:
    if mode is ExtractMode.LISTING_CARD:
        return extract_listing(page, base_url=base_url)
    return extract_detail(page, url=url)


# =============================================================================
# Pagination
# =============================================================================
NEXT_SELECTORS: Sequence[str] = (
    "link[rel~=next][href]",
    "a[rel~=next][href]",
    ".pagination li.next a[href]",
    "a[aria-label*='Sonraki'][href]",
    "a[aria-label*='Next'][href]",
)
_NEXT_TEXT_RE = re.compile(r"^(sonraki|next|ileri)\b", re.IGNORECASE)
_NEXT_GLYPHS = {"›", "»", "→", ">", "≫", "❯"}


def _usable_href(a: Tag) -> str | None:
    href = (a.get("href") or "").strip()
    if not href or href == "#" or href.lower().startswith("javascript:"):
        return None
    classes = " ".join(a.get("class") or []).lower()
    if "disabled" in classes or a.get("aria-disabled") == "true":
        return None
    return href


def find_next_page(page: str | bytes | BeautifulSoup, *, base_url: str = BASE_URL) -> str | None:
    """Absolute URL of the next listing page, or None on the last page."""
    soup = _as_soup(page)
    for sel in NEXT_SELECTORS:
        for el in soup.select(sel):
            href = _usable_href(el)
            if href:
                return urljoin(base_url, href)
    for a in soup.find_all("a", href=True):
        label = _text_of(a) or ""
        if _NEXT_TEXT_RE.match(label) or label in _NEXT_GLYPHS:
            href = _usable_href(a)
            if href:
                return urljoin(base_url, href)
    return None
