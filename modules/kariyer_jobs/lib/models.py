from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any

from .text import html_to_text
from .utils import now_iso

SOURCE = "kariyer.net"

# Fields the detail page knows better than a listing card does.
DETAIL_OWNED_FIELDS = frozenset({"date_posted", "description_html"})


class Stage(str, Enum):
    LIST = "LIST"
    DETAIL = "DETAIL"


@dataclass
class PartialJob:
    """
    Whatever one extraction pass could find. Every field is optional; a missing
    selector or structured-data key is simply None.
    """

    url: str | None = None
    id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    employment_type: str | None = None
    work_model: str | None = None
    date_posted: str | None = None
    description_html: str | None = None
    logo_url: str | None = None
    is_sponsored: bool | None = None

    def known_fields(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def merge_detail(listing: PartialJob, detail: PartialJob) -> PartialJob:
    """
    Fold a detail-stage extraction into the partial record carried from the
    listing card.

    - url: listing/target URL always wins
    - date_posted, description_html: detail wins when it has a value
    - everything else: listing wins when it has a value, detail fills the gaps
    """
    merged: dict[str, Any] = {}
    for f in fields(PartialJob):
        lv = getattr(listing, f.name)
        dv = getattr(detail, f.name)
        if f.name == "url":
            merged[f.name] = lv or dv
        elif f.name in DETAIL_OWNED_FIELDS:
            merged[f.name] = dv if dv is not None else lv
        else:
            merged[f.name] = lv if lv is not None else dv
    return PartialJob(**merged)


@dataclass(frozen=True)
class JobRecord:
    """
    One emitted job posting. Immutable once built.

    description_text is derived from description_html in __post_init__ and
    cannot be passed in.
    """

    url: str
    id: str | None = None
    title: str | None = None
    company: str | None = None
    location: str | None = None
    employment_type: str | None = None
    work_model: str | None = None
    date_posted: str | None = None
    description_html: str | None = None
    logo_url: str | None = None
    is_sponsored: bool | None = None
    source: str = SOURCE
    crawled_at: str = field(default_factory=now_iso)
    description_text: str | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("JobRecord requires a url")
        object.__setattr__(self, "description_text", html_to_text(self.description_html))

    @classmethod
    def from_partial(cls, partial: PartialJob, *, url: str | None = None) -> JobRecord:
        data = asdict(partial)
        data["url"] = url or partial.url
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        """Externally visible (camelCase) shape."""
        return {
            "url": self.url,
            "id": self.id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "employmentType": self.employment_type,
            "workModel": self.work_model,
            "datePosted": self.date_posted,
            "descriptionHtml": self.description_html,
            "descriptionText": self.description_text,
            "logoUrl": self.logo_url,
            "isSponsored": self.is_sponsored,
            "source": self.source,
            "crawledAt": self.crawled_at,
        }


@dataclass(frozen=True)
class CrawlTarget:
    """One pending fetch; consumed exactly once by a worker."""

    url: str
    stage: Stage
    page_number: int | None = None  # LIST only
    carried: PartialJob | None = None  # DETAIL only


@dataclass
class CrawlBudget:
    target_count: int | None  # None = unbounded
    max_pages: int
    pages_visited: int = 0
    items_saved: int = 0
    details_queued: int = 0


@dataclass
class CrawlStats:
    requests: int = 0
    pages_failed: int = 0
    pages_blocked: int = 0
    cards_seen: int = 0
    duplicates: int = 0
    filtered_by_age: int = 0
    secondary_parses: int = 0
    targets_crashed: int = 0


@dataclass
class CrawlReport:
    """
    Result bundle for one crawl run.
    - errors: non-fatal issues (skipped pages, crashed targets), newest last.
    - stop_reason: "drained", "budget", "max_pages" or "ceiling".
    """

    items_saved: int
    details_queued: int
    pages_visited: int
    stats: CrawlStats
    stop_reason: str
    duration_s: float
    errors: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "items_saved": self.items_saved,
            "details_queued": self.details_queued,
            "pages_visited": self.pages_visited,
            "stats": asdict(self.stats),
            "stop_reason": self.stop_reason,
            "duration_s": round(self.duration_s, 3),
            "errors": list(self.errors),
        }
