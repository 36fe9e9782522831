from __future__ import annotations

from urllib.parse import urldefrag, urljoin


def normalize_url(url: str, base_url: str | None = None) -> str:
    """Absolute URL without fragment or trailing slash (host kept as-is)."""
    absolute = urljoin(base_url or "", url.strip())
    absolute, _frag = urldefrag(absolute)
    if absolute.endswith("/") and absolute.count("/") > 3:
        absolute = absolute.rstrip("/")
    return absolute


class SeenSet:
    """
    Detail URLs already scheduled during one crawl run.

    Members are never removed. Not synchronised: callers mutate it under
    their own lock (see state.CrawlState).
    """

    def __init__(self, base_url: str | None = None) -> None:
        self._base_url = base_url
        self._seen: set[str] = set()

    def should_enqueue(self, url: str) -> bool:
        """True the first time a (normalised) URL is offered; marks it seen."""
        key = normalize_url(url, self._base_url)
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, url: object) -> bool:
        if not isinstance(url, str):
            return False
        return normalize_url(url, self._base_url) in self._seen

    def __len__(self) -> int:
        return len(self._seen)
