from __future__ import annotations

import threading
from dataclasses import replace

from .dedupe import SeenSet
from .models import CrawlBudget, CrawlStats


class CrawlState:
    """
    The only mutable state shared by crawl workers: seen detail URLs, budget
    counters and stats, all behind one lock.

    Every check-then-increment goes through a method here so it is atomic;
    workers never read a counter and write it back themselves.
    """

    def __init__(self, budget: CrawlBudget, seen: SeenSet, *, dedupe: bool = True) -> None:
        self._lock = threading.Lock()
        self._budget = budget
        self._seen = seen
        self._stats = CrawlStats()
        self._dedupe = dedupe

    # ---- budget ----
    def _under_target(self, n: int) -> bool:
        target = self._budget.target_count
        return target is None or n < target

    def try_visit_page(self) -> bool:
        """Reserve one LIST page from the page budget."""
        with self._lock:
            if self._budget.pages_visited >= self._budget.max_pages:
                return False
            self._budget.pages_visited += 1
            return True

    def can_paginate(self, *, collect_details: bool) -> bool:
        """Page budget left AND the run still wants more items."""
        with self._lock:
            if self._budget.pages_visited >= self._budget.max_pages:
                return False
            counter = self._budget.details_queued if collect_details else self._budget.items_saved
            return self._under_target(counter)

    def try_queue_detail(self, url: str) -> str:
        """
        Atomically dedupe + reserve a detail slot.

        Returns "queued", "duplicate" or "full".
        """
        with self._lock:
            if not self._under_target(self._budget.details_queued):
                return "full"
            if url in self._seen:
                if self._dedupe:
                    self._stats.duplicates += 1
                    return "duplicate"
            else:
                self._seen.should_enqueue(url)
            self._budget.details_queued += 1
            return "queued"

    def try_claim_listing_url(self, url: str) -> bool:
        """Listing-only mode dedupe; False when the URL was already emitted."""
        with self._lock:
            if self._seen.should_enqueue(url) or not self._dedupe:
                return True
            self._stats.duplicates += 1
            return False

    def try_request(self, limit: int | None) -> bool:
        """Count one outgoing request; False once `limit` requests were made."""
        with self._lock:
            if limit and self._stats.requests >= limit:
                return False
            self._stats.requests += 1
            return True

    def try_save(self) -> bool:
        """Reserve one emitted item; False once the target count is reached."""
        with self._lock:
            if not self._under_target(self._budget.items_saved):
                return False
            self._budget.items_saved += 1
            return True

    def needs_more(self) -> bool:
        with self._lock:
            return self._under_target(self._budget.items_saved)

    def was_seen(self, url: str) -> bool:
        with self._lock:
            return url in self._seen

    # ---- stats ----
    def bump(self, name: str, n: int = 1) -> None:
        with self._lock:
            setattr(self._stats, name, getattr(self._stats, name) + n)

    def stat(self, name: str) -> int:
        with self._lock:
            return getattr(self._stats, name)

    # ---- snapshots ----
    def budget(self) -> CrawlBudget:
        with self._lock:
            return replace(self._budget)

    def stats(self) -> CrawlStats:
        with self._lock:
            return replace(self._stats)
