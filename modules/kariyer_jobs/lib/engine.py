"""
Crawl orchestrator: two-stage crawl of kariyer.net listing and detail pages.

Features:
  - Bounded worker pool (ThreadPoolExecutor, `concurrency` targets in flight)
  - LIST stage: cards -> emit directly (listing-only) or queue DETAIL targets
  - Listing pages from rendered HTML or, opt-in, the JSON search API
  - DETAIL stage: JSON-LD / selector / heuristic extraction merged into the card
  - Anti-bot gate + HTTP status gate on every fetched page
  - Budget (target count, page count) enforced through CrawlState's atomic ops
  - Graceful drain once the budget is met; hard ceiling (time / requests) aborts
  - Dependency injection for testability (client, sink, headers, proxies, sleep, clock)
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait

from bs4 import BeautifulSoup

from . import logging_bridge
from .age_filter import is_within_age
from .antibot import blocked_reason
from .config import LISTING_API, ConfigError, Settings
from .dedupe import SeenSet
from .extract import extract_detail, extract_listing, find_next_page, parse_api_listing, parse_html
from .headers import HeaderProfileGenerator
from .http_client import FetchError, FetchResponse, FetchTimeout, HttpClient
from .models import CrawlBudget, CrawlReport, CrawlTarget, JobRecord, PartialJob, Stage, merge_detail
from .proxy import ProxyProvider
from .sink import ItemSink, SqliteSink
from .state import CrawlState

log = logging.getLogger(__name__)

COMPONENT = "kariyer_jobs.engine"
SECONDARY_PARSER = "html5lib"
MAX_ERRORS_KEPT = 200


class Crawler:
    """
    One crawl run. Not reusable: build a new Crawler per run.

    Only the coordinating thread (the caller of run()) touches the work queue;
    workers return follow-up targets instead of enqueueing them, and all shared
    counters live in CrawlState.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        client: HttpClient,
        sink: ItemSink,
        header_gen: HeaderProfileGenerator | None = None,
        proxy_provider: ProxyProvider | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.client = client
        self.sink = sink
        self.header_gen = header_gen or HeaderProfileGenerator(
            locale=settings.locale, profiles=settings.header_profiles or None
        )
        self.proxy_provider = proxy_provider or ProxyProvider(
            settings.proxy_urls, country_code=settings.proxy_country, groups=settings.proxy_groups
        )
        self._sleep = sleep
        self._clock = clock
        self._rng = rng or random.Random()

        self.state = CrawlState(
            CrawlBudget(target_count=settings.target_count, max_pages=settings.max_pages),
            SeenSet(settings.base_url),
            dedupe=settings.dedupe,
        )
        self._abort = threading.Event()
        self._errors: list[str] = []
        self._errors_lock = threading.Lock()
        self._page_budget_hit = False
        self._started = 0.0

    # =========================================================================
    # MAIN LOOP
    # =========================================================================
    def run(self, start_urls: Iterable[str] | None = None) -> CrawlReport:
        urls = list(start_urls or self.settings.resolved_start_urls())
        if not urls:
            raise ConfigError("No start URL derivable for this run.")

        self._started = self._clock()
        concurrency = self.settings.concurrency
        queue: deque[CrawlTarget] = deque(CrawlTarget(u, Stage.LIST, page_number=1) for u in urls)
        pending: dict[Future, CrawlTarget] = {}

        logging_bridge.activity({
            "component": COMPONENT,
            "op": "start",
            "start_urls": urls,
            "target_count": self.settings.target_count,
            "max_pages": self.settings.max_pages,
            "collect_details": self.settings.collect_details,
            "age_window": self.settings.age_window.name,
            "concurrency": concurrency,
            "proxied": self.proxy_provider.enabled,
        })

        pool = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="kariyer-crawl")
        try:
            while True:
                if self._ceiling_hit():
                    self._abort.set()
                    break

                # Budget met: stop scheduling, let in-flight work drain
                if queue and not self.state.needs_more():
                    log.info("target count reached; dropping %d queued targets", len(queue))
                    queue.clear()

                while queue and len(pending) < concurrency:
                    target = queue.popleft()
                    if target.stage is Stage.LIST and not self.state.try_visit_page():
                        self._page_budget_hit = True
                        log.info("page budget exhausted; skipping %s", target.url)
                        continue
                    pending[pool.submit(self._process, target)] = target

                if not pending:
                    break

                done, _ = wait(pending, timeout=self._wait_timeout(), return_when=FIRST_COMPLETED)
                for fut in done:
                    target = pending.pop(fut)
                    try:
                        queue.extend(fut.result())
                    except Exception as e:
                        self.state.bump("targets_crashed")
                        self._record_error(f"{target.stage.value} {target.url}: {e!r}")
                        logging_bridge.error({
                            "component": COMPONENT,
                            "op": "target_crashed",
                            "stage": target.stage.value,
                            "url": target.url,
                            "error": repr(e),
                        })
        finally:
            # After a ceiling abort, don't wait for stragglers
            pool.shutdown(wait=not self._abort.is_set(), cancel_futures=True)

        report = self._report(in_flight=len(pending))
        logging_bridge.activity({"component": COMPONENT, "op": "summary", **report.as_dict()})
        return report

    def _process(self, target: CrawlTarget) -> list[CrawlTarget]:
        if self._abort.is_set():
            return []
        if target.stage is Stage.LIST:
            return self._handle_list(target)
        return self._handle_detail(target)

    # =========================================================================
    # LIST STAGE
    # =========================================================================
    def _handle_list(self, target: CrawlTarget) -> list[CrawlTarget]:
        if self.settings.listing_source == LISTING_API:
            return self._handle_api_list(target)
        resp = self._fetch(target)
        if resp is None:
            return []

        soup = parse_html(resp.body)
        cards = extract_listing(soup, base_url=target.url)
        if not cards:
            cards, soup = self._secondary_parse(target, soup)
        self.state.bump("cards_seen", len(cards))

        follow_ups, emitted, exhausted = self._consume_cards(cards)

        next_url = None if exhausted else find_next_page(soup, base_url=target.url)
        if next_url and self.state.can_paginate(collect_details=self.settings.collect_details):
            follow_ups.append(CrawlTarget(next_url, Stage.LIST, page_number=(target.page_number or 1) + 1))
        else:
            next_url = None

        logging_bridge.activity({
            "component": COMPONENT,
            "op": "list_page",
            "url": target.url,
            "page": target.page_number,
            "cards": len(cards),
            "details_queued": sum(1 for t in follow_ups if t.stage is Stage.DETAIL),
            "emitted": emitted,
            "next": next_url,
        })
        return follow_ups

    def _handle_api_list(self, target: CrawlTarget) -> list[CrawlTarget]:
        """One JSON search page; pagination stops at the first page with no positions."""
        resp = self._fetch(target)
        if resp is None:
            return []
        try:
            cards, positions = parse_api_listing(resp.body, base_url=self.settings.base_url)
        except ValueError as e:
            self._page_failed(target, "parse", repr(e))
            return []
        self.state.bump("cards_seen", len(cards))

        follow_ups, emitted, exhausted = self._consume_cards(cards)

        next_url = None
        page = target.page_number or 1
        more = self.state.can_paginate(collect_details=self.settings.collect_details)
        if positions and not exhausted and more:
            next_url = self.settings.api_page_url(page + 1)
            follow_ups.append(CrawlTarget(next_url, Stage.LIST, page_number=page + 1))

        logging_bridge.activity({
            "component": COMPONENT,
            "op": "api_page",
            "url": target.url,
            "page": page,
            "positions": positions,
            "cards": len(cards),
            "details_queued": sum(1 for t in follow_ups if t.stage is Stage.DETAIL),
            "emitted": emitted,
            "next": next_url,
        })
        return follow_ups

    def _secondary_parse(self, target: CrawlTarget, primary: BeautifulSoup) -> tuple[list[PartialJob], BeautifulSoup]:
        """Independent re-fetch parsed by html5lib before calling a page empty."""
        self.state.bump("secondary_parses")
        resp = self._fetch(target)
        if resp is None:
            return [], primary
        soup = BeautifulSoup(resp.body, SECONDARY_PARSER)
        cards = extract_listing(soup, base_url=target.url)
        log.debug("secondary parse of %s found %d cards", target.url, len(cards))
        return cards, (soup if cards else primary)

    def _consume_cards(self, cards: list[PartialJob]) -> tuple[list[CrawlTarget], int, bool]:
        """
        Apply age filter / dedupe / budget to cards in source order.

        Returns (detail targets, items emitted, budget exhausted).
        """
        follow_ups: list[CrawlTarget] = []
        emitted = 0
        for job in cards:
            if self._abort.is_set():
                return follow_ups, emitted, True
            if not is_within_age(job.date_posted, self.settings.age_window):
                self.state.bump("filtered_by_age")
                continue

            if self.settings.collect_details:
                outcome = self.state.try_queue_detail(job.url)
                if outcome == "full":
                    return follow_ups, emitted, True
                if outcome == "queued":
                    follow_ups.append(CrawlTarget(job.url, Stage.DETAIL, carried=job))
                continue

            if not self.state.needs_more():
                return follow_ups, emitted, True
            if not self.state.try_claim_listing_url(job.url):
                continue
            if not self.state.try_save():
                return follow_ups, emitted, True
            self.sink.push(JobRecord.from_partial(job))
            emitted += 1
        return follow_ups, emitted, not self.state.needs_more()

    # =========================================================================
    # DETAIL STAGE
    # =========================================================================
    def _handle_detail(self, target: CrawlTarget) -> list[CrawlTarget]:
        resp = self._fetch(target)
        if resp is None:
            return []

        detail = extract_detail(resp.body, url=target.url)
        merged = merge_detail(target.carried or PartialJob(url=target.url), detail)

        if not is_within_age(merged.date_posted, self.settings.age_window):
            self.state.bump("filtered_by_age")
            logging_bridge.activity({
                "component": COMPONENT,
                "op": "detail_too_old",
                "url": target.url,
                "date_posted": merged.date_posted,
            })
            return []

        if self._abort.is_set() or not self.state.try_save():
            log.info("budget full; not emitting %s", target.url)
            return []

        self.sink.push(JobRecord.from_partial(merged, url=target.url))
        log.debug("saved %s", target.url)
        return []

    # =========================================================================
    # FETCH + GATES
    # =========================================================================
    def _pace(self) -> None:
        lo, hi = self.settings.min_delay, self.settings.max_delay
        if hi > 0:
            self._sleep(self._rng.uniform(lo, hi))

    def _fetch(self, target: CrawlTarget) -> FetchResponse | None:
        """
        Pace, fetch, then gate on HTTP status and anti-bot markers.
        None means the page is skipped (already logged and counted).
        """
        self._pace()
        if self._abort.is_set():
            return None
        if not self.state.try_request(self.settings.max_requests):
            self._abort.set()
            return None

        try:
            resp = self.client.fetch(
                target.url,
                proxy=self.proxy_provider.new_proxy_url(),
                headers=self.header_gen.headers(),
                timeout=self.settings.request_timeout,
            )
        except FetchTimeout as e:
            self._page_failed(target, "timeout", repr(e))
            return None
        except FetchError as e:
            self._page_failed(target, "network", repr(e))
            return None

        if resp.status_code >= 400:
            self._page_failed(target, "http", f"HTTP {resp.status_code}")
            return None

        reason = blocked_reason(resp.body)
        if reason:
            self.state.bump("pages_blocked")
            self.client.rotate_identity()
            self._record_error(f"{target.stage.value} {target.url}: blocked ({reason})")
            logging_bridge.activity({
                "component": COMPONENT,
                "op": "blocked",
                "stage": target.stage.value,
                "url": target.url,
                "marker": reason,
            })
            return None
        return resp

    def _page_failed(self, target: CrawlTarget, kind: str, detail: str) -> None:
        self.state.bump("pages_failed")
        self._record_error(f"{target.stage.value} {target.url}: {detail}")
        logging_bridge.error({
            "component": COMPONENT,
            "op": "fetch_failed",
            "kind": kind,
            "stage": target.stage.value,
            "url": target.url,
            "error": detail,
        })

    # =========================================================================
    # BOOKKEEPING
    # =========================================================================
    def _record_error(self, msg: str) -> None:
        with self._errors_lock:
            self._errors.append(msg)
            del self._errors[:-MAX_ERRORS_KEPT]

    def _elapsed(self) -> float:
        return self._clock() - self._started

    def _ceiling_hit(self) -> bool:
        if self._abort.is_set():
            return True
        limit = self.settings.max_run_seconds
        return bool(limit and self._elapsed() >= limit)

    def _wait_timeout(self) -> float | None:
        limit = self.settings.max_run_seconds
        if not limit:
            return None
        return max(0.0, limit - self._elapsed())

    def _report(self, *, in_flight: int) -> CrawlReport:
        budget = self.state.budget()
        if self._abort.is_set():
            stop_reason = "ceiling"
        elif not self.state.needs_more():
            stop_reason = "budget"
        elif self._page_budget_hit:
            stop_reason = "max_pages"
        else:
            stop_reason = "drained"
        if in_flight:
            log.warning("run stopped with %d targets still in flight", in_flight)
        with self._errors_lock:
            errors = list(self._errors)
        return CrawlReport(
            items_saved=budget.items_saved,
            details_queued=budget.details_queued,
            pages_visited=budget.pages_visited,
            stats=self.state.stats(),
            stop_reason=stop_reason,
            duration_s=self._elapsed(),
            errors=errors,
        )


# =============================================================================
# ENTRY POINT (production wiring)
# =============================================================================
def run_once(
    settings: Settings,
    *,
    client: HttpClient | None = None,
    sink: ItemSink | None = None,
    **crawler_kwargs,
) -> CrawlReport:
    """
    Run one crawl. Without injected collaborators this uses an HttpClient
    (retries/backoff) and a SqliteSink at settings.sqlite_path; headers and
    proxies are built from settings by the Crawler.
    """
    own_client = client is None
    client = client or HttpClient(timeout=settings.request_timeout, max_retries=settings.max_retries)
    sink = sink if sink is not None else SqliteSink(settings.sqlite_path)
    try:
        return Crawler(settings, client=client, sink=sink, **crawler_kwargs).run()
    finally:
        if own_client:
            client.close()
