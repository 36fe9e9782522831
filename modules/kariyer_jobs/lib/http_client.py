from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ConnectTimeoutError, ReadTimeoutError
from urllib3.util.retry import Retry

LOG = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


class FetchError(Exception):
    """Network-level failure after retries were exhausted."""


class FetchTimeout(FetchError):
    """The request timed out (connect or read) after retries."""


@dataclass(frozen=True)
class FetchResponse:
    status_code: int
    body: str
    url: str

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def _timed_out(e: requests.ConnectionError) -> bool:
    # Exhausted retries surface as ConnectionError(MaxRetryError(reason=...))
    reason = getattr(e.args[0], "reason", None) if e.args else None
    return isinstance(reason, (ReadTimeoutError, ConnectTimeoutError))


class HttpClient:
    """
    Shared HTTP client: pooled session, exponential-backoff retries on
    timeouts / 429 / 5xx, per-request proxy and headers.

    The caller only sees the final outcome: a FetchResponse (any status) or a
    FetchError/FetchTimeout.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 5,
        backoff_factor: float = 1.0,
        pool_size: int = 10,
    ):
        self.timeout = float(timeout)
        self.max_retries = int(max_retries)
        self.backoff_factor = float(backoff_factor)
        self.pool_size = int(pool_size)
        self._lock = threading.Lock()
        self.session = self._new_session()

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=RETRY_STATUSES,
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry, pool_connections=self.pool_size, pool_maxsize=self.pool_size * 2)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def fetch(
        self,
        url: str,
        *,
        proxy: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> FetchResponse:
        """GET `url`; returns the final response whatever its status."""
        proxies = {"http": proxy, "https": proxy} if proxy else None
        with self._lock:
            session = self.session
        try:
            resp = session.get(
                url,
                headers=dict(headers or {}),
                proxies=proxies,
                timeout=timeout or self.timeout,
            )
        except requests.Timeout as e:
            raise FetchTimeout(f"timeout fetching {url!r}: {e}") from e
        except requests.ConnectionError as e:
            if _timed_out(e):
                raise FetchTimeout(f"timeout fetching {url!r}: {e}") from e
            raise FetchError(f"request failed for {url!r}: {e}") from e
        except requests.RequestException as e:
            raise FetchError(f"request failed for {url!r}: {e}") from e

        if not resp.encoding and resp.apparent_encoding:
            resp.encoding = resp.apparent_encoding
        return FetchResponse(status_code=resp.status_code, body=resp.text, url=resp.url or url)

    def rotate_identity(self) -> None:
        """Drop cookies and pooled connections by swapping in a fresh session."""
        with self._lock:
            old, self.session = self.session, self._new_session()
        try:
            old.close()
        except Exception:
            LOG.debug("HttpClient.rotate_identity() close swallow", exc_info=True)

    def close(self) -> None:
        try:
            self.session.close()
        except Exception:
            LOG.debug("HttpClient.close() swallow", exc_info=True)
