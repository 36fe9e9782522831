from __future__ import annotations

import itertools
import threading
import uuid
from collections.abc import Sequence


class ProxyProvider:
    """
    Rotating egress addresses.

    Each configured URL may carry placeholders that are filled per call:
      {session}  - fresh random session id (new sticky IP on most providers)
      {country}  - configured country code, e.g. "TR"
      {groups}   - configured pool groups joined with '+', e.g. "RESIDENTIAL"

    With no URLs configured, new_proxy_url() returns None (direct connection).
    """

    def __init__(
        self,
        urls: Sequence[str] | None = None,
        *,
        country_code: str | None = None,
        groups: Sequence[str] | None = None,
    ) -> None:
        self._urls = [u.strip() for u in (urls or []) if u and u.strip()]
        self.country_code = (country_code or "").strip().upper() or None
        self.groups = [g.strip() for g in (groups or []) if g and g.strip()]
        self._cycle = itertools.cycle(self._urls) if self._urls else None
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._cycle is not None

    def new_proxy_url(self) -> str | None:
        if self._cycle is None:
            return None
        with self._lock:
            template = next(self._cycle)
        return template.format(
            session=uuid.uuid4().hex[:12],
            country=self.country_code or "",
            groups="+".join(self.groups),
        )
