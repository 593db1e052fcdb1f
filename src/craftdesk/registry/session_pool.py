"""
Pooled aiohttp sessions keyed by registry base URL.

Sockets are reused across calls to the same registry. Sessions are rebuilt
after `ttl_s` so DNS and connection state do not go stale. Auth headers are
sent per request and never stored on a session, since tokens can rotate.
"""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import aiohttp

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

logger = logging.getLogger(__name__)


@dataclass
class _PooledSession:
    session: aiohttp.ClientSession
    created_ms: int
    leases: int = 0
    retired: bool = False


class SessionPool:
    """
    One ClientSession per base URL, expired after a TTL.

    A session that expires while requests are still using it is retired and
    closed when its last lease is released.
    """

    def __init__(
        self,
        timeout_s: float = 30.0,
        ttl_s: float = 300.0,
        _time_fn: Callable[[], int] | None = None,
    ) -> None:
        """
        Args:
            timeout_s: Total timeout applied to every request on pooled sessions.
            ttl_s: Session lifetime in seconds.
            _time_fn: Millisecond clock override for tests.
        """
        self._timeout = aiohttp.ClientTimeout(total=timeout_s)
        self._ttl_ms = int(ttl_s * 1000)
        self._time_fn = _time_fn
        self._entries: dict[str, _PooledSession] = {}

    def _now_ms(self) -> int:
        if self._time_fn is not None:
            return self._time_fn()
        return int(time.monotonic() * 1000)

    def __len__(self) -> int:
        return len(self._entries)

    async def _acquire(self, base_url: str) -> _PooledSession:
        key = base_url.rstrip("/")
        now_ms = self._now_ms()
        entry = self._entries.get(key)

        stale = None
        if entry is not None:
            if not entry.session.closed and now_ms - entry.created_ms < self._ttl_ms:
                return entry
            entry.retired = True
            stale = entry

        # Replace before awaiting so concurrent callers see the new session
        fresh = _PooledSession(
            session=aiohttp.ClientSession(timeout=self._timeout),
            created_ms=now_ms,
        )
        self._entries[key] = fresh

        if stale is not None:
            logger.debug("Retired pooled session", extra={"leases": stale.leases})
            if stale.leases == 0 and not stale.session.closed:
                await stale.session.close()
        return fresh

    @contextlib.asynccontextmanager
    async def lease(self, base_url: str) -> AsyncIterator[aiohttp.ClientSession]:
        """Borrow the session for a base URL for the duration of one request."""
        entry = await self._acquire(base_url)
        entry.leases += 1
        try:
            yield entry.session
        finally:
            entry.leases -= 1
            if entry.retired and entry.leases == 0 and not entry.session.closed:
                await entry.session.close()

    async def close(self) -> None:
        """Close all pooled sessions. Safe to call more than once."""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            if entry.leases > 0:
                # Closed by the last lease holder
                entry.retired = True
                continue
            if not entry.session.closed:
                await entry.session.close()
