"""Per-origin politeness delay for outgoing fetches."""

import asyncio
import threading
import time
import weakref
from typing import Awaitable, Callable
from urllib.parse import urlsplit

from utils.logger import get_logger

logger = get_logger(__name__)


def origin_of(url: str) -> str:
    """
    Scheme + host (+ explicit port) of a URL, lowercased.

    URLs without a host (relative paths, garbage) are their own origin.
    """
    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
        port = parts.port
    except ValueError:
        return url
    if not host:
        return url
    scheme = (parts.scheme or "http").lower()
    origin = f"{scheme}://{host.lower()}"
    if port is not None:
        origin += f":{port}"
    return origin


class RateLimiter:
    """
    Enforces a minimum spacing between requests to the same origin.

    Each origin has its own asyncio.Lock, so callers on one origin queue up
    behind each other while other origins proceed independently. asyncio locks
    are bound to one event loop, so every loop that uses the limiter gets its
    own lock table; timestamps are shared across loops. Serialization is
    guaranteed among callers on the same loop only.

    Memory grows with the number of distinct origins seen, not with requests.
    """

    def __init__(
        self,
        min_delay_s: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_delay_s = min_delay_s
        self._clock = clock
        self._sleep = sleep
        self._last_request: dict[str, float] = {}
        self._registry_lock = threading.Lock()
        self._locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
            weakref.WeakKeyDictionary()
        )

    def _lock_for(self, origin: str) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._registry_lock:
            locks = self._locks.get(loop)
            if locks is None:
                locks = {}
                self._locks[loop] = locks
            lock = locks.get(origin)
            if lock is None:
                lock = asyncio.Lock()
                locks[origin] = lock
            return lock

    async def wait_for(self, origin: str) -> None:
        """Suspend until min_delay_s has passed since the last permitted request to origin."""
        async with self._lock_for(origin):
            with self._registry_lock:
                last = self._last_request.get(origin)
            if last is not None:
                remaining = self.min_delay_s - (self._clock() - last)
                if remaining > 0:
                    logger.debug(
                        f"Rate limiting {origin} for {remaining:.2f}s",
                        extra={"extra_fields": {"origin": origin, "wait_s": remaining}},
                    )
                    await self._sleep(remaining)
            with self._registry_lock:
                self._last_request[origin] = self._clock()

    def last_request_at(self, origin: str) -> float | None:
        with self._registry_lock:
            return self._last_request.get(origin)
