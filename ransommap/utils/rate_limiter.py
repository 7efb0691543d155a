from __future__ import annotations

import asyncio
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RateLimiter:
    """Serialises calls and allows at most ``max_calls`` starts per ``per_seconds`` window.

    The lock is held for the whole body of :meth:`slot`, so only one request is
    ever in flight regardless of ``max_calls``.
    """

    def __init__(self, max_calls: int = 1, per_seconds: float = 1.0) -> None:
        self.max_calls = max_calls
        self.per_seconds = per_seconds
        self._window: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        cutoff = now - self.per_seconds
        while self._window and self._window[0] <= cutoff:
            self._window.popleft()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        async with self._lock:
            now = time.monotonic()
            self._prune(now)
            while len(self._window) >= self.max_calls:
                await asyncio.sleep(max(self._window[0] + self.per_seconds - now, 0.0))
                now = time.monotonic()
                self._prune(now)
            self._window.append(now)
            yield
