"""
In-memory leaderboard page cache.

(limit, skip) → (stored_at, rows).  Pages live for LEADERBOARD_CACHE_TTL
seconds; once more than LEADERBOARD_CACHE_MAX_PAGES are held the oldest
page is evicted.
"""
from __future__ import annotations

import time
from collections import OrderedDict
from typing import Callable, Optional

from idleracer.config import LEADERBOARD_CACHE_MAX_PAGES, LEADERBOARD_CACHE_TTL


class LeaderboardCache:
    def __init__(
        self,
        ttl: float = LEADERBOARD_CACHE_TTL,
        max_pages: int = LEADERBOARD_CACHE_MAX_PAGES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._max_pages = max_pages
        self._clock = clock
        self._pages: OrderedDict[tuple[int, int], tuple[float, list[dict]]] = OrderedDict()

    def get(self, limit: int, skip: int) -> Optional[list[dict]]:
        entry = self._pages.get((limit, skip))
        if entry is None:
            return None
        stored_at, rows = entry
        if self._clock() - stored_at > self._ttl:
            del self._pages[(limit, skip)]
            return None
        return rows

    def put(self, limit: int, skip: int, rows: list[dict]) -> None:
        self._pages.pop((limit, skip), None)
        self._pages[(limit, skip)] = (self._clock(), rows)
        while len(self._pages) > self._max_pages:
            self._pages.popitem(last=False)

    def clear(self) -> None:
        self._pages.clear()

    def page_count(self) -> int:
        return len(self._pages)


# Module-level instance shared by gameplay.py and the tests
leaderboard_cache = LeaderboardCache()
