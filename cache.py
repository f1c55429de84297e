import json, time, logging
from collections import OrderedDict
from typing import Any, Callable, NamedTuple

CACHE_TTL = 10 * 60
CACHE_MAX_ENTRIES = 50


class CacheEntry(NamedTuple):
    data: Any
    timestamp: float


class SearchCache:
    """In-memory search result cache with a TTL and a bounded size.

    Overflow evicts the entry inserted first. Lookups do not refresh an
    entry's position, so this is insertion-order eviction rather than LRU.
    Stale entries are only dropped when they are looked up. Keys are built
    from the parsed integers, not the raw query strings.
    """

    def __init__(
        self,
        ttl: float = CACHE_TTL,
        max_entries: int = CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock

    @staticmethod
    def make_key(search: str | None, page: int, max_results: int) -> str:
        return json.dumps([search, page, max_results], separators=(",", ":"))

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.timestamp < self._ttl:
            return entry.data
        self._entries.pop(key, None)
        return None

    def set(self, key: str, value: Any) -> None:
        # Overwriting keeps the existing insertion slot.
        self._entries[key] = CacheEntry(value, self._clock())

        if len(self._entries) > self._max_entries:
            oldest_key, _ = self._entries.popitem(last=False)
            logging.debug(f"CACHE EVICT - {oldest_key}")

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)
