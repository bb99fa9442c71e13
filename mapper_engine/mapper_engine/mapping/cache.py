"""Per-namespace result cache shared across sessions."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Hashable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 1024


class PerpetualCache:
    """Thread-safe LRU cache keyed by statement id and parameters.

    One instance exists per mapper namespace that declares ``cache: true``.
    Sessions only write to it on commit (see ``CachingExecutor``).
    """

    def __init__(self, cache_id: str, size: int = DEFAULT_CACHE_SIZE) -> None:
        self.id = cache_id
        self.size = size
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.requests = 0

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            self.requests += 1
            if key not in self._entries:
                return None
            self.hits += 1
            self._entries.move_to_end(key)
            return self._entries[key]

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Cleared cache %s", self.id)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def hit_ratio(self) -> float:
        return self.hits / self.requests if self.requests else 0.0
