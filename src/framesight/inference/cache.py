"""Process-wide cache of per-frame analyses.

Entries are keyed by the frame's content digest and the prompt, so the
same screenshot asked the same question never hits the network twice.
"""

from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable

from framesight.domain.models import FrameAnalysis

logger = logging.getLogger(__name__)


class FrameCache:
    """Thread-safe FrameAnalysis cache with optional TTL and size bound.

    Only successful analyses should be stored; the adapter never caches
    errored ones.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, FrameAnalysis]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(content_digest: str, prompt: str) -> str:
        prompt_hash = hashlib.sha256(prompt.encode("utf-8")).hexdigest()
        return hashlib.sha256(f"{content_digest}:{prompt_hash}".encode("utf-8")).hexdigest()

    def get(self, key: str) -> FrameAnalysis | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            stored_at, analysis = entry
            if self._ttl is not None and self._clock() - stored_at > self._ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return analysis

    def set(self, key: str, analysis: FrameAnalysis) -> None:
        with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = (self._clock(), analysis)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted[:12])

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cleared %d cached frame analyses", count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int | float | None]:
        with self._lock:
            return {
                "entries": len(self._entries),
                "max_entries": self._max_entries,
                "ttl_seconds": self._ttl,
                "hits": self._hits,
                "misses": self._misses,
            }
