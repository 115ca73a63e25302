"""LRU cache with TTL for clustering results served by the API."""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

from mvstats.analysis.hclus.models import HclusRequest, HclusResult


@dataclass
class CacheEntry:
    created_at: float
    request: HclusRequest
    result: HclusResult


class ResultCache:
    """Simple LRU cache with TTL, keyed by a generated result id."""

    def __init__(self, max_entries: int = 20, ttl_seconds: int = 3600) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def get(self, result_id: str) -> Optional[CacheEntry]:
        now = time.time()
        with self._lock:
            entry = self._entries.get(result_id)
            if not entry:
                return None
            if now - entry.created_at > self.ttl_seconds:
                self._entries.pop(result_id, None)
                return None
            # refresh LRU
            self._entries.move_to_end(result_id)
            return entry

    def put(self, request: HclusRequest, result: HclusResult) -> str:
        result_id = uuid4().hex[:12]
        with self._lock:
            self._entries[result_id] = CacheEntry(created_at=time.time(), request=request, result=result)
            if len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return result_id

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
