from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Optional, Tuple

CacheEntryKey = Tuple[str, str, str]  # (source_lang, target_lang, text)


class TranslationCache:
    """Thread-safe LRU mapping of translated lines, shared by every run in the process."""

    def __init__(self, capacity: int = 10000):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: "OrderedDict[CacheEntryKey, str]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: CacheEntryKey) -> Optional[str]:
        with self._lock:
            value = self._entries.get(key)
            if value is not None:
                self._entries.move_to_end(key)
            return value

    def set(self, key: CacheEntryKey, value: str) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
