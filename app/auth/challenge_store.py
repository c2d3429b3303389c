"""In-process TTL store for short-lived values (login challenges, nonces).

Entries live only as long as the process; expiry is checked on every read.
"""

import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple


class ChallengeStore:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def pop(self, key: str) -> Optional[Any]:
        """Read and remove; a challenge is single-use."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            return None
        return value

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
            for k in expired:
                del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


challenge_store = ChallengeStore()
