"""In-process TTL cache for the owner overview payload."""

import time
from typing import Any, Dict, Optional, Tuple


class OverviewCache:
    """Per-owner overview payloads with a short TTL.

    One instance is owned by each blueprint and passed to the handlers that
    read or invalidate it.
    """

    def __init__(self, ttl_seconds: float = 30.0, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key: owner id, value: (payload, stored_at)
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, owner_id: str) -> Optional[Any]:
        entry = self._entries.get(owner_id)
        if not entry:
            return None
        payload, stored_at = entry
        if (self._clock() - stored_at) > self.ttl_seconds:
            self._entries.pop(owner_id, None)
            return None
        return payload

    def set(self, owner_id: str, payload: Any) -> None:
        self._entries[owner_id] = (payload, self._clock())

    def invalidate(self, owner_id: str) -> None:
        self._entries.pop(owner_id, None)

    def clear(self) -> None:
        self._entries.clear()
