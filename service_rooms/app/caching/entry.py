"""
Cache entry envelope persisted in the key-value store.
"""

import json
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """
    A cached payload with its creation time and TTL (both in seconds).

    Serialized as ``{"data": ..., "timestamp": ..., "expiry": ...}``.
    """
    payload: T
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        """Seconds since the entry was stored."""
        return now - self.stored_at

    def is_valid(self, now: float) -> bool:
        """An entry is valid iff ``now - stored_at < ttl``."""
        return self.age(now) < self.ttl

    def dumps(self) -> str:
        return json.dumps({
            "data": self.payload,
            "timestamp": self.stored_at,
            "expiry": self.ttl,
        })

    @classmethod
    def loads(cls, blob: str, default_ttl: float) -> "CacheEntry[Any]":
        """
        Parse a stored envelope.

        Raises:
            ValueError: If the blob is not a JSON object with a numeric
                ``timestamp``. ``json.JSONDecodeError`` is a ``ValueError``.
        """
        raw = json.loads(blob)
        if not isinstance(raw, dict):
            raise ValueError("cache envelope is not an object")

        stored_at = raw.get("timestamp")
        if not isinstance(stored_at, (int, float)) or isinstance(stored_at, bool):
            raise ValueError("cache envelope has no numeric timestamp")

        ttl: Optional[Any] = raw.get("expiry")
        if not isinstance(ttl, (int, float)) or isinstance(ttl, bool):
            ttl = default_ttl

        return cls(payload=raw.get("data"), stored_at=float(stored_at), ttl=float(ttl))
