"""In-memory token buckets keyed by an arbitrary string (user, item...)."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class _Bucket:
    tokens: float
    updated_at: float


class TokenBucketLimiter:
    """`rate` tokens per second refill each bucket up to `burst`; one bid costs one token."""

    def __init__(self, rate_per_sec: float, burst: int):
        self.rate_per_sec = rate_per_sec
        self.burst = burst
        self._buckets: dict[str, _Bucket] = {}

    def consume(self, key: str, now: float) -> bool:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = self._buckets[key] = _Bucket(tokens=float(self.burst), updated_at=now)
        else:
            elapsed = max(0.0, now - bucket.updated_at)
            bucket.tokens = min(float(self.burst), bucket.tokens + elapsed * self.rate_per_sec)
            bucket.updated_at = now

        if bucket.tokens < 1:
            return False
        bucket.tokens -= 1
        return True

    def prune(self, now: float, idle_seconds: float) -> None:
        """Forget buckets untouched for `idle_seconds` (they would be full again anyway)."""
        stale = [k for k, b in self._buckets.items() if now - b.updated_at > idle_seconds]
        for key in stale:
            del self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)
