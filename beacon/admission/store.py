"""Counter stores backing the sliding-window limiter.

Each store performs evict, count, record and conditional retract as one
atomic step per key so concurrent admissions for the same identity cannot
both observe spare capacity.
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import typing as typ
import uuid

from redis.exceptions import RedisError

if typ.TYPE_CHECKING:
    from redis.asyncio import Redis

__all__ = [
    "CounterStore",
    "CounterStoreError",
    "InMemoryCounterStore",
    "RedisCounterStore",
    "WindowState",
]


class CounterStoreError(Exception):
    """Raised when the shared counter store cannot be reached."""


@dc.dataclass(frozen=True, slots=True)
class WindowState:
    """Counter state observed by one admission attempt.

    Attributes
    ----------
    prior_count
        Entries in the window before this attempt was recorded.
    oldest_ms
        Score of the oldest surviving entry, used to compute the reset time.

    """

    prior_count: int
    oldest_ms: int


class CounterStore(typ.Protocol):
    """Shared ordered counter used by :class:`AdmissionLimiter`."""

    async def hit(
        self, key: str, *, now_ms: int, window_ms: int, limit: int
    ) -> WindowState:
        """Atomically evict, count, record, and retract when over ``limit``."""
        ...


_SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local member = ARGV[4]
redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)
redis.call('ZADD', key, now, member)
redis.call('PEXPIRE', key, window)
if count >= limit then
  redis.call('ZREM', key, member)
end
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_score = now
if oldest[2] then
  oldest_score = tonumber(oldest[2])
end
return {count, oldest_score}
"""


class RedisCounterStore:
    """Sorted-set sliding window evaluated server-side by a Lua script."""

    def __init__(self, client: Redis) -> None:
        """Register the sliding-window script on ``client``."""
        self._client = client
        self._script = client.register_script(_SLIDING_WINDOW_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> RedisCounterStore:
        """Create a store backed by a new ``redis.asyncio`` client."""
        from redis.asyncio import Redis

        return cls(Redis.from_url(url))

    async def hit(
        self, key: str, *, now_ms: int, window_ms: int, limit: int
    ) -> WindowState:
        """Run the sliding-window script for ``key``.

        Raises
        ------
        CounterStoreError
            If Redis rejects the call or the connection fails.

        """
        member = f"{now_ms}-{uuid.uuid4().hex}"
        try:
            count, oldest = await self._script(
                keys=[key], args=[now_ms, window_ms, limit, member]
            )
        except RedisError as exc:
            raise CounterStoreError(str(exc)) from exc
        return WindowState(prior_count=int(count), oldest_ms=int(oldest))

    async def aclose(self) -> None:
        """Close the underlying Redis connection pool."""
        await self._client.aclose()


class InMemoryCounterStore:
    """Process-local counter store for tests and single-node deployments.

    Identities whose entries have all left their window are dropped on a
    periodic sweep, so the store holds only recently active keys.
    """

    def __init__(self, *, sweep_interval_ms: int = 60_000) -> None:
        """Initialise empty windows guarded by one lock."""
        self._windows: dict[str, tuple[int, list[int]]] = {}
        self._lock = asyncio.Lock()
        self._sweep_interval_ms = sweep_interval_ms
        self._last_sweep_ms: int | None = None

    def __len__(self) -> int:
        """Return the number of identities currently tracked."""
        return len(self._windows)

    async def hit(
        self, key: str, *, now_ms: int, window_ms: int, limit: int
    ) -> WindowState:
        """Apply the sliding-window step to the in-process window for ``key``."""
        async with self._lock:
            self._maybe_sweep(now_ms)
            cutoff = now_ms - window_ms
            _, stored = self._windows.get(key, (window_ms, []))
            entries = [ts for ts in stored if ts > cutoff]
            count = len(entries)
            if count < limit:
                entries.append(now_ms)
            if entries:
                self._windows[key] = (window_ms, entries)
            else:
                self._windows.pop(key, None)
            oldest = min(entries) if entries else now_ms
            return WindowState(prior_count=count, oldest_ms=oldest)

    def _maybe_sweep(self, now_ms: int) -> None:
        if (
            self._last_sweep_ms is not None
            and now_ms - self._last_sweep_ms < self._sweep_interval_ms
        ):
            return
        self._last_sweep_ms = now_ms
        expired = [
            key
            for key, (window_ms, entries) in self._windows.items()
            if max(entries) <= now_ms - window_ms
        ]
        for key in expired:
            del self._windows[key]

    async def aclose(self) -> None:
        """Release nothing; present for parity with the Redis store."""
        self._windows.clear()
