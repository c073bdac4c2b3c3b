from __future__ import annotations

import json
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from .logging import logger
from .metrics import MetricsRegistry, registry as default_registry
from .ports import ReviewCache

DAILY_REVIEW_PREFIX = "daily_review:"
SCHEDULE_PREFIX = "srs:"


def daily_review_key(user_id: str, day: date) -> str:
    """Cache key of a user's daily queue; the day keeps yesterday's queue out of today."""
    return f"{DAILY_REVIEW_PREFIX}{user_id}:{day.isoformat()}"


def schedule_key(user_id: str, item_id: str) -> str:
    return f"{SCHEDULE_PREFIX}{user_id}:{item_id}"


def _namespace(key: str) -> str:
    return key.split(":", 1)[0]


@dataclass
class _Entry:
    payload: str
    expires_at: float


class InMemoryReviewCache(ReviewCache):
    """Process-local TTL cache.

    日次キューとスケジュール結果を単一プロセス内で保持する。
    値は JSON 文字列で保持し、取り出し側の変更がキャッシュ内容に波及しない。
    期限切れエントリは参照時と書き込み時に掃除する。
    """

    def __init__(
        self,
        *,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._max_entries = max(1, int(max_entries))
        self._clock = clock

    def _prune(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            self._entries.pop(key, None)
        while len(self._entries) >= self._max_entries:
            # dict preserves insertion order; drop the oldest entry first.
            self._entries.pop(next(iter(self._entries)))

    async def get(self, key: str) -> Any | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= now:
                self._entries.pop(key, None)
                return None
            payload = entry.payload
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        now = self._clock()
        with self._lock:
            self._entries.pop(key, None)
            self._prune(now)
            self._entries[key] = _Entry(payload=payload, expires_at=now + max(1, int(ttl_seconds)))

    async def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class BestEffortCache(ReviewCache):
    """Wrap a cache so that its failures never reach the caller.

    - get の失敗はミス扱い（None）にして再計算へフォールバックする
    - set / invalidate の失敗は warning ログに残して握りつぶす
    """

    def __init__(self, inner: ReviewCache, *, metrics: MetricsRegistry | None = None) -> None:
        self._inner = inner
        self._metrics = metrics or default_registry

    @property
    def inner(self) -> ReviewCache:
        return self._inner

    async def get(self, key: str) -> Any | None:
        try:
            value = await self._inner.get(key)
        except Exception as exc:
            logger.warning("review_cache_get_failed", cache_key=key, error=repr(exc))
            value = None
        self._metrics.record_cache(_namespace(key), hit=value is not None)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._inner.set(key, value, ttl_seconds)
        except Exception as exc:
            logger.warning("review_cache_set_failed", cache_key=key, error=repr(exc))

    async def invalidate(self, key: str) -> None:
        try:
            await self._inner.invalidate(key)
        except Exception as exc:
            logger.warning("review_cache_invalidate_failed", cache_key=key, error=repr(exc))


def best_effort(cache: ReviewCache, *, metrics: MetricsRegistry | None = None) -> BestEffortCache:
    """Return `cache` wrapped in BestEffortCache unless it already is."""
    if isinstance(cache, BestEffortCache):
        return cache
    return BestEffortCache(cache, metrics=metrics)
