from __future__ import annotations

import threading
import time
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator


def percentile(values: list[float], fraction: float) -> float:
    """Nearest-lower-rank percentile; 0.0 for no samples."""
    if not values:
        return 0.0
    ordered = sorted(values)
    return ordered[int(fraction * (len(ordered) - 1))]


def calculate_p95(values: list[float]) -> float:
    return percentile(values, 0.95)


@dataclass
class OperationStats:
    window: deque[float]
    calls: int = 0
    failures: int = 0

    def observe(self, latency_ms: float, failed: bool) -> None:
        self.window.append(latency_ms)
        self.calls += 1
        self.failures += int(failed)

    def summary(self) -> dict[str, float | int]:
        return {
            "p95_ms": round(calculate_p95(list(self.window)), 2),
            "count": self.calls,
            "errors": self.failures,
        }


@dataclass
class _CacheCounters:
    hits: Counter[str] = field(default_factory=Counter)
    misses: Counter[str] = field(default_factory=Counter)


class MetricsRegistry:
    """In-memory metrics for SRS operations.

    - 操作ごとの直近 window_size 件のレイテンシ（p95 算出用）と呼び出し/失敗回数
    - キャッシュ名前空間（`daily_review`, `srs`）ごとのヒット/ミス回数
    プロセス内でのみ保持し、エクスポートは呼び出し側が snapshot() で行う。
    """

    def __init__(self, window_size: int = 200) -> None:
        self._window_size = window_size
        self._lock = threading.Lock()
        self._operations: Dict[str, OperationStats] = {}
        self._cache = _CacheCounters()

    def record(self, operation: str, latency_ms: float, *, is_error: bool = False) -> None:
        with self._lock:
            stats = self._operations.get(operation)
            if stats is None:
                stats = self._operations[operation] = OperationStats(window=deque(maxlen=self._window_size))
            stats.observe(latency_ms, is_error)

    def record_cache(self, namespace: str, *, hit: bool) -> None:
        with self._lock:
            (self._cache.hits if hit else self._cache.misses)[namespace] += 1

    @contextmanager
    def timed(self, operation: str) -> Iterator[None]:
        """Record the latency of the wrapped block; errors are counted and re-raised."""
        started = time.perf_counter()
        failed = False
        try:
            yield
        except Exception:
            failed = True
            raise
        finally:
            self.record(operation, (time.perf_counter() - started) * 1000.0, is_error=failed)

    def snapshot(self) -> Dict[str, Dict[str, float | int]]:
        with self._lock:
            report = {name: stats.summary() for name, stats in self._operations.items()}
            for namespace in self._cache.hits.keys() | self._cache.misses.keys():
                report[f"cache:{namespace}"] = {
                    "hits": self._cache.hits[namespace],
                    "misses": self._cache.misses[namespace],
                }
            return report

    def reset(self) -> None:
        with self._lock:
            self._operations.clear()
            self._cache = _CacheCounters()


registry = MetricsRegistry()
