"""Pytest configuration shared by the wordreview test-suite."""

import os
import sys
from pathlib import Path

import pytest

_BACKEND_ROOT = Path(__file__).resolve().parents[1] / "apps" / "backend"
if str(_BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(_BACKEND_ROOT))

# Settings() はモジュール import 時に評価されるため、import より前に既定値を入れておく。
# 実運用では `.env` で SQLite のパスや Firestore の接続先を設定すること。
os.environ.setdefault("SRS_STORE_BACKEND", "sqlite")
os.environ.setdefault("STRICT_MODE", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from tests.srs_fakes import FIXED_NOW, FakeClock, MemoryHistoryStore, MemoryWeakItemStore  # noqa: E402
from wordreview.cache import InMemoryReviewCache  # noqa: E402
from wordreview.metrics import MetricsRegistry  # noqa: E402


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW)


@pytest.fixture
def history() -> MemoryHistoryStore:
    return MemoryHistoryStore()


@pytest.fixture
def weak_items() -> MemoryWeakItemStore:
    return MemoryWeakItemStore()


@pytest.fixture
def cache() -> InMemoryReviewCache:
    return InMemoryReviewCache()


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry()
