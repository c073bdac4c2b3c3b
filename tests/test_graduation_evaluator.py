import asyncio

import pytest

from tests.srs_fakes import FIXED_NOW, make_weak_item
from wordreview.cache import schedule_key
from wordreview.srs import GraduationEvaluator


def _prepare(history, weak_items, scores_newest_first):
    history.seed("user-1", "apple", scores_newest_first, start=FIXED_NOW)
    asyncio.run(weak_items.upsert(make_weak_item(item_id="apple", now=FIXED_NOW)))


def test_mastered_item_is_deleted(history, weak_items, cache, metrics):
    _prepare(history, weak_items, [90, 85, 88, 20, 10])
    asyncio.run(cache.set(schedule_key("user-1", "apple"), {"interval": 6}, 60))
    evaluator = GraduationEvaluator(history, weak_items, cache, metrics=metrics)

    assert asyncio.run(evaluator.evaluate("user-1", "apple")) is True
    assert asyncio.run(weak_items.get("user-1", "apple")) is None
    assert asyncio.run(cache.get(schedule_key("user-1", "apple"))) is None


@pytest.mark.parametrize(
    "scores",
    [
        [100, 100, 69],  # 直近に 1 回でも失敗がある
        [80, 80, 80],  # 平均 80 < 85
        [95, 95],  # 試行回数不足
    ],
)
def test_item_stays_weak_without_mastery(history, weak_items, metrics, scores):
    _prepare(history, weak_items, scores)
    evaluator = GraduationEvaluator(history, weak_items, metrics=metrics)

    assert asyncio.run(evaluator.evaluate("user-1", "apple")) is False
    assert asyncio.run(weak_items.get("user-1", "apple")) is not None


def test_older_history_does_not_count(history, weak_items, metrics):
    """直近 3 回以外の高得点は卒業判定に使わない。"""

    _prepare(history, weak_items, [100, 100, 60, 100, 100, 100, 100])
    evaluator = GraduationEvaluator(history, weak_items, metrics=metrics)

    assert asyncio.run(evaluator.evaluate("user-1", "apple")) is False


def test_unknown_item_is_not_graduated(history, weak_items, metrics):
    history.seed("user-1", "apple", [100, 100, 100], start=FIXED_NOW)
    evaluator = GraduationEvaluator(history, weak_items, metrics=metrics)

    assert asyncio.run(evaluator.evaluate("user-1", "apple")) is False
    assert history.get_recent_calls == 0
