import asyncio
import math
from datetime import timedelta

import pytest

from tests.srs_fakes import FailingCache, make_weak_item
from wordreview.cache import daily_review_key
from wordreview.models import ExerciseRef, WeakItem
from wordreview.ports import ExerciseResolver
from wordreview.srs import DailyReviewComposer, interleave, plan_slots


def _new_candidates(count: int) -> list[ExerciseRef]:
    return [ExerciseRef(exercise_id=f"new-{i}", exercise_type="new") for i in range(count)]


def _seed_due(weak_items, clock, count: int, *, user_id: str = "user-1") -> None:
    for i in range(count):
        item = make_weak_item(
            user_id=user_id,
            item_id=f"due-{i:02d}",
            now=clock.now - timedelta(days=3),
            next_review=clock.now.date() - timedelta(days=count - i),
        )
        asyncio.run(weak_items.upsert(item))


def test_interleave_appends_the_longer_tail():
    assert interleave([1, 2, 3, 4], ["a", "b"]) == [1, "a", 2, "b", 3, 4]
    assert interleave([], ["a"]) == ["a"]


@pytest.mark.parametrize(
    ("new_available", "reviews_available", "expected"),
    [
        (5, 20, (7, 3)),
        (0, 20, (7, 3)),
        (20, 20, (14, 6)),
        (5, 1, (9, 1)),
        (0, 0, (10, 0)),
    ],
)
def test_plan_slots(new_available, reviews_available, expected):
    assert plan_slots(new_available, reviews_available) == expected


def test_reviews_are_capped_and_interleaved(weak_items, cache, clock, metrics):
    """新規 5 件・期日到来 20 件では n,r,n,r,n,r,n,n の 8 件になる。"""

    _seed_due(weak_items, clock, 20)
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", _new_candidates(5)))

    kinds = ["r" if ref.exercise_type == "review" else "n" for ref in queue.items]
    assert kinds == ["n", "r", "n", "r", "n", "r", "n", "n"]
    assert queue.new_count == 5
    assert queue.review_count == 3
    assert [ref.item_id for ref in queue.items if ref.exercise_type == "review"] == [
        "due-00",
        "due-01",
        "due-02",
    ]
    assert queue.day == clock.now.date()


def test_review_share_never_exceeds_ratio(weak_items, cache, clock, metrics):
    _seed_due(weak_items, clock, 12)
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", _new_candidates(25)))

    total = max(10, 25)
    assert queue.review_count == math.ceil(total * 0.3)
    assert len(queue.items) == total


def test_future_items_are_not_included(weak_items, cache, clock, metrics):
    asyncio.run(
        weak_items.upsert(
            make_weak_item(item_id="later", now=clock.now, next_review=clock.now.date() + timedelta(days=1))
        )
    )
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", _new_candidates(2)))

    assert queue.review_count == 0
    assert [ref.exercise_id for ref in queue.items] == ["new-0", "new-1"]


def test_cached_queue_is_returned_without_recomputing(weak_items, cache, clock, metrics):
    """同じ日の 2 回目はキャッシュを返し、ストアを再照会しない。"""

    _seed_due(weak_items, clock, 4)
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)

    first = asyncio.run(composer.compose("user-1", _new_candidates(3)))
    second = asyncio.run(composer.compose("user-1", _new_candidates(9)))

    assert second == first
    assert weak_items.list_due_calls == 1
    assert metrics.snapshot()["cache:daily_review"] == {"hits": 1, "misses": 1}


def test_next_day_uses_a_fresh_queue(weak_items, cache, clock, metrics):
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)
    asyncio.run(composer.compose("user-1", _new_candidates(1)))

    clock.advance(days=1)
    queue = asyncio.run(composer.compose("user-1", _new_candidates(2)))

    assert queue.new_count == 2
    assert weak_items.list_due_calls == 2


def test_corrupt_cache_entry_is_recomputed(weak_items, cache, clock, metrics):
    asyncio.run(cache.set(daily_review_key("user-1", clock.now.date()), {"items": "broken"}, 60))
    composer = DailyReviewComposer(weak_items, cache, clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", _new_candidates(2)))

    assert queue.new_count == 2
    cached = asyncio.run(cache.get(daily_review_key("user-1", clock.now.date())))
    assert cached["new_count"] == 2


def test_cache_outage_falls_back_to_computation(weak_items, clock, metrics):
    _seed_due(weak_items, clock, 2)
    composer = DailyReviewComposer(weak_items, FailingCache(), clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", _new_candidates(1)))

    assert queue.review_count == 2
    assert queue.new_count == 1


def test_custom_resolver_may_skip_items(weak_items, cache, clock, metrics):
    class OddOnlyResolver(ExerciseResolver):
        async def resolve(self, items: list[WeakItem]) -> list[ExerciseRef]:
            return [
                ExerciseRef(exercise_id=f"ex-{item.item_id}", item_id=item.item_id, exercise_type="review")
                for index, item in enumerate(items)
                if index % 2 == 1
            ]

    _seed_due(weak_items, clock, 4)
    composer = DailyReviewComposer(weak_items, cache, OddOnlyResolver(), clock=clock, metrics=metrics)

    queue = asyncio.run(composer.compose("user-1", []))

    assert [ref.exercise_id for ref in queue.items] == ["ex-due-01", "ex-due-03"]
