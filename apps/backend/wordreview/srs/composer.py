from __future__ import annotations

import math
from collections.abc import Sequence
from itertools import zip_longest
from typing import TypeVar

from ..cache import best_effort, daily_review_key
from ..logging import logger
from ..metrics import MetricsRegistry, registry as default_registry
from ..models import DailyReviewQueue, ExerciseRef, WeakItem
from ..ports import ExerciseResolver, ReviewCache, WeakItemStore
from .policy import DEFAULT_POLICY, Clock, SRSPolicy, utc_now

T = TypeVar("T")


class ItemExerciseResolver(ExerciseResolver):
    """Resolve each weak item to a review exercise keyed by the item itself.

    コンテンツカタログを持たない構成向けの既定実装。画像・音声付きの
    出題に解決したい場合は呼び出し側で ExerciseResolver を実装して渡す。
    """

    def __init__(self, exercise_type: str = "review") -> None:
        self._exercise_type = exercise_type

    async def resolve(self, weak_items: Sequence[WeakItem]) -> list[ExerciseRef]:
        return [
            ExerciseRef(
                exercise_id=item.item_id,
                item_id=item.item_id,
                exercise_type=self._exercise_type,
            )
            for item in weak_items
        ]


def plan_slots(
    new_available: int,
    reviews_available: int,
    policy: SRSPolicy = DEFAULT_POLICY,
) -> tuple[int, int]:
    """Return (new_slots, review_slots) for one daily session.

    total = max(daily_min_slots, new_available); reviews are capped at
    ceil(total * review_ratio) and by what is due. new_slots may exceed what
    is available; callers simply take what exists.
    """
    total_slots = max(policy.daily_min_slots, new_available)
    review_slots = min(math.ceil(total_slots * policy.review_ratio), reviews_available)
    return total_slots - review_slots, review_slots


def interleave(first: Sequence[T], second: Sequence[T]) -> list[T]:
    """Zipper merge: first[0], second[0], first[1], ... then the longer tail."""
    merged: list[T] = []
    marker = object()
    for a, b in zip_longest(first, second, fillvalue=marker):
        if a is not marker:
            merged.append(a)  # type: ignore[arg-type]
        if b is not marker:
            merged.append(b)  # type: ignore[arg-type]
    return merged


class DailyReviewComposer:
    """Blend new content with due reviews into a bounded, interleaved queue.

    1 セッション内の復習は最大 30%。新規コンテンツが少ない日でも合計 10 枠を確保する。
    結果はユーザー×日付単位でキャッシュし（既定 24 時間）、キャッシュがあれば
    再計算せずそのまま返す。
    """

    def __init__(
        self,
        weak_items: WeakItemStore,
        cache: ReviewCache,
        resolver: ExerciseResolver | None = None,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._weak_items = weak_items
        self._metrics = metrics or default_registry
        self._cache = best_effort(cache, metrics=self._metrics)
        self._resolver = resolver or ItemExerciseResolver()
        self._policy = policy
        self._clock = clock

    async def _cached(self, key: str, user_id: str) -> DailyReviewQueue | None:
        payload = await self._cache.get(key)
        if payload is None:
            return None
        try:
            return DailyReviewQueue.model_validate(payload)
        except ValueError as exc:
            # 壊れたキャッシュは捨てて再計算する
            logger.warning("daily_review_cache_corrupt", user_id=user_id, error=repr(exc))
            await self._cache.invalidate(key)
            return None

    async def compose(self, user_id: str, new_candidates: Sequence[ExerciseRef]) -> DailyReviewQueue:
        with self._metrics.timed("compose_daily_review"):
            now = self._clock()
            today = now.date()
            key = daily_review_key(user_id, today)

            cached = await self._cached(key, user_id)
            if cached is not None:
                logger.debug("daily_review_cache_hit", user_id=user_id, day=today.isoformat())
                return cached

            due = await self._weak_items.list_due(user_id, today)
            reviews = await self._resolver.resolve(due) if due else []

            new_slots, review_slots = plan_slots(len(new_candidates), len(reviews), self._policy)
            selected_new = list(new_candidates[:new_slots])
            selected_reviews = list(reviews[:review_slots])

            queue = DailyReviewQueue(
                user_id=user_id,
                day=today,
                items=interleave(selected_new, selected_reviews),
                new_count=len(selected_new),
                review_count=len(selected_reviews),
                generated_at=now,
            )
            await self._cache.set(key, queue.model_dump(mode="json"), self._policy.daily_queue_ttl_seconds)
            logger.info(
                "daily_review_composed",
                user_id=user_id,
                day=today.isoformat(),
                due=len(due),
                new=queue.new_count,
                reviews=queue.review_count,
            )
            return queue
