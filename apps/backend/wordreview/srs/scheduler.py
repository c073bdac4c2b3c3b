"""SM-2 derived review scheduling.

SM-2 Quality Scale (derived from a 0..100 performance score):
0-2 - Failed recall: interval resets to 1 day, ease drops by 0.2
3-5 - Successful recall: interval grows 1 -> 1, 2 -> 6, n -> round(n * ease)

The ease factor is always clamped to [1.3, 3.0].
"""

from __future__ import annotations

import math
from datetime import date, timedelta

from ..cache import best_effort, daily_review_key, schedule_key
from ..errors import NotFoundError
from ..logging import logger
from ..metrics import MetricsRegistry, registry as default_registry
from ..models import ReviewSchedule, WeakItem
from ..ports import ReviewCache, WeakItemStore
from .policy import DEFAULT_POLICY, Clock, SRSPolicy, require_percentage, utc_now


def quality_from_performance(performance: float) -> int:
    """Discretise a 0..100 score onto SM-2's 0..5 quality scale."""
    return max(0, min(5, math.floor(performance * 5 / 100)))


def round_half_up(value: float) -> int:
    # round() は銀行丸めのため 12.5 -> 12 になる。間隔計算は四捨五入に揃える。
    return int(math.floor(value + 0.5))


def compute_schedule(
    item: WeakItem,
    performance: float,
    today: date,
    policy: SRSPolicy = DEFAULT_POLICY,
) -> ReviewSchedule:
    """Apply one SM-2 step to `item` without touching any store."""
    quality = quality_from_performance(performance)
    interval = item.review_interval
    ease = item.ease_factor

    if quality >= 3:
        if interval == 1:
            new_interval = 1
        elif interval == 2:
            new_interval = 6
        else:
            new_interval = round_half_up(interval * ease)
        new_ease = ease + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    else:
        new_interval = 1
        new_ease = ease - policy.failure_ease_penalty

    new_ease = policy.clamp_ease(new_ease)
    new_interval = max(1, new_interval)
    return ReviewSchedule(
        weak_item_id=item.id,
        item_id=item.item_id,
        next_review=today + timedelta(days=new_interval),
        interval=new_interval,
        ease_factor=new_ease,
        quality=quality,
    )


class ReviewScheduler:
    """Update a weak item's interval/ease/next review after a review attempt.

    - 弱点アイテムが存在しなければ NotFoundError
    - 更新後のスケジュールを `srs:{user}:{item}` にキャッシュ（既定 1 時間）
    - ユーザーの日次キューを無効化（失敗してもログのみで処理は継続）
    """

    def __init__(
        self,
        weak_items: WeakItemStore,
        cache: ReviewCache,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._weak_items = weak_items
        self._metrics = metrics or default_registry
        self._cache = best_effort(cache, metrics=self._metrics)
        self._policy = policy
        self._clock = clock

    async def schedule(self, user_id: str, item_id: str, performance: float) -> ReviewSchedule:
        performance = require_percentage("performance", performance)
        with self._metrics.timed("schedule_review"):
            item = await self._weak_items.get(user_id, item_id)
            if item is None:
                raise NotFoundError(user_id, item_id)

            now = self._clock()
            today = now.date()
            schedule = compute_schedule(item, performance, today, self._policy)
            await self._weak_items.upsert(
                item.model_copy(
                    update={
                        "review_interval": schedule.interval,
                        "ease_factor": schedule.ease_factor,
                        "last_attempt": now,
                        "next_review": schedule.next_review,
                        "updated_at": now,
                    }
                )
            )
            logger.info(
                "review_scheduled",
                user_id=user_id,
                item_id=item_id,
                quality=schedule.quality,
                interval=schedule.interval,
                ease_factor=round(schedule.ease_factor, 4),
                next_review=schedule.next_review.isoformat(),
            )

            await self._cache.set(
                schedule_key(user_id, item_id),
                schedule.model_dump(mode="json"),
                self._policy.schedule_ttl_seconds,
            )
            await self._cache.invalidate(daily_review_key(user_id, today))
            return schedule

    async def cached_schedule(self, user_id: str, item_id: str) -> ReviewSchedule | None:
        """Return the last schedule computed for the pair while it is still cached."""
        payload = await self._cache.get(schedule_key(user_id, item_id))
        if payload is None:
            return None
        try:
            return ReviewSchedule.model_validate(payload)
        except ValueError as exc:
            logger.warning("review_schedule_cache_corrupt", user_id=user_id, item_id=item_id, error=repr(exc))
            return None
