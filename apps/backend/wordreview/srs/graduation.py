from __future__ import annotations

from ..cache import best_effort, schedule_key
from ..logging import logger
from ..metrics import MetricsRegistry, registry as default_registry
from ..ports import PerformanceHistoryStore, ReviewCache, WeakItemStore
from .policy import DEFAULT_POLICY, SRSPolicy


class GraduationEvaluator:
    """Retire a weak item once mastery is shown.

    直近 3 回がすべて成功（>= 70）かつ平均 85 以上で卒業とし、弱点アイテムを削除する。
    古い履歴がどれだけ良くても、直近に 1 回でも低スコアがあれば卒業しない。
    """

    def __init__(
        self,
        history: PerformanceHistoryStore,
        weak_items: WeakItemStore,
        cache: ReviewCache | None = None,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._history = history
        self._weak_items = weak_items
        self._metrics = metrics or default_registry
        self._cache = best_effort(cache, metrics=self._metrics) if cache is not None else None
        self._policy = policy

    async def evaluate(self, user_id: str, item_id: str) -> bool:
        with self._metrics.timed("evaluate_graduation"):
            item = await self._weak_items.get(user_id, item_id)
            if item is None:
                return False

            required = self._policy.graduation_attempts
            recent = await self._history.get_recent(user_id, item_id, required)
            if len(recent) < required:
                return False
            scores = [attempt.score for attempt in recent]
            if any(score < self._policy.success_threshold for score in scores):
                return False
            mean = sum(scores) / len(scores)
            if mean < self._policy.graduation_mean:
                return False

            await self._weak_items.delete(user_id, item_id)
            if self._cache is not None:
                await self._cache.invalidate(schedule_key(user_id, item_id))
            logger.info(
                "weak_item_graduated",
                user_id=user_id,
                item_id=item_id,
                mean_score=round(mean, 2),
                review_interval=item.review_interval,
            )
            return True
