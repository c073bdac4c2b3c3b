from __future__ import annotations

from collections.abc import Sequence

from ..logging import logger
from ..metrics import MetricsRegistry, registry as default_registry
from ..models import AttemptScore
from ..ports import PerformanceHistoryStore
from .classifier import WeakItemClassifier
from .policy import DEFAULT_POLICY, SRSPolicy, require_percentage


def success_rate(scores: Sequence[float], threshold: float = DEFAULT_POLICY.success_threshold) -> float:
    """Percentage of `scores` at or above `threshold`; 0.0 for an empty history."""
    if not scores:
        return 0.0
    successes = sum(1 for score in scores if score >= threshold)
    return successes / len(scores) * 100


def has_repeated_errors(
    scores_newest_first: Sequence[float],
    *,
    streak: int = DEFAULT_POLICY.repeated_error_streak,
    threshold: float = DEFAULT_POLICY.success_threshold,
) -> bool:
    """True when the `streak` most recent scores all failed.

    A history shorter than the streak never counts as repeated errors.
    """
    if len(scores_newest_first) < streak:
        return False
    return all(score < threshold for score in scores_newest_first[:streak])


class SuccessRateTracker:
    """Recompute an item's rolling success rate and flag weak items.

    成功率は常に直近 history_window 件（既定 10 件）から再計算し、
    逐次平均は使わない。成功率が閾値未満、または直近 3 件がすべて失敗なら
    WeakItemClassifier へ引き渡す。
    呼び出し側は最新スコアを AttemptScore として保存済みであること。
    """

    def __init__(
        self,
        history: PerformanceHistoryStore,
        classifier: WeakItemClassifier,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._history = history
        self._classifier = classifier
        self._policy = policy
        self._metrics = metrics or default_registry

    def is_weak(self, rate: float, recent: Sequence[AttemptScore]) -> bool:
        scores = [attempt.score for attempt in recent]
        return rate < self._policy.weak_rate_threshold or has_repeated_errors(
            scores,
            streak=self._policy.repeated_error_streak,
            threshold=self._policy.success_threshold,
        )

    async def track(self, user_id: str, item_id: str, score: float) -> float:
        # 最新スコアは保存済みの前提なので範囲チェックのみ行う
        require_percentage("score", score)
        with self._metrics.timed("track_success_rate"):
            recent = await self._history.get_recent(user_id, item_id, self._policy.history_window)
            rate = success_rate(
                [attempt.score for attempt in recent],
                threshold=self._policy.success_threshold,
            )
            if self.is_weak(rate, recent):
                await self._classifier.classify(user_id, item_id, rate, len(recent))
            else:
                logger.debug(
                    "success_rate_tracked",
                    user_id=user_id,
                    item_id=item_id,
                    success_rate=rate,
                    considered=len(recent),
                )
            return rate
