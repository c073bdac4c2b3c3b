from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..cache import InMemoryReviewCache, best_effort
from ..id_factory import generate_attempt_id
from ..logging import logger, review_context
from ..metrics import MetricsRegistry, registry as default_registry
from ..models import (
    AttemptOutcome,
    AttemptScore,
    DailyReviewQueue,
    ExerciseRef,
    ReviewSchedule,
    WeakItem,
    WeakItemSummary,
)
from ..ports import ExerciseResolver, PerformanceHistoryStore, ReviewCache, WeakItemStore
from .classifier import WeakItemClassifier
from .composer import DailyReviewComposer
from .graduation import GraduationEvaluator
from .policy import DEFAULT_POLICY, Clock, SRSPolicy, require_percentage, utc_now
from .scheduler import ReviewScheduler
from .tracker import SuccessRateTracker


class SpacedRepetitionService:
    """Facade wiring the SRS components around one set of stores.

    HTTP 層などの呼び出し側はこのクラスだけを使えばよい。各コンポーネントは
    属性として公開しているので、個別に呼び出すこともできる。
    """

    def __init__(
        self,
        history: PerformanceHistoryStore,
        weak_items: WeakItemStore,
        cache: ReviewCache | None = None,
        resolver: ExerciseResolver | None = None,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.history = history
        self.weak_items = weak_items
        self.metrics = metrics or default_registry
        self.cache = best_effort(cache or InMemoryReviewCache(), metrics=self.metrics)
        self.policy = policy
        self._clock = clock

        self.classifier = WeakItemClassifier(weak_items, policy=policy, clock=clock, metrics=self.metrics)
        self.tracker = SuccessRateTracker(history, self.classifier, policy=policy, metrics=self.metrics)
        self.scheduler = ReviewScheduler(weak_items, self.cache, policy=policy, clock=clock, metrics=self.metrics)
        self.composer = DailyReviewComposer(
            weak_items, self.cache, resolver, policy=policy, clock=clock, metrics=self.metrics
        )
        self.graduation = GraduationEvaluator(
            history, weak_items, self.cache, policy=policy, metrics=self.metrics
        )

    async def record_attempt(
        self,
        user_id: str,
        item_id: str,
        score: float,
        recognized_text: str = "",
        timestamp: datetime | None = None,
    ) -> AttemptOutcome:
        """Persist an attempt, refresh the success rate, and check graduation.

        卒業判定は、この試行より前から弱点として登録済みのアイテムに限る。
        今回の試行で新たに弱点になったアイテムを同じ呼び出しで卒業させない。
        """

        score = require_percentage("score", score)
        attempt = AttemptScore(
            id=generate_attempt_id(),
            user_id=user_id,
            item_id=item_id,
            score=score,
            recognized_text=recognized_text,
            timestamp=timestamp or self._clock(),
        )
        with review_context(user_id, item_id):
            await self.history.record(attempt)
            was_weak = await self.weak_items.get(user_id, item_id) is not None

            rate = await self.tracker.track(user_id, item_id, score)
            graduated = was_weak and await self.graduation.evaluate(user_id, item_id)
            weak = not graduated and await self.weak_items.get(user_id, item_id) is not None
            logger.info(
                "attempt_recorded",
                score=score,
                success_rate=rate,
                weak=weak,
                graduated=graduated,
            )
        return AttemptOutcome(attempt=attempt, success_rate=rate, weak=weak, graduated=graduated)

    async def track_success_rate(self, user_id: str, item_id: str, score: float) -> float:
        return await self.tracker.track(user_id, item_id, score)

    async def classify(self, user_id: str, item_id: str, success_rate: float, attempt_count: int) -> WeakItem:
        return await self.classifier.classify(user_id, item_id, success_rate, attempt_count)

    async def schedule_review(self, user_id: str, item_id: str, performance: float) -> ReviewSchedule:
        return await self.scheduler.schedule(user_id, item_id, performance)

    async def daily_review(self, user_id: str, new_candidates: Sequence[ExerciseRef]) -> DailyReviewQueue:
        return await self.composer.compose(user_id, new_candidates)

    async def graduate(self, user_id: str, item_id: str) -> bool:
        return await self.graduation.evaluate(user_id, item_id)

    async def review_due(self, user_id: str) -> list[WeakItem]:
        """Weak items whose next review has arrived, earliest first."""
        return await self.weak_items.list_due(user_id, self._clock().date())

    async def weak_items_for(self, user_id: str) -> list[WeakItemSummary]:
        items = await self.weak_items.list_for_user(user_id)
        return [
            WeakItemSummary(
                weak_item_id=item.id,
                item_id=item.item_id,
                success_rate=item.success_rate,
                last_attempt=item.last_attempt,
                review_count=item.attempt_count,
                next_review=item.next_review,
            )
            for item in items
        ]

    async def cached_schedule(self, user_id: str, item_id: str) -> ReviewSchedule | None:
        return await self.scheduler.cached_schedule(user_id, item_id)
