from __future__ import annotations

from datetime import timedelta

from ..errors import ValidationFailure
from ..id_factory import weak_item_id
from ..logging import logger
from ..metrics import MetricsRegistry, registry as default_registry
from ..models import WeakItem
from ..ports import WeakItemStore
from .policy import DEFAULT_POLICY, Clock, SRSPolicy, require_percentage, utc_now


class WeakItemClassifier:
    """Upsert weak-item state from a success rate.

    既存レコードがあれば success_rate / attempt_count / last_attempt だけを更新し、
    間隔・ease・次回出題日には触れない（それらは ReviewScheduler の責務）。
    新規作成時は interval=1, ease=2.5 で、next_review は今日 +
    initial_review_delay_days（既定 0 = 即日出題対象）とする。
    """

    def __init__(
        self,
        weak_items: WeakItemStore,
        *,
        policy: SRSPolicy = DEFAULT_POLICY,
        clock: Clock = utc_now,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self._weak_items = weak_items
        self._policy = policy
        self._clock = clock
        self._metrics = metrics or default_registry

    async def classify(
        self,
        user_id: str,
        item_id: str,
        success_rate: float,
        attempt_count: int,
    ) -> WeakItem:
        success_rate = require_percentage("success_rate", success_rate)
        if attempt_count < 0:
            raise ValidationFailure(f"attempt_count must not be negative, got {attempt_count}")
        with self._metrics.timed("classify"):
            now = self._clock()
            existing = await self._weak_items.get(user_id, item_id)
            if existing is not None:
                updated = existing.model_copy(
                    update={
                        "success_rate": success_rate,
                        "attempt_count": attempt_count,
                        "last_attempt": now,
                        "updated_at": now,
                    }
                )
                stored = await self._weak_items.upsert(updated)
                logger.info(
                    "weak_item_updated",
                    user_id=user_id,
                    item_id=item_id,
                    success_rate=success_rate,
                    attempt_count=attempt_count,
                )
                return stored

            created = WeakItem(
                id=weak_item_id(user_id, item_id),
                user_id=user_id,
                item_id=item_id,
                success_rate=success_rate,
                attempt_count=attempt_count,
                last_attempt=now,
                next_review=now.date() + timedelta(days=self._policy.initial_review_delay_days),
                review_interval=self._policy.initial_interval,
                ease_factor=self._policy.initial_ease,
                created_at=now,
                updated_at=now,
            )
            stored = await self._weak_items.upsert(created)
            logger.info(
                "weak_item_flagged",
                user_id=user_id,
                item_id=item_id,
                success_rate=success_rate,
                attempt_count=attempt_count,
                next_review=stored.next_review.isoformat(),
            )
            return stored
