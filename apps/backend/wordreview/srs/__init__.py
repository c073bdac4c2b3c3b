from __future__ import annotations

from ..cache import InMemoryReviewCache
from ..config import Settings, settings as default_settings
from ..ports import ExerciseResolver, ReviewCache
from ..store import create_srs_store
from .classifier import WeakItemClassifier
from .composer import DailyReviewComposer, ItemExerciseResolver, interleave, plan_slots
from .graduation import GraduationEvaluator
from .policy import DEFAULT_POLICY, SRSPolicy
from .scheduler import ReviewScheduler, compute_schedule, quality_from_performance
from .service import SpacedRepetitionService
from .tracker import SuccessRateTracker, has_repeated_errors, success_rate


def build_service(
    cfg: Settings | None = None,
    *,
    cache: ReviewCache | None = None,
    resolver: ExerciseResolver | None = None,
) -> SpacedRepetitionService:
    """設定からストア・キャッシュ・ポリシーを組み立てて SRS サービスを生成する。"""

    cfg = cfg or default_settings
    store = create_srs_store(cfg)
    return SpacedRepetitionService(
        history=store,
        weak_items=store,
        cache=cache or InMemoryReviewCache(),
        resolver=resolver,
        policy=SRSPolicy.from_settings(cfg),
    )


__all__ = [
    "DEFAULT_POLICY",
    "DailyReviewComposer",
    "GraduationEvaluator",
    "ItemExerciseResolver",
    "ReviewScheduler",
    "SRSPolicy",
    "SpacedRepetitionService",
    "SuccessRateTracker",
    "WeakItemClassifier",
    "build_service",
    "compute_schedule",
    "has_repeated_errors",
    "interleave",
    "plan_slots",
    "quality_from_performance",
    "success_rate",
]
