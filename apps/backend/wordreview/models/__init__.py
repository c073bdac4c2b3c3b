from .review import (
    AttemptOutcome,
    AttemptScore,
    DailyReviewQueue,
    ExerciseRef,
    ReviewSchedule,
    WeakItem,
    WeakItemSummary,
)

__all__ = [
    "AttemptOutcome",
    "AttemptScore",
    "DailyReviewQueue",
    "ExerciseRef",
    "ReviewSchedule",
    "WeakItem",
    "WeakItemSummary",
]
