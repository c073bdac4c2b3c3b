from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from ..config import Settings
from ..errors import ValidationFailure

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SRSPolicy:
    """Numeric constants of the weak-item / SM-2 pipeline."""

    success_threshold: float = 70
    weak_rate_threshold: float = 70.0
    history_window: int = 10
    repeated_error_streak: int = 3
    initial_review_delay_days: int = 0
    initial_interval: int = 1
    initial_ease: float = 2.5
    min_ease: float = 1.3
    max_ease: float = 3.0
    failure_ease_penalty: float = 0.2
    graduation_attempts: int = 3
    graduation_mean: float = 85.0
    daily_min_slots: int = 10
    review_ratio: float = 0.3
    daily_queue_ttl_seconds: int = 24 * 60 * 60
    schedule_ttl_seconds: int = 60 * 60

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SRSPolicy":
        return cls(
            success_threshold=cfg.srs_success_threshold,
            weak_rate_threshold=cfg.srs_weak_rate_threshold,
            history_window=cfg.srs_history_window,
            repeated_error_streak=cfg.srs_repeated_error_streak,
            initial_review_delay_days=cfg.srs_initial_review_delay_days,
            initial_interval=cfg.srs_initial_interval,
            initial_ease=cfg.srs_initial_ease,
            min_ease=cfg.srs_min_ease,
            max_ease=cfg.srs_max_ease,
            failure_ease_penalty=cfg.srs_failure_ease_penalty,
            graduation_attempts=cfg.srs_graduation_attempts,
            graduation_mean=cfg.srs_graduation_mean,
            daily_min_slots=cfg.srs_daily_min_slots,
            review_ratio=cfg.srs_review_ratio,
            daily_queue_ttl_seconds=cfg.srs_daily_queue_ttl_seconds,
            schedule_ttl_seconds=cfg.srs_schedule_ttl_seconds,
        )

    def clamp_ease(self, ease: float) -> float:
        return max(self.min_ease, min(self.max_ease, ease))


DEFAULT_POLICY = SRSPolicy()


def require_percentage(name: str, value: float) -> float:
    """Return `value` as float or raise ValidationFailure when outside [0, 100]."""
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(number) or not 0.0 <= number <= 100.0:
        raise ValidationFailure(f"{name} must be within [0, 100], got {value!r}")
    return number
