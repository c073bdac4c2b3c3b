from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AttemptScore(BaseModel):
    """One scored practice attempt (append-only).

    発音・想起練習 1 回ぶんの採点結果。作成後は変更しない。
    """

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    score: float = Field(ge=0, le=100, description="0..100 のスコア")
    recognized_text: str = ""
    timestamp: datetime


class WeakItem(BaseModel):
    """A content unit flagged for spaced repetition.

    弱点として登録された学習アイテムとその SM-2 スケジューリング状態。
    (user_id, item_id) ごとに高々 1 件。卒業時に削除される。
    """

    id: str
    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    success_rate: float = Field(ge=0, le=100)
    attempt_count: int = Field(ge=0)
    last_attempt: datetime
    next_review: date
    review_interval: int = Field(ge=1, description="復習間隔（日）")
    ease_factor: float = Field(ge=1.3, le=3.0)
    created_at: datetime
    updated_at: datetime


class ReviewSchedule(BaseModel):
    """Result of one scheduling step; persisted only through WeakItem fields."""

    weak_item_id: str
    item_id: str
    next_review: date
    interval: int = Field(ge=1)
    ease_factor: float = Field(ge=1.3, le=3.0)
    quality: int = Field(ge=0, le=5)


class ExerciseRef(BaseModel):
    """Displayable exercise reference placed into a daily queue.

    中身（画像・音声・テキスト）は外部のコンテンツ層が解決する。ここでは
    並べ替えとキャッシュに必要な最小限の識別子だけを持つ。
    """

    model_config = ConfigDict(extra="ignore")

    exercise_id: str = Field(min_length=1)
    item_id: str | None = None
    exercise_type: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class DailyReviewQueue(BaseModel):
    """Ordered daily session for one user: new content interleaved with reviews."""

    user_id: str
    day: date
    items: list[ExerciseRef] = Field(default_factory=list)
    new_count: int = Field(default=0, ge=0)
    review_count: int = Field(default=0, ge=0)
    generated_at: datetime


class WeakItemSummary(BaseModel):
    """Listing view of a weak item (弱点一覧の表示用)."""

    weak_item_id: str
    item_id: str
    success_rate: float
    last_attempt: datetime
    review_count: int
    next_review: date


class AttemptOutcome(BaseModel):
    """What happened after an attempt was recorded."""

    attempt: AttemptScore
    success_rate: float
    weak: bool
    graduated: bool
