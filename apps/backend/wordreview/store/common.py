from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from ..models import AttemptScore, WeakItem


def now_utc() -> datetime:
    return datetime.now(UTC)


def to_iso(value: datetime) -> str:
    """Serialise a datetime as fixed-width UTC ISO text.

    文字列比較で時系列順に並ぶよう、タイムゾーンを UTC に揃えた上で
    マイクロ秒まで常に出力する（`isoformat()` はマイクロ秒 0 のとき省略するため）。
    """

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_iso(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        parsed = raw
    else:
        parsed = datetime.fromisoformat(str(raw))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def date_from_iso(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw)[:10])


def normalize_non_negative_int(value: Any) -> int:
    """与えられた値を非負整数に正規化する。

    試行回数や間隔は外部から壊れた値が入ると集計が破綻するため、
    ストアから読み出す段階でゼロ以上に矯正しておく。"""

    try:
        ivalue = int(value)
    except (TypeError, ValueError):
        return 0
    return ivalue if ivalue >= 0 else 0


def attempt_to_document(attempt: AttemptScore) -> dict[str, Any]:
    return {
        "id": attempt.id,
        "user_id": attempt.user_id,
        "item_id": attempt.item_id,
        "score": float(attempt.score),
        "recognized_text": attempt.recognized_text,
        "timestamp": to_iso(attempt.timestamp),
    }


def attempt_from_document(data: Mapping[str, Any]) -> AttemptScore:
    return AttemptScore(
        id=str(data["id"]),
        user_id=str(data["user_id"]),
        item_id=str(data["item_id"]),
        score=float(data.get("score") or 0.0),
        recognized_text=str(data.get("recognized_text") or ""),
        timestamp=from_iso(data["timestamp"]),
    )


def weak_item_to_document(item: WeakItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "user_id": item.user_id,
        "item_id": item.item_id,
        "success_rate": float(item.success_rate),
        "attempt_count": int(item.attempt_count),
        "last_attempt": to_iso(item.last_attempt),
        "next_review": item.next_review.isoformat(),
        "review_interval": int(item.review_interval),
        "ease_factor": float(item.ease_factor),
        "created_at": to_iso(item.created_at),
        "updated_at": to_iso(item.updated_at),
    }


def weak_item_from_document(data: Mapping[str, Any]) -> WeakItem:
    return WeakItem(
        id=str(data["id"]),
        user_id=str(data["user_id"]),
        item_id=str(data["item_id"]),
        success_rate=float(data.get("success_rate") or 0.0),
        attempt_count=normalize_non_negative_int(data.get("attempt_count")),
        last_attempt=from_iso(data["last_attempt"]),
        next_review=date_from_iso(data["next_review"]),
        review_interval=max(1, normalize_non_negative_int(data.get("review_interval"))),
        ease_factor=float(data.get("ease_factor") or 2.5),
        created_at=from_iso(data["created_at"]),
        updated_at=from_iso(data["updated_at"]),
    )
