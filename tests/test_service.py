import asyncio
from datetime import timedelta

import pytest

from tests.srs_fakes import FIXED_NOW
from wordreview.config import Settings
from wordreview.errors import NotFoundError, ValidationFailure
from wordreview.models import ExerciseRef
from wordreview.srs import SpacedRepetitionService, build_service
from wordreview.store import SQLiteSRSStore


@pytest.fixture
def service(history, weak_items, cache, clock, metrics) -> SpacedRepetitionService:
    return SpacedRepetitionService(history, weak_items, cache, clock=clock, metrics=metrics)


def _record(service, clock, item_id: str, score: float):
    clock.advance(minutes=1)
    return asyncio.run(service.record_attempt("user-1", item_id, score, recognized_text=item_id))


def test_item_is_flagged_then_graduates(service, clock, weak_items):
    """失敗で弱点登録され、直近 3 回の高得点で卒業するまでの一連の流れ。"""

    first = _record(service, clock, "apple", 30)
    assert first.weak is True
    assert first.graduated is False
    assert first.attempt.recognized_text == "apple"

    for score in (90, 95):
        outcome = _record(service, clock, "apple", score)
        assert outcome.weak is True
        assert outcome.graduated is False

    final = _record(service, clock, "apple", 92)

    assert final.success_rate == pytest.approx(75.0)
    assert final.graduated is True
    assert final.weak is False
    assert asyncio.run(weak_items.get("user-1", "apple")) is None


def test_newly_flagged_item_is_not_graduated_in_the_same_call(service, clock, history, weak_items):
    history.seed("user-1", "pear", [90, 90] + [0] * 7, start=FIXED_NOW)

    flagged = _record(service, clock, "pear", 90)
    assert flagged.success_rate == pytest.approx(30.0)
    assert flagged.weak is True
    assert flagged.graduated is False

    graduated = _record(service, clock, "pear", 90)
    assert graduated.graduated is True
    assert asyncio.run(weak_items.get("user-1", "pear")) is None


def test_good_attempts_never_create_weak_items(service, clock, weak_items):
    for score in (80, 90, 100):
        outcome = _record(service, clock, "plum", score)
        assert outcome.weak is False

    assert weak_items.items == {}


def test_invalid_score_is_not_recorded(service, history):
    with pytest.raises(ValidationFailure):
        asyncio.run(service.record_attempt("user-1", "apple", 120))
    assert history.attempts == []


def test_review_flow_updates_schedule_and_daily_queue(service, clock):
    _record(service, clock, "apple", 10)
    _record(service, clock, "kiwi", 20)
    new = [ExerciseRef(exercise_id="lesson-1", exercise_type="new")]

    queue = asyncio.run(service.daily_review("user-1", new))
    assert [ref.exercise_id for ref in queue.items] == ["lesson-1", "apple", "kiwi"]
    assert [item.item_id for item in asyncio.run(service.review_due("user-1"))] == ["apple", "kiwi"]

    schedule = asyncio.run(service.schedule_review("user-1", "apple", 85))
    assert schedule.next_review == clock.now.date() + timedelta(days=1)
    assert asyncio.run(service.cached_schedule("user-1", "apple")) == schedule

    # スケジュール更新で当日のキューは無効化され、期日が先になった apple は外れる
    refreshed = asyncio.run(service.daily_review("user-1", new))
    assert [ref.exercise_id for ref in refreshed.items] == ["lesson-1", "kiwi"]

    summaries = asyncio.run(service.weak_items_for("user-1"))
    assert [s.item_id for s in summaries] == ["kiwi", "apple"]
    assert summaries[0].review_count == 1


def test_schedule_review_for_unknown_item_raises(service):
    with pytest.raises(NotFoundError):
        asyncio.run(service.schedule_review("user-1", "ghost", 90))


def test_build_service_wires_sqlite_store(tmp_path):
    cfg = Settings(
        _env_file=None,
        srs_store_backend="sqlite",
        srs_db_path=str(tmp_path / "srs.sqlite3"),
        srs_initial_review_delay_days=1,
    )

    service = build_service(cfg)

    assert isinstance(service.history, SQLiteSRSStore)
    assert service.weak_items is service.history
    assert service.policy.initial_review_delay_days == 1

    outcome = asyncio.run(service.record_attempt("user-1", "apple", 10))
    assert outcome.weak is True
    assert asyncio.run(service.review_due("user-1")) == []
