import math
from datetime import timedelta

import pytest

from nucleus.application.config import EngineConfig
from nucleus.application.memory import (
    MemoryStateUpdater,
    SessionAnswer,
    classify_timing,
    mastery_from_stability,
)
from nucleus.domain.errors import ConfigurationError
from nucleus.domain.models import Rating, TimingClass


@pytest.fixture
def updater(config):
    return MemoryStateUpdater(config)


def test_first_correct_review_of_new_item(updater, make_item, now):
    item = make_item()

    outcome = updater.update(item, True, Rating.GOOD, 15.0, now)

    # R = 0 for a never-reviewed item: gain = 0.22 * 3 * 1.5
    assert outcome.stability == pytest.approx(1.99)
    assert outcome.difficulty == pytest.approx(0.5)
    # Early correct floor of 20, scaled by (1 - 0.5 * 0.2)
    assert outcome.mastery_score == pytest.approx(18.0)
    assert outcome.next_review_at == now + timedelta(days=outcome.stability)
    assert outcome.last_reviewed_at == now
    assert outcome.timing_class == TimingClass.OK


def test_fast_answer_gets_time_bonus(updater, make_item, now):
    outcome = updater.update(make_item(), True, Rating.GOOD, 4.0, now)

    assert outcome.stability == pytest.approx(1 + 0.99 * 1.06)
    assert outcome.timing_class == TimingClass.RUSH


def test_time_bonus_threshold_is_strict(updater, make_item, now):
    # Exactly half the expected time does not qualify
    outcome = updater.update(make_item(), True, Rating.GOOD, 10.0, now)
    assert outcome.stability == pytest.approx(1.99)


def test_failure_cuts_stability_and_raises_difficulty(updater, make_item, now):
    item = make_item(stability=10.0, difficulty=0.5, last_reviewed_at=now - timedelta(days=3))

    outcome = updater.update(item, False, Rating.AGAIN, 30.0, now)

    assert outcome.stability == pytest.approx(5.0)
    assert outcome.difficulty == pytest.approx(0.7)
    expected = math.log(5.0) / math.log(365.0) * 100.0 * (1 - 0.7 * 0.2)
    assert outcome.mastery_score == pytest.approx(expected)


def test_failure_floors_stability(updater, make_item, now):
    item = make_item(stability=0.6, difficulty=0.95)

    outcome = updater.update(item, False, Rating.AGAIN, 30.0, now)

    assert outcome.stability == pytest.approx(0.5)
    assert outcome.difficulty == pytest.approx(1.0)
    assert outcome.mastery_score == 0.0


def test_stability_is_capped(updater, make_item, now):
    item = make_item(stability=300.0, difficulty=0.5, last_reviewed_at=now - timedelta(days=300))

    outcome = updater.update(item, True, Rating.EASY, 30.0, now)

    assert outcome.stability == pytest.approx(365.0)
    assert outcome.difficulty == pytest.approx(0.35)
    assert outcome.mastery_score == pytest.approx(100.0 * (1 - 0.35 * 0.2))


def test_rating_moves_difficulty(updater, make_item, now):
    item = make_item(difficulty=0.5)

    assert updater.update(item, True, Rating.HARD, 30.0, now).difficulty == pytest.approx(0.6)
    assert updater.update(item, True, Rating.GOOD, 30.0, now).difficulty == pytest.approx(0.5)
    assert updater.update(item, True, Rating.EASY, 30.0, now).difficulty == pytest.approx(0.35)


def test_easy_difficulty_floor(updater, make_item, now):
    item = make_item(difficulty=0.15)
    assert updater.update(item, True, Rating.EASY, 30.0, now).difficulty == pytest.approx(0.1)


def test_correct_again_rating_grows_like_good(updater, make_item, now):
    item = make_item(stability=4.0, last_reviewed_at=now - timedelta(days=2))

    again = updater.update(item, True, Rating.AGAIN, 30.0, now)
    good = updater.update(item, True, Rating.GOOD, 30.0, now)

    assert again.stability == pytest.approx(good.stability)


def test_lower_retrievability_earns_bigger_gain(updater, make_item, now):
    recent = make_item(stability=10.0, last_reviewed_at=now - timedelta(days=1))
    stale = make_item(stability=10.0, last_reviewed_at=now - timedelta(days=20))

    assert (
        updater.update(stale, True, Rating.GOOD, 30.0, now).stability
        > updater.update(recent, True, Rating.GOOD, 30.0, now).stability
    )


def test_update_is_pure(updater, make_item, now):
    item = make_item(stability=3.0, last_reviewed_at=now - timedelta(days=2))

    first = updater.update(item, True, Rating.GOOD, 12.0, now)
    second = updater.update(item, True, Rating.GOOD, 12.0, now)

    assert first == second
    assert item.stability == 3.0
    assert item.attempt_history == []


@pytest.mark.parametrize("rating", [-1, 4, 7])
def test_invalid_rating_raises(updater, make_item, now, rating):
    with pytest.raises(ValueError):
        updater.update(make_item(), True, rating, 10.0, now)


def test_malformed_state_is_repaired(updater, make_item, now):
    item = make_item(stability=float("nan"), difficulty=float("inf"))

    outcome = updater.update(item, True, Rating.GOOD, 30.0, now)

    assert math.isfinite(outcome.stability)
    assert outcome.stability == pytest.approx(1.99)
    assert 0.0 <= outcome.difficulty <= 1.0


def test_negative_stability_falls_back_to_default(updater, make_item, now):
    outcome = updater.update(make_item(stability=-3.0), False, Rating.AGAIN, 30.0, now)
    assert outcome.stability == pytest.approx(0.5)


def test_outputs_stay_within_bounds(updater, make_item, now):
    for stability in (0.5, 1.0, 7.0, 90.0, 365.0):
        for difficulty in (0.0, 0.3, 1.0):
            for days_ago in (None, 0.5, 30.0, 400.0):
                last = now - timedelta(days=days_ago) if days_ago is not None else None
                item = make_item(stability=stability, difficulty=difficulty, last_reviewed_at=last)
                for correct in (True, False):
                    for rating in Rating:
                        out = updater.update(item, correct, rating, 3.0, now)
                        assert 0.5 <= out.stability <= 365.0
                        assert 0.0 <= out.difficulty <= 1.0
                        assert 0.0 <= out.mastery_score <= 100.0
                        assert out.next_review_at > now


def test_correct_streak_grows_stability(updater, make_item, now):
    item = make_item()
    stabilities = []
    masteries = []

    for step in range(3):
        item = updater.apply_review(item, True, Rating.GOOD, 20.0, now + timedelta(hours=step))
        stabilities.append(item.stability)
        masteries.append(item.mastery_score)

    assert stabilities == sorted(stabilities)
    assert len(set(stabilities)) == 3
    assert masteries == sorted(masteries)
    assert item.correct_streak == 3
    assert item.total_attempts == 3


def test_single_failure_from_mastery(updater, make_item, now):
    item = make_item(
        stability=30.0,
        mastery_score=70.0,
        total_attempts=4,
        last_was_correct=True,
        correct_streak=4,
        last_reviewed_at=now - timedelta(days=10),
    )

    updated = updater.apply_review(item, False, Rating.AGAIN, 25.0, now)

    assert updated.stability <= 30.0 * 0.5
    assert updated.last_was_correct is False
    assert updated.correct_streak == 0
    assert updated.lapses == 1


def test_apply_review_appends_attempt(updater, make_item, now):
    item = make_item()

    updated = updater.apply_review(item, True, Rating.EASY, 70.0, now)

    assert item.attempt_history == []
    assert len(updated.attempt_history) == 1
    attempt = updated.attempt_history[0]
    assert attempt.timestamp == now
    assert attempt.was_correct is True
    assert attempt.rating == 3
    assert attempt.timing_class == TimingClass.SLOW
    assert attempt.stability_after == updated.stability
    assert attempt.mastery_after == updated.mastery_score
    assert updated.total_attempts == len(updated.attempt_history)
    assert updated.last_rating == 3


def test_apply_review_realigns_attempt_count(updater, make_item, now):
    # Legacy record whose counter drifted from its history
    item = make_item(total_attempts=9)

    updated = updater.apply_review(item, True, Rating.GOOD, 20.0, now)

    assert updated.total_attempts == 1


def test_process_session_applies_answers_in_order(updater, make_item, now):
    a = make_item("q_a")
    b = make_item("q_b")
    answers = [
        SessionAnswer("q_a", True, Rating.GOOD, 20.0),
        SessionAnswer("q_missing", True, Rating.GOOD, 20.0),
        SessionAnswer("q_a", False, Rating.AGAIN, 20.0),
    ]

    updated = updater.process_session([a, b], answers, now)

    assert [item.id for item in updated] == ["q_a"]
    assert updated[0].total_attempts == 2
    assert updated[0].last_was_correct is False
    assert updated[0].lapses == 1


def test_reset_progress(updater, make_item, now):
    item = updater.apply_review(make_item(explanation="why"), True, Rating.GOOD, 20.0, now)

    reset = updater.reset_progress(item)

    assert reset.total_attempts == 0
    assert reset.attempt_history == []
    assert reset.mastery_score == 0.0
    assert reset.stability == 1.0
    assert reset.difficulty == 0.5
    assert reset.last_reviewed_at is None
    assert reset.next_review_at is None
    assert reset.explanation == "why"


def test_invalid_config_is_rejected():
    config = EngineConfig.model_construct(stability_cap_days=0.0)
    with pytest.raises(ConfigurationError):
        MemoryStateUpdater(config)


def test_custom_failure_decay(make_item, now):
    updater = MemoryStateUpdater(EngineConfig(failure_decay=0.25))
    outcome = updater.update(make_item(stability=20.0), False, Rating.AGAIN, 20.0, now)
    assert outcome.stability == pytest.approx(5.0)


@pytest.mark.parametrize(
    "seconds,expected",
    [(0.0, TimingClass.RUSH), (4.9, TimingClass.RUSH), (5.0, TimingClass.OK),
     (60.0, TimingClass.OK), (60.1, TimingClass.SLOW)],
)
def test_classify_timing(seconds, expected):
    assert classify_timing(seconds) == expected


def test_mastery_young_items():
    assert mastery_from_stability(1.0, 0.0, True) == 15.0
    assert mastery_from_stability(0.8, 0.0, False) == 0.0
