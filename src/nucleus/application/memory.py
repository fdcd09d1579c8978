"""
Memory-state updater.

Turns one review outcome into the next stability, difficulty, mastery and
due date for a study item. The update is a pure function of its inputs:
no I/O, no shared state. It is not commutative, so callers must apply the
reviews of a single item in order.

Algorithm outline:
1. R = exp(-days_since_last_review / S) (0 if never reviewed)
2. Failure: difficulty += step, S *= failure_decay (floored at 0.5 days)
3. Success: difficulty drifts with the rating, then
   gain = alpha[rating] * (1 + (1 - R) * 2) * (1 + (1 - D)),
   amplified once by the time bonus for fast answers, S *= 1 + gain
4. S is capped at the configured maximum
5. Mastery is log-scaled from the new S, floored for young items and
   reduced in proportion to difficulty
"""

import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from nucleus.application.config import EngineConfig
from nucleus.application.stats.metrics_calculator import compute_retrievability, utcnow
from nucleus.application.utils.numeric import clamp, finite_or
from nucleus.domain.constants import (
    DEFAULT_DIFFICULTY,
    DIFFICULTY_EASY_FLOOR,
    DIFFICULTY_EASY_STEP,
    DIFFICULTY_FAIL_STEP,
    DIFFICULTY_HARD_STEP,
    DIFFICULTY_MASTERY_PENALTY,
    EARLY_CORRECT_MASTERY_FLOOR,
    MASTERY_HORIZON_DAYS,
    MIN_STABILITY_DAYS,
    RETRIEVABILITY_GAIN_WEIGHT,
    RUSH_BELOW_SEC,
    SLOW_ABOVE_SEC,
    YOUNG_CORRECT_MASTERY,
    YOUNG_STABILITY_DAYS,
)
from nucleus.domain.errors import ConfigurationError
from nucleus.domain.models import Attempt, Rating, StudyItem, TimingClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """New memory state produced by a single review."""

    stability: float
    difficulty: float
    mastery_score: float
    next_review_at: datetime
    last_reviewed_at: datetime
    timing_class: TimingClass
    was_correct: bool
    rating: Rating


@dataclass(frozen=True)
class SessionAnswer:
    item_id: str
    was_correct: bool
    rating: int
    response_time_sec: float


def classify_timing(response_time_sec: float) -> TimingClass:
    if response_time_sec < RUSH_BELOW_SEC:
        return TimingClass.RUSH
    if response_time_sec > SLOW_ABOVE_SEC:
        return TimingClass.SLOW
    return TimingClass.OK


def mastery_from_stability(stability: float, difficulty: float, was_correct: bool) -> float:
    """
    Map stability onto a 0-100 mastery score.

    Doublings of stability yield diminishing gains (log scale). Young items
    get a small floor after a correct answer and none after a failure.
    Higher difficulty suppresses mastery at equal stability.
    """
    if stability <= YOUNG_STABILITY_DAYS:
        mastery = YOUNG_CORRECT_MASTERY if was_correct else 0.0
    else:
        mastery = min(100.0, math.log(stability) / math.log(MASTERY_HORIZON_DAYS) * 100.0)
        if was_correct and mastery < EARLY_CORRECT_MASTERY_FLOOR:
            mastery = EARLY_CORRECT_MASTERY_FLOOR

    mastery *= 1.0 - difficulty * DIFFICULTY_MASTERY_PENALTY
    return clamp(mastery, 0.0, 100.0)


class MemoryStateUpdater:
    """
    Applies review outcomes to study items.

    Stateless apart from its configuration; every method returns new values
    and leaves its inputs untouched.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self._check_config()

    def _check_config(self) -> None:
        cfg = self.config
        if not finite_or(cfg.stability_cap_days, 0.0) > 0:
            raise ConfigurationError(
                f"stability_cap_days must be positive, got {cfg.stability_cap_days}"
            )
        if not finite_or(cfg.default_stability_days, 0.0) > 0:
            raise ConfigurationError(
                f"default_stability_days must be positive, got {cfg.default_stability_days}"
            )
        if not 0 < finite_or(cfg.failure_decay, 0.0) <= 1:
            raise ConfigurationError(f"failure_decay must be in (0, 1], got {cfg.failure_decay}")

    def update(
        self,
        item: StudyItem,
        was_correct: bool,
        rating: int,
        response_time_sec: float,
        now: datetime | None = None,
    ) -> ReviewOutcome:
        """
        Compute the memory state after one review of ``item``.

        Args:
            item: The item as it was before the review.
            was_correct: Whether the answer was correct.
            rating: Self-evaluation, 0=again 1=hard 2=good 3=easy.
            response_time_sec: Seconds taken to answer.
            now: Review time; defaults to the current UTC time.

        Returns:
            ReviewOutcome with the new stability, difficulty, mastery and due date.

        Raises:
            ValueError: If rating is outside 0-3.
        """
        if rating not in (0, 1, 2, 3):
            raise ValueError(f"rating must be 0-3, got {rating!r}")
        rating = Rating(rating)
        now = now or utcnow()
        cfg = self.config

        current_s, current_d = self._sanitized_state(item)
        current_r = compute_retrievability(current_s, item.last_reviewed_at, now)
        response_time = max(0.0, finite_or(response_time_sec, cfg.expected_response_sec))

        if not was_correct:
            new_d = min(1.0, current_d + DIFFICULTY_FAIL_STEP)
            new_s = max(MIN_STABILITY_DAYS, current_s * cfg.failure_decay)
        else:
            new_d = current_d
            if rating == Rating.EASY:
                new_d = max(DIFFICULTY_EASY_FLOOR, current_d - DIFFICULTY_EASY_STEP)
            elif rating == Rating.HARD:
                new_d = min(1.0, current_d + DIFFICULTY_HARD_STEP)

            gain = (
                cfg.alpha_for(rating)
                * (1 + (1 - current_r) * RETRIEVABILITY_GAIN_WEIGHT)
                * (1 + (1 - current_d))
            )
            time_bonus = 1.0
            if response_time < cfg.expected_response_sec * cfg.time_bonus_threshold:
                time_bonus = 1.0 + cfg.time_bonus
            new_s = current_s * (1 + gain * time_bonus)

        new_s = min(new_s, cfg.stability_cap_days)
        new_d = clamp(new_d, 0.0, 1.0)
        mastery = mastery_from_stability(new_s, new_d, was_correct)

        return ReviewOutcome(
            stability=new_s,
            difficulty=new_d,
            mastery_score=mastery,
            next_review_at=now + timedelta(days=new_s),
            last_reviewed_at=now,
            timing_class=classify_timing(response_time),
            was_correct=was_correct,
            rating=rating,
        )

    def apply_review(
        self,
        item: StudyItem,
        was_correct: bool,
        rating: int,
        response_time_sec: float,
        now: datetime | None = None,
    ) -> StudyItem:
        """
        Run ``update`` and return a new item carrying the outcome.

        The attempt is appended to the history and ``total_attempts`` is
        realigned with the history length.
        """
        outcome = self.update(item, was_correct, rating, response_time_sec, now)
        attempt = Attempt(
            timestamp=outcome.last_reviewed_at,
            was_correct=was_correct,
            rating=int(outcome.rating),
            response_time_sec=max(0.0, finite_or(response_time_sec, 0.0)),
            mastery_after=outcome.mastery_score,
            stability_after=outcome.stability,
            difficulty_after=outcome.difficulty,
            timing_class=outcome.timing_class,
        )
        history = [*item.attempt_history, attempt]

        return replace(
            item,
            stability=outcome.stability,
            difficulty=outcome.difficulty,
            mastery_score=outcome.mastery_score,
            next_review_at=outcome.next_review_at,
            last_reviewed_at=outcome.last_reviewed_at,
            last_was_correct=was_correct,
            last_rating=int(outcome.rating),
            correct_streak=item.correct_streak + 1 if was_correct else 0,
            lapses=item.lapses if was_correct else item.lapses + 1,
            total_attempts=len(history),
            attempt_history=history,
        )

    def process_session(
        self,
        items: list[StudyItem],
        answers: list[SessionAnswer],
        now: datetime | None = None,
    ) -> list[StudyItem]:
        """
        Apply a session's answers in order and return the updated items.

        Answers for unknown item ids are ignored. Several answers for the same
        item are applied sequentially on top of each other.
        """
        by_id = {item.id: item for item in items}
        touched: list[str] = []

        for answer in answers:
            current = by_id.get(answer.item_id)
            if current is None:
                logger.debug(f"Ignoring answer for unknown item {answer.item_id}")
                continue
            by_id[answer.item_id] = self.apply_review(
                current, answer.was_correct, answer.rating, answer.response_time_sec, now
            )
            if answer.item_id not in touched:
                touched.append(answer.item_id)

        return [by_id[item_id] for item_id in touched]

    def reset_progress(self, item: StudyItem) -> StudyItem:
        """Return the item with all progress fields back to the new-item state, unscheduled."""
        return replace(
            item,
            stability=self.config.default_stability_days,
            difficulty=DEFAULT_DIFFICULTY,
            mastery_score=0.0,
            total_attempts=0,
            last_was_correct=False,
            last_rating=None,
            correct_streak=0,
            lapses=0,
            next_review_at=None,
            last_reviewed_at=None,
            attempt_history=[],
        )

    def _sanitized_state(self, item: StudyItem) -> tuple[float, float]:
        """
        Stability and difficulty with malformed values repaired.

        A corrupted item must not push NaN or negative values into its
        successors, so bad input falls back to defaults.
        """
        s = finite_or(item.stability, self.config.default_stability_days)
        if s <= 0:
            s = self.config.default_stability_days
        d = finite_or(item.difficulty, DEFAULT_DIFFICULTY)
        if (s, d) != (item.stability, item.difficulty):
            logger.debug(
                f"Repaired memory state of {item.id}: "
                f"stability {item.stability} -> {s}, difficulty {item.difficulty} -> {d}"
            )
        return s, clamp(d, 0.0, 1.0)
