"""
Metrics calculator for deriving point-in-time insights from item state.

This is a pure computation module with no I/O. Nothing here mutates the
items it reads.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from nucleus.application.utils.numeric import clamp, finite_or
from nucleus.domain.constants import (
    GOLD_WINDOW_HOURS,
    PRIORITY_DUE_BOOST,
    PRIORITY_MAX_LATENESS,
    PRIORITY_RECENT_ERROR,
    SECONDS_PER_DAY,
    URGENCY_ALERT_BELOW,
    URGENCY_CRITICAL_BELOW,
)
from nucleus.domain.models import StudyItem


class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    ALERT = "ALERT"
    STABLE = "STABLE"


@dataclass(frozen=True)
class AggregateStats:
    """
    Summary over a set of items.

    Averages only cover attempted items, so untouched content does not
    drag achieved mastery toward zero.
    """

    total: int
    attempted_count: int
    avg_mastery: float
    avg_domain: float
    error_count: int


@dataclass
class EnrichedItemStats:
    """
    Item state enriched with computed metrics.
    """

    item_id: str
    ref_code: str
    stability: float
    difficulty: float
    mastery_score: float
    total_attempts: int

    # Computed metrics
    retrievability: float
    domain: float
    urgency: Urgency
    error_rate: float | None  # lapses / attempts
    days_overdue: float | None  # Negative if not yet due


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def compute_retrievability(
    stability: float, last_reviewed_at: datetime | None, now: datetime
) -> float:
    """
    Probability of recall after an exponential decay since the last review.

    R = exp(-t/S) where t = days since last review, S = stability.
    Never-reviewed items have R = 0. Malformed stability falls back to one day.
    """
    if last_reviewed_at is None:
        return 0.0
    s = finite_or(stability, 1.0)
    if s <= 0:
        s = 1.0
    elapsed = max(0.0, days_between(last_reviewed_at, now))
    return clamp(math.exp(-elapsed / s), 0.0, 1.0)


def safe_mastery(item: StudyItem) -> float:
    return clamp(finite_or(item.mastery_score, 0.0), 0.0, 100.0)


class MetricsCalculator:
    """
    Computes derived metrics (retrievability, domain, urgency) from items.

    Stateless and side-effect free. ``now`` may be pinned for reproducible
    reads; otherwise the current UTC time is used on every call.
    """

    def __init__(self, now: datetime | None = None):
        self._now = now

    def now(self) -> datetime:
        return self._now or utcnow()

    def retrievability(self, item: StudyItem) -> float:
        """Current recall probability in [0, 1]; 0 for never-reviewed items."""
        return compute_retrievability(item.stability, item.last_reviewed_at, self.now())

    def current_domain(self, item: StudyItem) -> float:
        """
        What is recallable right now: mastery discounted by retrievability.

        Mastery is the ceiling the model believes the learner can reach;
        domain decays between reviews and never exceeds mastery.
        """
        if not item.total_attempts:
            return 0.0
        return safe_mastery(item) * self.retrievability(item)

    def aggregate(self, items: Iterable[StudyItem]) -> AggregateStats:
        total = 0
        attempted = 0
        mastery_sum = 0.0
        domain_sum = 0.0
        errors = 0

        for item in items:
            total += 1
            if item.total_attempts > 0:
                attempted += 1
                mastery_sum += safe_mastery(item)
                domain_sum += self.current_domain(item)
                if not item.last_was_correct:
                    errors += 1

        return AggregateStats(
            total=total,
            attempted_count=attempted,
            avg_mastery=mastery_sum / attempted if attempted else 0.0,
            avg_domain=domain_sum / attempted if attempted else 0.0,
            error_count=errors,
        )

    def urgency(self, item: StudyItem) -> Urgency:
        r = self.retrievability(item)
        if r < URGENCY_CRITICAL_BELOW:
            return Urgency.CRITICAL
        if r < URGENCY_ALERT_BELOW:
            return Urgency.ALERT
        return Urgency.STABLE

    def days_overdue(self, item: StudyItem) -> float | None:
        """Days past the due time (negative if not yet due), None if unscheduled."""
        if item.next_review_at is None:
            return None
        return days_between(item.next_review_at, self.now())

    def is_gold_window(self, item: StudyItem) -> bool:
        """True when the item is due within +/- 12 hours of now."""
        if item.next_review_at is None:
            return False
        window = timedelta(hours=GOLD_WINDOW_HOURS)
        return abs(self.now() - item.next_review_at) <= window

    def reinforcement_priority(self, item: StudyItem) -> float:
        """
        Sorting score for reinforcement; higher means show again sooner.

        Overdue items dominate, then low domain, low mastery and a wrong
        last answer push the score up.
        """
        score = 0.0
        overdue = self.days_overdue(item)
        if overdue is not None and overdue >= 0:
            score += PRIORITY_DUE_BOOST
            score += min(PRIORITY_MAX_LATENESS, overdue)

        score += (100.0 - self.current_domain(item)) * 2
        score += 100.0 - safe_mastery(item)

        if item.total_attempts > 0 and not item.last_was_correct:
            score += PRIORITY_RECENT_ERROR

        return score

    def enrich(self, item: StudyItem) -> EnrichedItemStats:
        """
        Enrich an item's stored state with computed metrics.
        """
        return EnrichedItemStats(
            item_id=item.id,
            ref_code=item.ref_code,
            stability=item.stability,
            difficulty=item.difficulty,
            mastery_score=safe_mastery(item),
            total_attempts=item.total_attempts,
            retrievability=self.retrievability(item),
            domain=self.current_domain(item),
            urgency=self.urgency(item),
            error_rate=self._compute_error_rate(item),
            days_overdue=self.days_overdue(item),
        )

    def _compute_error_rate(self, item: StudyItem) -> float | None:
        """
        Compute error rate as lapses / total attempts.
        """
        if item.total_attempts == 0:
            return None
        return item.lapses / item.total_attempts
