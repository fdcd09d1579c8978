"""
Activity-status engine.

Classifies each study activity of a content unit (reading, gaps, questions,
flashcards, pairs, timed drill) as EMPTY / NEVER_DONE / DUE_NOW / TRAIN / OK,
and picks the recommended next activity. States are derived fresh on every
call; nothing is stored, so they cannot drift from the item data.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from nucleus.application.linkage import linked_items
from nucleus.application.stats.metrics_calculator import MetricsCalculator, days_between
from nucleus.application.stats.progress import nucleus_status
from nucleus.domain.constants import (
    CRITICAL_DOMAIN_BELOW,
    CRITICAL_OVERDUE_DAYS,
    FLASHCARD_PASS_RATING,
    FLASHCARDS_ACCURACY_TARGET,
    GAPS_ACCURACY_TARGET,
    PAIRS_MAX_SESSION_ERRORS,
    QUESTIONS_ACCURACY_TARGET,
)
from nucleus.domain.models import ContentUnit, ItemKind, StudyItem

logger = logging.getLogger(__name__)


class ActivityType(str, Enum):
    READING = "READING"
    GAPS = "GAPS"
    QUESTIONS = "QUESTIONS"
    FLASHCARDS = "FLASHCARDS"
    PAIRS = "PAIRS"
    TIMED_DRILL = "TIMED_DRILL"


class ActivityStatus(str, Enum):
    EMPTY = "EMPTY"
    NEVER_DONE = "NEVER_DONE"
    DUE_NOW = "DUE_NOW"
    TRAIN = "TRAIN"
    OK = "OK"


class UnitStatusLabel(str, Enum):
    UP_TO_DATE = "UP_TO_DATE"
    REVIEW = "REVIEW"
    NEW = "NEW"
    PENDING = "PENDING"
    TRAIN = "TRAIN"


# Fixed priority used when several activities were never done.
RECOMMENDATION_ORDER = (
    ActivityType.READING,
    ActivityType.GAPS,
    ActivityType.QUESTIONS,
    ActivityType.FLASHCARDS,
    ActivityType.PAIRS,
)

_ACCURACY_TARGETS = {
    ActivityType.QUESTIONS: QUESTIONS_ACCURACY_TARGET,
    ActivityType.GAPS: GAPS_ACCURACY_TARGET,
    ActivityType.FLASHCARDS: FLASHCARDS_ACCURACY_TARGET,
}


@dataclass
class ActivityState:
    """Derived state of one activity of one content unit."""

    type: ActivityType
    status: ActivityStatus
    total_items: int = 0
    new_count: int = 0
    due_count: int = 0
    train_count: int = 0
    avg_mastery: float = 0.0
    avg_domain: float = 0.0
    accuracy: float = 0.0
    target_met: bool = False
    next_review_at: datetime | None = None

    @property
    def pending_items(self) -> int:
        return self.new_count + self.due_count


@dataclass
class UnitActivitySummary:
    unit_key: str
    activities: dict[ActivityType, ActivityState] = field(default_factory=dict)
    total_pending: int = 0
    max_overdue_days: float = 0.0
    recommended_activity: ActivityType | None = None
    status_label: UnitStatusLabel = UnitStatusLabel.UP_TO_DATE
    is_critical: bool = False
    global_domain: float = 0.0
    global_mastery: float = 0.0
    next_review_label: str = ""


def _item_passed(activity: ActivityType, item: StudyItem) -> bool:
    if item.total_attempts <= 0:
        return False
    if activity in (ActivityType.QUESTIONS, ActivityType.GAPS):
        return item.last_was_correct
    if activity == ActivityType.FLASHCARDS:
        return (item.last_rating or 0) >= FLASHCARD_PASS_RATING
    return True


def reading_state(unit: ContentUnit) -> ActivityState:
    """Reading is a single flag: OK once done, NEVER_DONE before."""
    done = unit.reading_done
    return ActivityState(
        type=ActivityType.READING,
        status=ActivityStatus.OK if done else ActivityStatus.NEVER_DONE,
        total_items=1,
        new_count=0 if done else 1,
        avg_mastery=100.0 if done else 0.0,
        avg_domain=100.0 if done else 0.0,
        accuracy=1.0 if done else 0.0,
        target_met=done,
    )


def compute_activity_state(
    activity: ActivityType,
    items: list[StudyItem],
    unit: ContentUnit,
    calculator: MetricsCalculator | None = None,
) -> ActivityState:
    """
    Evaluate the state machine for one activity.

    EMPTY with no items; NEVER_DONE if any item was never attempted; DUE_NOW
    if an attempted item is due; TRAIN while the completion target is unmet;
    OK otherwise.
    """
    if activity == ActivityType.READING:
        return reading_state(unit)

    if not items:
        return ActivityState(type=activity, status=ActivityStatus.EMPTY)

    calc = calculator or MetricsCalculator()
    now = calc.now()
    agg = calc.aggregate(items)

    new_count = 0
    due_count = 0
    passed = 0
    next_review: datetime | None = None

    for item in items:
        if item.total_attempts <= 0:
            new_count += 1
        elif item.next_review_at is not None:
            if item.next_review_at <= now:
                due_count += 1
            if next_review is None or item.next_review_at < next_review:
                next_review = item.next_review_at
        if _item_passed(activity, item):
            passed += 1

    attempted = len(items) - new_count
    accuracy = 0.0
    target_met = False

    if activity in _ACCURACY_TARGETS:
        if attempted > 0:
            accuracy = passed / attempted
            target_met = accuracy >= _ACCURACY_TARGETS[activity]
    elif activity == ActivityType.PAIRS:
        last_errors = unit.pairs_last_session_errors
        all_played = attempted == len(items)
        target_met = (
            all_played and last_errors is not None and last_errors <= PAIRS_MAX_SESSION_ERRORS
        )
        accuracy = 1.0 if target_met else 0.0
    elif activity == ActivityType.TIMED_DRILL:
        target_met = unit.timed_drill_best_score > 0
        accuracy = 1.0 if target_met else 0.0

    if new_count > 0:
        status = ActivityStatus.NEVER_DONE
    elif due_count > 0:
        status = ActivityStatus.DUE_NOW
    elif not target_met:
        status = ActivityStatus.TRAIN
    else:
        status = ActivityStatus.OK

    train_count = 0
    if status == ActivityStatus.TRAIN:
        if activity in (ActivityType.PAIRS, ActivityType.TIMED_DRILL):
            train_count = 1
        else:
            train_count = attempted - passed

    return ActivityState(
        type=activity,
        status=status,
        total_items=len(items),
        new_count=new_count,
        due_count=due_count,
        train_count=train_count,
        avg_mastery=agg.avg_mastery,
        avg_domain=agg.avg_domain,
        accuracy=accuracy,
        target_met=target_met,
        next_review_at=next_review,
    )


def recommend_activity(activities: dict[ActivityType, ActivityState]) -> ActivityType | None:
    """
    Pick the next activity: never-done first (in fixed priority order), then
    the due activity with the most due items, then anything left to train.
    """
    for activity in RECOMMENDATION_ORDER:
        state = activities.get(activity)
        if state and state.status == ActivityStatus.NEVER_DONE:
            return activity

    due = [
        activities[a]
        for a in RECOMMENDATION_ORDER
        if a in activities and activities[a].status == ActivityStatus.DUE_NOW
    ]
    if due:
        # sort is stable: ties keep priority order
        due.sort(key=lambda s: s.due_count, reverse=True)
        return due[0].type

    for activity in RECOMMENDATION_ORDER:
        state = activities.get(activity)
        if state and state.status == ActivityStatus.TRAIN:
            return activity

    return None


def split_by_kind(items: Iterable[StudyItem]) -> dict[ItemKind, list[StudyItem]]:
    groups: dict[ItemKind, list[StudyItem]] = {kind: [] for kind in ItemKind}
    for item in items:
        groups[item.kind].append(item)
    return groups


def analyze_unit(
    unit: ContentUnit,
    items: Iterable[StudyItem],
    calculator: MetricsCalculator | None = None,
) -> UnitActivitySummary:
    """
    Compute every activity state of ``unit`` plus the unit-level summary.

    Args:
        unit: The content unit.
        items: Visible items of the whole collection; linkage is resolved here.
        calculator: Metrics calculator providing ``now``.
    """
    calc = calculator or MetricsCalculator()
    now = calc.now()
    items = list(items)
    groups = split_by_kind(linked_items(unit, items))
    smart = nucleus_status(unit, items, calc)

    questions = groups[ItemKind.QUESTION]
    gaps = groups[ItemKind.GAP]
    activities = {
        ActivityType.READING: reading_state(unit),
        ActivityType.GAPS: compute_activity_state(ActivityType.GAPS, gaps, unit, calc),
        ActivityType.QUESTIONS: compute_activity_state(
            ActivityType.QUESTIONS, questions, unit, calc
        ),
        ActivityType.FLASHCARDS: compute_activity_state(
            ActivityType.FLASHCARDS, groups[ItemKind.FLASHCARD], unit, calc
        ),
        ActivityType.PAIRS: compute_activity_state(
            ActivityType.PAIRS, groups[ItemKind.PAIR], unit, calc
        ),
        ActivityType.TIMED_DRILL: compute_activity_state(
            ActivityType.TIMED_DRILL, questions + gaps, unit, calc
        ),
    }

    # The timed drill reuses questions and gaps, so it is left out of the totals.
    core = [activities[a] for a in RECOMMENDATION_ORDER]
    total_pending = sum(s.pending_items for s in core)

    max_overdue = 0.0
    for kind in (ItemKind.QUESTION, ItemKind.GAP, ItemKind.FLASHCARD, ItemKind.PAIR):
        for item in groups[kind]:
            if item.total_attempts <= 0 or item.next_review_at is None:
                continue
            if item.next_review_at < now:
                max_overdue = max(max_overdue, days_between(item.next_review_at, now))

    if total_pending > 0:
        if max_overdue > 0:
            label = UnitStatusLabel.REVIEW
        elif activities[ActivityType.READING].status == ActivityStatus.NEVER_DONE:
            label = UnitStatusLabel.NEW
        else:
            label = UnitStatusLabel.PENDING
    elif any(s.status == ActivityStatus.TRAIN for s in core):
        label = UnitStatusLabel.TRAIN
    else:
        label = UnitStatusLabel.UP_TO_DATE

    summary = UnitActivitySummary(
        unit_key=unit.key,
        activities=activities,
        total_pending=total_pending,
        max_overdue_days=max_overdue,
        recommended_activity=recommend_activity(activities),
        status_label=label,
        is_critical=max_overdue > CRITICAL_OVERDUE_DAYS
        or (smart.reviewed_items > 0 and smart.domain < CRITICAL_DOMAIN_BELOW),
        global_domain=smart.domain,
        global_mastery=smart.mastery,
        next_review_label=smart.next_review_label,
    )
    logger.debug(
        f"Unit {unit.key}: {label.value}, pending={total_pending}, "
        f"recommended={summary.recommended_activity}"
    )
    return summary
