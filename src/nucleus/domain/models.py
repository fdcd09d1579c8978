"""
Domain models for study items and content units.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any


class ItemKind(str, Enum):
    """Variant of a reviewable study item."""

    QUESTION = "question"
    GAP = "gap"
    FLASHCARD = "flashcard"
    PAIR = "pair"


class Rating(IntEnum):
    """Self-evaluation given after a review (0-3)."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3


class TimingClass(str, Enum):
    RUSH = "RUSH"
    OK = "OK"
    SLOW = "SLOW"


@dataclass(frozen=True)
class Attempt:
    """
    A single review of a study item.

    Attempts form an append-only audit log: they are created once per
    review and never mutated or removed.

    Attributes:
        timestamp: When the review happened (timezone-aware).
        was_correct: Whether the learner answered correctly.
        rating: Self-evaluation (0=again, 1=hard, 2=good, 3=easy).
        response_time_sec: Seconds taken to answer.
        mastery_after: Mastery score right after the review.
        stability_after: Stability (days) right after the review.
        difficulty_after: Difficulty right after the review.
        timing_class: RUSH / OK / SLOW, informational only.
    """

    timestamp: datetime
    was_correct: bool
    rating: int
    response_time_sec: float
    mastery_after: float
    stability_after: float
    difficulty_after: float | None = None
    timing_class: TimingClass = TimingClass.OK


@dataclass
class StudyItem:
    """
    A reviewable unit: a question, a cloze gap, a flashcard or a pair card.

    The owning content unit is referenced weakly through ``unit_ref``
    (modern link), ``legacy_ref`` (older imports) or ``tags``; it is
    resolved lazily by the linkage resolver.
    """

    id: str
    kind: ItemKind = ItemKind.QUESTION

    # Content
    ref_code: str = ""  # Human-readable reference, e.g. "Q-0012"
    primary_text: str = ""  # Question text / flashcard front / gap sentence
    answer: str = ""
    options: dict[str, str] = field(default_factory=dict)
    explanation: str = ""
    subject: str = ""
    topic: str = ""
    unit_ref: str | None = None
    legacy_ref: str | None = None
    tags: list[str] = field(default_factory=list)

    # Progress
    stability: float = 1.0  # days
    difficulty: float = 0.5  # 0.0-1.0
    mastery_score: float = 0.0  # 0-100
    total_attempts: int = 0
    last_was_correct: bool = False
    last_rating: int | None = None
    correct_streak: int = 0
    lapses: int = 0
    next_review_at: datetime | None = None
    last_reviewed_at: datetime | None = None
    attempt_history: list[Attempt] = field(default_factory=list)

    # Lifecycle
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


# Fields describing what an item says, as opposed to how well it is known.
CONTENT_FIELDS: tuple[str, ...] = (
    "ref_code",
    "primary_text",
    "answer",
    "options",
    "explanation",
    "subject",
    "topic",
    "unit_ref",
    "legacy_ref",
    "tags",
)

PROGRESS_FIELDS: tuple[str, ...] = (
    "stability",
    "difficulty",
    "mastery_score",
    "total_attempts",
    "last_was_correct",
    "last_rating",
    "correct_streak",
    "lapses",
    "next_review_at",
    "last_reviewed_at",
    "attempt_history",
)


@dataclass
class ContentUnit:
    """
    An anchor (e.g. a legal article or study note) grouping study items.

    The unit does not own item lifetime and keeps no cached list of its
    children; linked items are always recomputed from the live collection.

    Attributes:
        key: Free-form identifier; canonicalized before comparison.
        title: Display title.
        reading_done: Whether the reading activity has been completed.
        pairs_last_session_errors: Error count of the most recent pair-matching
            session, or None if never played.
        timed_drill_best_score: Best score ever recorded in the timed drill.
    """

    key: str
    title: str = ""
    reading_done: bool = False
    pairs_last_session_errors: int | None = None
    timed_drill_best_score: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
