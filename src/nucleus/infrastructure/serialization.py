"""
Conversion between domain records and plain YAML/JSON-friendly dicts.

Timestamps are written as ISO-8601 strings and read back as timezone-aware
datetimes (naive values are taken as UTC). Unknown keys are ignored and
legacy key names from older exports are accepted.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from nucleus.application.utils.numeric import finite_or
from nucleus.domain.constants import DEFAULT_DIFFICULTY
from nucleus.domain.errors import StoreFormatError
from nucleus.domain.models import (
    Attempt,
    ContentUnit,
    ItemKind,
    StudyItem,
    TimingClass,
)

logger = logging.getLogger(__name__)

# Older exports used these names for the same fields.
_LEGACY_KEYS = {
    "litRef": "unit_ref",
    "lawRef": "legacy_ref",
    "questionRef": "ref_code",
    "questionText": "primary_text",
    "front": "primary_text",
    "back": "answer",
    "correctAnswer": "answer",
    "masteryScore": "mastery_score",
    "totalAttempts": "total_attempts",
    "nextReviewDate": "next_review_at",
    "lastReviewedAt": "last_reviewed_at",
    "lastWasCorrect": "last_was_correct",
    "attemptHistory": "attempt_history",
    "deletedAt": "deleted_at",
    "selfEvalLevel": "last_rating",
}

_GRADE_NAMES = ("again", "hard", "good", "easy")


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as e:
            raise StoreFormatError(f"Invalid timestamp {value!r}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def attempt_to_dict(attempt: Attempt) -> dict[str, Any]:
    return {
        "timestamp": format_datetime(attempt.timestamp),
        "was_correct": attempt.was_correct,
        "rating": attempt.rating,
        "response_time_sec": attempt.response_time_sec,
        "mastery_after": attempt.mastery_after,
        "stability_after": attempt.stability_after,
        "difficulty_after": attempt.difficulty_after,
        "timing_class": attempt.timing_class.value,
    }


def attempt_from_dict(data: dict[str, Any]) -> Attempt:
    difficulty_after = data.get("difficulty_after", data.get("difficultyAfter"))
    timing = data.get("timing_class", data.get("timingClass")) or "OK"
    try:
        timing_class = TimingClass(timing)
    except ValueError as exc:
        raise StoreFormatError(f"Unknown timing class {timing!r}") from exc
    return Attempt(
        timestamp=parse_datetime(data.get("timestamp") or data.get("date")),
        was_correct=bool(data.get("was_correct", data.get("wasCorrect", False))),
        rating=_int(data.get("rating", data.get("selfEvalLevel")), 0),
        response_time_sec=finite_or(data.get("response_time_sec", data.get("timeSec")), 0.0),
        mastery_after=finite_or(data.get("mastery_after", data.get("masteryAfter")), 0.0),
        stability_after=finite_or(data.get("stability_after", data.get("stabilityAfter")), 0.0),
        difficulty_after=(
            None if difficulty_after is None else finite_or(difficulty_after, DEFAULT_DIFFICULTY)
        ),
        timing_class=timing_class,
    )


def item_to_dict(item: StudyItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "kind": item.kind.value,
        "ref_code": item.ref_code,
        "primary_text": item.primary_text,
        "answer": item.answer,
        "options": dict(item.options),
        "explanation": item.explanation,
        "subject": item.subject,
        "topic": item.topic,
        "unit_ref": item.unit_ref,
        "legacy_ref": item.legacy_ref,
        "tags": list(item.tags),
        "stability": item.stability,
        "difficulty": item.difficulty,
        "mastery_score": item.mastery_score,
        "total_attempts": item.total_attempts,
        "last_was_correct": item.last_was_correct,
        "last_rating": item.last_rating,
        "correct_streak": item.correct_streak,
        "lapses": item.lapses,
        "next_review_at": format_datetime(item.next_review_at),
        "last_reviewed_at": format_datetime(item.last_reviewed_at),
        "attempt_history": [attempt_to_dict(a) for a in item.attempt_history],
        "deleted_at": format_datetime(item.deleted_at),
    }


def _infer_kind(data: dict[str, Any]) -> ItemKind:
    raw = data.get("kind") or data.get("type")
    if raw:
        try:
            return ItemKind(str(raw).lower())
        except ValueError:
            logger.warning(f"Unknown item kind {raw!r}, treating as question")
            return ItemKind.QUESTION
    if data.get("isGapType"):
        return ItemKind.GAP
    if "pair-match" in (data.get("tags") or []):
        return ItemKind.PAIR
    if "front" in data:
        return ItemKind.FLASHCARD
    return ItemKind.QUESTION


def _int(value: Any, default: int) -> int:
    return int(finite_or(value, default))


def _rating(data: dict[str, Any], normalized: dict[str, Any]) -> int | None:
    """Last self-evaluation (0-3); older exports store it as a grade name."""
    grade = data.get("lastGrade")
    if isinstance(grade, str) and grade.strip().lower() in _GRADE_NAMES:
        return _GRADE_NAMES.index(grade.strip().lower())
    value = normalized.get("last_rating")
    if value is None:
        return None
    rating = _int(value, -1)
    return rating if 0 <= rating < len(_GRADE_NAMES) else None


def item_from_dict(data: dict[str, Any], default_stability: float = 1.0) -> StudyItem:
    """
    Build a study item from a stored or imported record.

    Malformed numbers fall back to their defaults; a record whose structure
    cannot be read at all raises StoreFormatError.
    """
    if not isinstance(data, dict):
        raise StoreFormatError(f"Expected a mapping for a study item, got {type(data).__name__}")
    try:
        return _build_item(data, default_stability)
    except (AttributeError, TypeError, ValueError) as exc:
        raise StoreFormatError(f"Malformed study item {data.get('id')!r}: {exc}") from exc


def _build_item(data: dict[str, Any], default_stability: float) -> StudyItem:
    normalized = {_LEGACY_KEYS.get(k, k): v for k, v in data.items()}
    history = [attempt_from_dict(a) for a in normalized.get("attempt_history") or []]

    def _str(key: str) -> str:
        value = normalized.get(key)
        return "" if value is None else str(value)

    def _opt(key: str) -> str | None:
        value = normalized.get(key)
        return str(value) if value not in (None, "") else None

    stability = finite_or(normalized.get("stability"), default_stability)
    return StudyItem(
        id=_str("id"),
        kind=_infer_kind(data),
        ref_code=_str("ref_code"),
        primary_text=_str("primary_text"),
        answer=_str("answer"),
        options={str(k): str(v) for k, v in (normalized.get("options") or {}).items()},
        explanation=_str("explanation"),
        subject=_str("subject"),
        topic=_str("topic"),
        unit_ref=_opt("unit_ref"),
        legacy_ref=_opt("legacy_ref"),
        tags=[str(t) for t in normalized.get("tags") or []],
        stability=stability if stability > 0 else default_stability,
        difficulty=finite_or(normalized.get("difficulty"), DEFAULT_DIFFICULTY),
        mastery_score=finite_or(normalized.get("mastery_score"), 0.0),
        total_attempts=_int(normalized.get("total_attempts"), 0) or len(history),
        last_was_correct=bool(normalized.get("last_was_correct", False)),
        last_rating=_rating(data, normalized),
        correct_streak=_int(normalized.get("correct_streak"), 0),
        lapses=_int(normalized.get("lapses"), 0),
        next_review_at=parse_datetime(normalized.get("next_review_at")),
        last_reviewed_at=parse_datetime(normalized.get("last_reviewed_at")),
        attempt_history=history,
        deleted_at=parse_datetime(normalized.get("deleted_at")),
    )


def unit_to_dict(unit: ContentUnit) -> dict[str, Any]:
    return {
        "key": unit.key,
        "title": unit.title,
        "reading_done": unit.reading_done,
        "pairs_last_session_errors": unit.pairs_last_session_errors,
        "timed_drill_best_score": unit.timed_drill_best_score,
        "metadata": dict(unit.metadata),
    }


def unit_from_dict(data: dict[str, Any]) -> ContentUnit:
    if not isinstance(data, dict) or not data.get("key"):
        raise StoreFormatError(f"Content unit needs a 'key': {data!r}")
    errors = data.get("pairs_last_session_errors")
    return ContentUnit(
        key=str(data["key"]),
        title=str(data.get("title") or ""),
        reading_done=bool(data.get("reading_done", False)),
        pairs_last_session_errors=int(errors) if errors is not None else None,
        timed_drill_best_score=int(data.get("timed_drill_best_score") or 0),
        metadata=dict(data.get("metadata") or {}),
    )
