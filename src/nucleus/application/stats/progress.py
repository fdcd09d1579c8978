"""
Per-unit progress summary ("smart status").

Resolves every item linked to a content unit and partitions it into
not-started, due-now and scheduled-future, with averages over attempted
items and a next-review label. Always recomputed from the live collection.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from nucleus.application.linkage import linked_items
from nucleus.application.stats.metrics_calculator import MetricsCalculator, safe_mastery
from nucleus.domain.models import ContentUnit, ItemKind, StudyItem

LABEL_NEW = "New"
LABEL_START = "Start"
LABEL_DONE = "Done"


@dataclass
class CategoryCounts:
    questions: int = 0
    gaps: int = 0
    flashcards: int = 0
    pairs: int = 0

    def bump(self, kind: ItemKind) -> None:
        attr = _KIND_ATTR[kind]
        setattr(self, attr, getattr(self, attr) + 1)


_KIND_ATTR = {
    ItemKind.QUESTION: "questions",
    ItemKind.GAP: "gaps",
    ItemKind.FLASHCARD: "flashcards",
    ItemKind.PAIR: "pairs",
}


@dataclass
class SmartStatus:
    """Progress summary of one content unit."""

    unit_key: str
    domain: float = 0.0
    mastery: float = 0.0
    next_review_at: datetime | None = None
    next_review_label: str = LABEL_NEW
    next_due_future: datetime | None = None
    total_items: int = 0
    reviewed_items: int = 0
    overdue_items: int = 0
    total: CategoryCounts = field(default_factory=CategoryCounts)
    pending: CategoryCounts = field(default_factory=CategoryCounts)
    not_started: CategoryCounts = field(default_factory=CategoryCounts)
    pending_items: dict[ItemKind, list[StudyItem]] = field(default_factory=dict)


def format_due_label(due: datetime, now: datetime) -> str:
    local = due.astimezone(now.tzinfo) if now.tzinfo else due
    if local.date() == now.date():
        return f"Today at {local:%H:%M}"
    return f"{local:%d/%m} at {local:%H:%M}"


def nucleus_status(
    unit: ContentUnit,
    items: Iterable[StudyItem],
    calculator: MetricsCalculator | None = None,
) -> SmartStatus:
    """
    Summarize the progress of ``unit`` from the live item collection.

    Args:
        unit: The content unit.
        items: Visible (non-deleted) items; linkage is resolved here.
        calculator: Metrics calculator providing ``now`` and domain values.

    Returns:
        SmartStatus. The label is "New" for a unit without items, the oldest
        overdue time when something is overdue (worst-case staleness), else
        the nearest future due time.
    """
    calc = calculator or MetricsCalculator()
    now = calc.now()
    linked = linked_items(unit, items)
    status = SmartStatus(unit_key=unit.key, total_items=len(linked))
    status.pending_items = {kind: [] for kind in ItemKind}

    if not linked:
        return status

    domain_sum = 0.0
    mastery_sum = 0.0
    oldest_overdue: datetime | None = None
    nearest_future: datetime | None = None

    for item in linked:
        status.total.bump(item.kind)

        if item.total_attempts <= 0:
            status.not_started.bump(item.kind)
            continue

        status.reviewed_items += 1
        domain_sum += calc.current_domain(item)
        mastery_sum += safe_mastery(item)

        due = item.next_review_at
        if due is None:
            continue
        if due <= now:
            status.overdue_items += 1
            status.pending.bump(item.kind)
            status.pending_items[item.kind].append(item)
            if oldest_overdue is None or due < oldest_overdue:
                oldest_overdue = due
        elif nearest_future is None or due < nearest_future:
            nearest_future = due

    if status.reviewed_items:
        status.domain = domain_sum / status.reviewed_items
        status.mastery = mastery_sum / status.reviewed_items

    status.next_due_future = nearest_future
    if oldest_overdue is not None:
        status.next_review_at = oldest_overdue
        status.next_review_label = f"Overdue ({format_due_label(oldest_overdue, now)})"
    elif nearest_future is not None:
        status.next_review_at = nearest_future
        status.next_review_label = format_due_label(nearest_future, now)
    else:
        status.next_review_label = LABEL_DONE if status.reviewed_items else LABEL_START

    for pending in status.pending_items.values():
        pending.sort(key=lambda i: i.next_review_at)

    return status
