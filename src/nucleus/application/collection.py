"""
Collection-level helpers: visibility, soft deletion and cascade deletes.

Soft-deleted items are tombstones: they keep their audit history and are
hidden by a single predicate applied where collections are read, so the
downstream computations never need to know about deletion.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime

from nucleus.application.linkage import canonicalize, fingerprint, resolve
from nucleus.application.stats.metrics_calculator import utcnow
from nucleus.domain.models import ContentUnit, StudyItem

logger = logging.getLogger(__name__)


@dataclass
class UnitDeletionResult:
    units: list[ContentUnit]
    items: list[StudyItem]
    deleted_item_ids: list[str]


def is_visible(item: StudyItem) -> bool:
    return item.deleted_at is None


def visible(items: Iterable[StudyItem]) -> list[StudyItem]:
    """Filter out soft-deleted items."""
    return [item for item in items if is_visible(item)]


def soft_delete(
    items: list[StudyItem], ids: Iterable[str], now: datetime | None = None
) -> list[StudyItem]:
    """Mark the given items deleted; already-deleted items keep their original timestamp."""
    targets = {i.strip() for i in ids if i}
    stamp = now or utcnow()
    return [
        replace(item, deleted_at=stamp)
        if item.id.strip() in targets and item.deleted_at is None
        else item
        for item in items
    ]


def delete_unit(
    key: str,
    units: list[ContentUnit],
    items: list[StudyItem],
    now: datetime | None = None,
) -> UnitDeletionResult:
    """
    Remove a content unit and soft-delete every item it owns.

    Ownership is the item's resolved key, so items merely tagged with the
    unit (but resolving elsewhere) survive.
    """
    canon = canonicalize(key)
    remaining = [u for u in units if canonicalize(u.key) != canon]
    owned = [item.id for item in items if item.deleted_at is None and resolve(item) == canon]
    updated = soft_delete(items, owned, now)

    logger.info(f"Deleted unit {canon}: {len(owned)} items moved to trash")
    return UnitDeletionResult(units=remaining, items=updated, deleted_item_ids=owned)


def remove_duplicates(items: list[StudyItem]) -> tuple[list[StudyItem], int]:
    """
    Drop later items whose fingerprint was already seen.

    Items with an empty fingerprint are always kept.

    Returns:
        (deduplicated items, number removed)
    """
    seen: set[str] = set()
    kept: list[StudyItem] = []
    removed = 0

    for item in items:
        fp = fingerprint(item)
        if fp and fp in seen:
            removed += 1
            continue
        if fp:
            seen.add(fp)
        kept.append(item)

    if removed:
        logger.info(f"Removed {removed} duplicate items")
    return kept, removed
