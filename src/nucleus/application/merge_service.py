"""
Batch merge and deduplication of imported study items.

Each incoming record is matched against the collection by, in order:
1. stable identifier
2. human-readable reference code
3. content fingerprint
The first match wins. What happens next depends on the import mode:
SKIP drops matched records, MERGE fills empty content fields, OVERWRITE
replaces content. Progress fields of an existing item are never touched.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from nucleus.application.id_service import generate_item_id, has_stable_id
from nucleus.application.linkage import fingerprint
from nucleus.application.utils.numeric import finite_or
from nucleus.domain.models import CONTENT_FIELDS, StudyItem

logger = logging.getLogger(__name__)


class ImportMode(str, Enum):
    SKIP = "SKIP"
    MERGE = "MERGE"
    OVERWRITE = "OVERWRITE"


@dataclass
class MergeResult:
    """Outcome of a batch merge."""

    imported: int
    updated: int
    blocked: int
    items: list[StudyItem]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def merge_missing_fields(existing: StudyItem, incoming: StudyItem) -> tuple[StudyItem, bool]:
    """
    Copy content fields that are empty on ``existing`` and set on ``incoming``.

    Returns:
        (merged item, whether anything changed)
    """
    changes: dict[str, Any] = {}
    for name in CONTENT_FIELDS:
        current = getattr(existing, name)
        candidate = getattr(incoming, name)
        if _is_empty(current) and not _is_empty(candidate):
            changes[name] = candidate
    if not changes:
        return existing, False
    return replace(existing, **changes), True


def overwrite_content(existing: StudyItem, incoming: StudyItem) -> StudyItem:
    """
    Take every content field from ``incoming``; identity, kind, progress and
    lifecycle stay with ``existing`` whatever the incoming record carries.
    """
    return replace(existing, **{name: getattr(incoming, name) for name in CONTENT_FIELDS})


class _MatchIndex:
    """Lookup tables over the collection, kept current as records are applied."""

    def __init__(self, items: list[StudyItem]):
        self.by_id: dict[str, int] = {}
        self.by_ref: dict[str, int] = {}
        self.by_fingerprint: dict[str, int] = {}
        for pos, item in enumerate(items):
            self.add(pos, item)

    @staticmethod
    def _keys(item: StudyItem) -> tuple[str, str, str]:
        ref = item.ref_code.strip() if item.ref_code else ""
        return item.id, ref, fingerprint(item)

    def add(self, pos: int, item: StudyItem) -> None:
        item_id, ref, fp = self._keys(item)
        if item_id:
            self.by_id.setdefault(item_id, pos)
        if ref:
            self.by_ref.setdefault(ref, pos)
        if fp:
            self.by_fingerprint.setdefault(fp, pos)

    def refresh(self, pos: int, old: StudyItem, new: StudyItem) -> None:
        # Keys the item no longer carries must stop matching it.
        for table, key in zip(
            (self.by_id, self.by_ref, self.by_fingerprint), self._keys(old)
        ):
            if key and table.get(key) == pos:
                del table[key]
        self.add(pos, new)

    def match_id(self, record: StudyItem) -> int | None:
        if has_stable_id(record.id):
            return self.by_id.get(record.id)
        return None

    def match_ref(self, record: StudyItem) -> int | None:
        ref = record.ref_code.strip() if record.ref_code else ""
        return self.by_ref.get(ref) if ref else None

    def match_fingerprint(self, record: StudyItem) -> int | None:
        fp = fingerprint(record)
        return self.by_fingerprint.get(fp) if fp else None

    def match(self, record: StudyItem) -> int | None:
        for lookup in (self.match_id, self.match_ref, self.match_fingerprint):
            pos = lookup(record)
            if pos is not None:
                return pos
        return None


def _has_identity(record: StudyItem) -> bool:
    """A record needs an id, a ref code or a non-empty fingerprint to be matched later."""
    if has_stable_id(record.id):
        return True
    if record.ref_code and record.ref_code.strip():
        return True
    return bool(fingerprint(record))


def _prepare_new(record: StudyItem, default_stability: float) -> StudyItem:
    item_id = record.id if has_stable_id(record.id) else generate_item_id(record.kind)
    stability = finite_or(record.stability, default_stability)
    if stability <= 0:
        stability = default_stability
    return replace(record, id=item_id, stability=stability)


def merge_batch(
    existing: list[StudyItem],
    incoming: list[StudyItem],
    mode: ImportMode | str = ImportMode.SKIP,
    default_stability: float = 1.0,
) -> MergeResult:
    """
    Reconcile an imported batch against the existing collection.

    Matching runs in tiers: every identifier match is applied first, then
    every reference-code match, then fingerprint matches against the content
    as it stands after the earlier tiers. The outcome does not depend on the
    order of records in the batch, so MERGE and OVERWRITE converge to the
    same collection when re-run, and SKIP never grows it. Records inserted
    earlier in the batch take part in matching for later records.

    Args:
        existing: Current collection (tombstones included, so identifiers stay unique).
        incoming: Freshly parsed records.
        mode: SKIP, MERGE or OVERWRITE.
        default_stability: Stability given to new records lacking a valid one.

    Returns:
        MergeResult with counters and the resulting collection: existing items
        in their original order (updated in place), followed by new ones.
    """
    mode = ImportMode(mode)
    result_items = list(existing)
    imported = updated = blocked = 0

    pending: list[StudyItem] = []
    for record in incoming:
        if _has_identity(record):
            pending.append(record)
        else:
            logger.warning("Blocked a record with no id, ref code or content to identify it")
            blocked += 1

    def apply(pos: int, record: StudyItem) -> None:
        nonlocal updated, blocked
        current = result_items[pos]
        if mode == ImportMode.SKIP:
            blocked += 1
            return
        if mode == ImportMode.MERGE:
            merged, changed = merge_missing_fields(current, record)
            if not changed:
                blocked += 1
                return
        else:
            merged = overwrite_content(current, record)
        result_items[pos] = merged
        index.refresh(pos, current, merged)
        updated += 1

    index = _MatchIndex(result_items)
    for lookup in (index.match_id, index.match_ref):
        unmatched: list[StudyItem] = []
        for record in pending:
            pos = lookup(record)
            if pos is None:
                unmatched.append(record)
            else:
                apply(pos, record)
        pending = unmatched

    # Fingerprints are read from the content the earlier tiers produced.
    index = _MatchIndex(result_items)
    for record in pending:
        pos = index.match(record)
        if pos is None:
            new_item = _prepare_new(record, default_stability)
            result_items.append(new_item)
            index.add(len(result_items) - 1, new_item)
            imported += 1
        else:
            apply(pos, record)

    logger.info(
        f"Batch merge ({mode.value}): {imported} imported, {updated} updated, {blocked} blocked"
    )
    return MergeResult(imported=imported, updated=updated, blocked=blocked, items=result_items)
