"""
Study Service — the single write path into the collection.

Every mutation is a read-modify-write of the whole collection through the
repository, serialized by one lock so concurrent callers cannot interleave
and lose updates.
"""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from nucleus.application import collection
from nucleus.application.config import EngineConfig
from nucleus.application.memory import MemoryStateUpdater, SessionAnswer
from nucleus.application.merge_service import ImportMode, MergeResult, merge_batch
from nucleus.application.stats.metrics_calculator import utcnow
from nucleus.domain.errors import ItemNotFoundError
from nucleus.domain.models import StudyItem
from nucleus.domain.ports import StudyRepository

logger = logging.getLogger(__name__)


class StudyService:
    def __init__(self, repo: StudyRepository, config: EngineConfig | None = None):
        self.repo = repo
        self.config = config or EngineConfig()
        self.updater = MemoryStateUpdater(self.config)
        self._lock = threading.Lock()

    def _index_of(self, items: list[StudyItem], item_id: str) -> int:
        for pos, item in enumerate(items):
            if item.id == item_id and collection.is_visible(item):
                return pos
        raise ItemNotFoundError(item_id)

    def record_review(
        self,
        item_id: str,
        was_correct: bool,
        rating: int,
        response_time_sec: float,
        now: datetime | None = None,
    ) -> StudyItem:
        """
        Apply one review to a stored item and persist it.

        Raises:
            ItemNotFoundError: If no visible item has the given id.
            ValueError: If rating is outside 0-3.
        """
        with self._lock:
            items = self.repo.load_items()
            pos = self._index_of(items, item_id)
            updated = self.updater.apply_review(
                items[pos], was_correct, rating, response_time_sec, now
            )
            items[pos] = updated
            self.repo.save_items(items)

        logger.info(
            f"Reviewed {item_id}: correct={was_correct} rating={rating} "
            f"stability={updated.stability:.2f}d mastery={updated.mastery_score:.1f}"
        )
        return updated

    def record_session(
        self, answers: list[SessionAnswer], now: datetime | None = None
    ) -> list[StudyItem]:
        """Apply a whole session of answers in order; unknown ids are skipped."""
        with self._lock:
            items = self.repo.load_items()
            live = collection.visible(items)
            updated = {item.id: item for item in self.updater.process_session(live, answers, now)}
            if updated:
                items = [
                    updated.get(item.id, item) if collection.is_visible(item) else item
                    for item in items
                ]
                self.repo.save_items(items)

        logger.info(f"Session recorded: {len(answers)} answers, {len(updated)} items updated")
        return list(updated.values())

    def import_batch(
        self, records: Iterable[StudyItem], mode: ImportMode | str = ImportMode.SKIP
    ) -> MergeResult:
        """Merge parsed records into the stored collection."""
        with self._lock:
            result = merge_batch(
                self.repo.load_items(),
                list(records),
                mode=mode,
                default_stability=self.config.default_stability_days,
            )
            if result.imported or result.updated:
                self.repo.save_items(result.items)
        return result

    def delete_items(self, ids: Iterable[str], now: datetime | None = None) -> int:
        """Soft-delete items by id. Returns how many were newly deleted."""
        with self._lock:
            items = self.repo.load_items()
            before = sum(1 for item in items if item.deleted_at is not None)
            items = collection.soft_delete(items, ids, now or utcnow())
            deleted = sum(1 for item in items if item.deleted_at is not None) - before
            if deleted:
                self.repo.save_items(items)

        logger.info(f"Moved {deleted} items to trash")
        return deleted

    def delete_unit(self, key: str, now: datetime | None = None) -> collection.UnitDeletionResult:
        """Remove a unit and soft-delete every item it owns."""
        with self._lock:
            result = collection.delete_unit(
                key, self.repo.load_units(), self.repo.load_items(), now or utcnow()
            )
            self.repo.save_units(result.units)
            self.repo.save_items(result.items)
        return result

    def remove_duplicates(self) -> int:
        """Drop later copies of items sharing a content fingerprint."""
        with self._lock:
            kept, removed = collection.remove_duplicates(self.repo.load_items())
            if removed:
                self.repo.save_items(kept)
        return removed

    def reset_progress(self, item_id: str) -> StudyItem:
        """
        Put an item back into the new-item state.

        Raises:
            ItemNotFoundError: If no visible item has the given id.
        """
        with self._lock:
            items = self.repo.load_items()
            pos = self._index_of(items, item_id)
            items[pos] = self.updater.reset_progress(items[pos])
            self.repo.save_items(items)

        logger.info(f"Reset progress of {item_id}")
        return items[pos]
