"""
Progress Service — Application layer orchestrator for read-side views.

Loads the collections through the repository, hides soft-deleted items once
at the boundary and hands the live data to the pure calculators.
"""

import logging

from nucleus.application.activity_engine import UnitActivitySummary, analyze_unit
from nucleus.application.collection import visible
from nucleus.application.linkage import canonicalize
from nucleus.domain.errors import UnitNotFoundError
from nucleus.domain.models import ContentUnit, ItemKind, StudyItem
from nucleus.domain.ports import StudyRepository

from .metrics_calculator import AggregateStats, EnrichedItemStats, MetricsCalculator
from .progress import SmartStatus, nucleus_status

logger = logging.getLogger(__name__)


class ProgressService:
    """
    Application service for per-unit and collection-wide progress.

    Depends on the StudyRepository abstraction, not a concrete store.
    """

    def __init__(
        self,
        repo: StudyRepository,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            repo: The repository (port) holding units and items.
            calculator: Optional calculator; pin its ``now`` for reproducible reads.
        """
        self._repo = repo
        self._calc = calculator or MetricsCalculator()

    def _items(self) -> list[StudyItem]:
        return visible(self._repo.load_items())

    def _find_unit(self, key: str) -> ContentUnit:
        canon = canonicalize(key)
        for unit in self._repo.load_units():
            if canonicalize(unit.key) == canon:
                return unit
        raise UnitNotFoundError(key)

    def unit_status(self, key: str) -> SmartStatus:
        """
        Smart status of a single content unit.

        Raises:
            UnitNotFoundError: If no unit has the given key.
        """
        return nucleus_status(self._find_unit(key), self._items(), self._calc)

    def unit_activity(self, key: str) -> UnitActivitySummary:
        """Activity states and recommendation for a single content unit."""
        return analyze_unit(self._find_unit(key), self._items(), self._calc)

    def overview(self) -> list[UnitActivitySummary]:
        """Summaries of every unit, in stored order."""
        items = self._items()
        units = self._repo.load_units()
        logger.debug(f"Building overview of {len(units)} units over {len(items)} items")
        return [analyze_unit(unit, items, self._calc) for unit in units]

    def aggregate(self, kind: ItemKind | None = None) -> AggregateStats:
        """Collection-wide aggregates, optionally restricted to one item kind."""
        items = self._items()
        if kind is not None:
            items = [item for item in items if item.kind == kind]
        return self._calc.aggregate(items)

    def reinforcement_queue(self, limit: int = 20) -> list[EnrichedItemStats]:
        """
        Attempted items ordered by reinforcement priority, highest first.

        Args:
            limit: Maximum number of entries to return.
        """
        attempted = [item for item in self._items() if item.total_attempts > 0]
        attempted.sort(key=self._calc.reinforcement_priority, reverse=True)
        return [self._calc.enrich(item) for item in attempted[: max(0, limit)]]
