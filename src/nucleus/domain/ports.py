"""
Ports (interfaces) for study data storage.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import ContentUnit, StudyItem


class StudyRepository(ABC):
    """
    Port for loading and persisting the full study collections.

    The engine always works on complete in-memory collections; adapters
    never serve partial or paginated reads.

    Implementations:
        - YamlStudyRepository: A single YAML document on disk.
    """

    @abstractmethod
    def load_items(self) -> list[StudyItem]:
        """
        Load every study item, soft-deleted ones included.

        Returns:
            List of StudyItem in stored order.
        """
        pass

    @abstractmethod
    def load_units(self) -> list[ContentUnit]:
        """Load every content unit."""
        pass

    @abstractmethod
    def save_items(self, items: list[StudyItem]) -> None:
        """
        Persist the given items verbatim, replacing the stored collection.
        """
        pass

    @abstractmethod
    def save_units(self, units: list[ContentUnit]) -> None:
        """Persist the given units, replacing the stored collection."""
        pass
