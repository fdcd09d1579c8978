import os
from datetime import datetime, timedelta, timezone

import pytest

from nucleus.application.config import EngineConfig
from nucleus.application.stats.metrics_calculator import MetricsCalculator
from nucleus.domain.models import ContentUnit, ItemKind, StudyItem
from nucleus.domain.ports import StudyRepository


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the user's config files and NUCLEUS_* variables out of every test."""
    monkeypatch.setattr(
        "nucleus.application.config.CONFIG_FILES",
        [tmp_path / "no-such-config.toml"],
    )
    for name in list(os.environ):
        if name.startswith("NUCLEUS_"):
            monkeypatch.delenv(name)


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def calculator(now):
    return MetricsCalculator(now=now)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def make_item():
    """Factory for study items; keyword arguments override the defaults."""

    def _make(item_id: str = "q_1", **kwargs) -> StudyItem:
        return StudyItem(id=item_id, **kwargs)

    return _make


@pytest.fixture
def reviewed_item(make_item, now):
    """Factory for an item reviewed ``days_ago`` and due ``due_in`` days from now."""

    def _make(
        item_id: str = "q_1",
        days_ago: float = 1.0,
        due_in: float | None = 1.0,
        correct: bool = True,
        **kwargs,
    ) -> StudyItem:
        kwargs.setdefault("mastery_score", 60.0)
        kwargs.setdefault("stability", 5.0)
        kwargs.setdefault("kind", ItemKind.QUESTION)
        return make_item(
            item_id,
            total_attempts=kwargs.pop("total_attempts", 1),
            last_was_correct=correct,
            last_reviewed_at=now - timedelta(days=days_ago),
            next_review_at=now + timedelta(days=due_in) if due_in is not None else None,
            **kwargs,
        )

    return _make


@pytest.fixture
def unit():
    return ContentUnit(key="Art. 5", title="Article 5")


class InMemoryRepository(StudyRepository):
    """StudyRepository keeping collections in lists; records save calls."""

    def __init__(self, units=None, items=None):
        self.units = list(units or [])
        self.items = list(items or [])
        self.saves = 0

    def load_items(self):
        return list(self.items)

    def load_units(self):
        return list(self.units)

    def save_items(self, items):
        self.items = list(items)
        self.saves += 1

    def save_units(self, units):
        self.units = list(units)
        self.saves += 1


@pytest.fixture
def memory_repo():
    return InMemoryRepository()
