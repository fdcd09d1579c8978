# Domain Package
from .errors import (
    ConfigurationError,
    ItemNotFoundError,
    NucleusError,
    StoreFormatError,
    UnitNotFoundError,
)
from .models import Attempt, ContentUnit, ItemKind, Rating, StudyItem, TimingClass
from .ports import StudyRepository

__all__ = [
    "Attempt",
    "ContentUnit",
    "ItemKind",
    "Rating",
    "StudyItem",
    "TimingClass",
    "StudyRepository",
    "NucleusError",
    "ConfigurationError",
    "ItemNotFoundError",
    "UnitNotFoundError",
    "StoreFormatError",
]
