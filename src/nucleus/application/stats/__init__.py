# Application Stats Package
from .metrics_calculator import AggregateStats, EnrichedItemStats, MetricsCalculator
from .progress import SmartStatus, nucleus_status

__all__ = [
    "MetricsCalculator",
    "AggregateStats",
    "EnrichedItemStats",
    "SmartStatus",
    "nucleus_status",
]
