"""Exception hierarchy for the nucleus engine."""


class NucleusError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(NucleusError):
    """Raised when engine configuration would violate output invariants."""


class ItemNotFoundError(NucleusError):
    def __init__(self, item_id: str):
        super().__init__(f"No study item with id '{item_id}'")
        self.item_id = item_id


class UnitNotFoundError(NucleusError):
    def __init__(self, key: str):
        super().__init__(f"No content unit with key '{key}'")
        self.key = key


class StoreFormatError(NucleusError):
    """Raised when a store or batch file cannot be parsed into records."""
