"""nucleus: spaced-repetition scheduling and progress aggregation engine."""

from nucleus.consts import VERSION

__version__ = VERSION
