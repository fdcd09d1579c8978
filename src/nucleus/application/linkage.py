"""
Linkage resolver for attaching study items to content units.

Imported data across format versions populates different subsets of the
link fields (``unit_ref``, ``legacy_ref``, tags, or the identifier itself).
Resolution walks an ordered list of strategies and stops at the first one
that yields a key.
"""

import re
import unicodedata
from collections.abc import Callable, Iterable

from nucleus.application.utils.text import content_fingerprint
from nucleus.domain.constants import (
    GENERATED_ID_PREFIXES,
    MIN_TAG_KEY_LENGTH,
    RESERVED_TAGS,
    TRAIL_PREFIX,
)
from nucleus.domain.models import ContentUnit, StudyItem

_ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")

KeyStrategy = Callable[[StudyItem], str | None]


def canonicalize(ref: str | None) -> str:
    """
    Canonicalize a free-form content-unit reference.

    Trims, strips zero-width characters, applies NFKC and lowercases. Keys in
    the trail namespace (``TRILHA_...``) are case-sensitive and only trimmed.
    Idempotent: ``canonicalize(canonicalize(x)) == canonicalize(x)``.
    """
    if not ref:
        return ""
    trimmed = str(ref).strip()
    if trimmed.upper().startswith(TRAIL_PREFIX):
        return trimmed
    out = unicodedata.normalize("NFKC", trimmed)
    out = _ZERO_WIDTH_RE.sub("", out)
    return out.strip().lower()


def _canonical_or_none(value: str | None) -> str | None:
    if not value or not isinstance(value, str):
        return None
    return canonicalize(value) or None


def _from_unit_ref(item: StudyItem) -> str | None:
    return _canonical_or_none(item.unit_ref)


def _from_legacy_ref(item: StudyItem) -> str | None:
    return _canonical_or_none(item.legacy_ref)


def _from_tags(item: StudyItem) -> str | None:
    for tag in item.tags or []:
        if not isinstance(tag, str):
            continue
        canon = canonicalize(tag)
        if canon in RESERVED_TAGS or len(tag) < MIN_TAG_KEY_LENGTH:
            continue
        if canon:
            return canon
    return None


def _from_identifier(item: StudyItem) -> str | None:
    if not item.id or item.id.startswith(GENERATED_ID_PREFIXES):
        return None
    return _canonical_or_none(item.id)


# Precedence order matters: first strategy returning a key wins.
RESOLUTION_STRATEGIES: tuple[KeyStrategy, ...] = (
    _from_unit_ref,
    _from_legacy_ref,
    _from_tags,
    _from_identifier,
)


def resolve(item: StudyItem) -> str:
    """
    Derive the canonical key of the content unit an item belongs to.

    Returns:
        The canonical key, or "" when the item is unlinked. An empty result
        is not an error; unlinked items simply stay out of per-unit views.
    """
    for strategy in RESOLUTION_STRATEGIES:
        key = strategy(item)
        if key:
            return key
    return ""


def unit_key(unit: ContentUnit) -> str:
    return canonicalize(unit.key)


def is_linked(item: StudyItem, canonical_key: str) -> bool:
    """
    Check whether an item belongs to the unit with the given canonical key.

    Any of the resolved key, a tag, the legacy link or the explicit link
    matching is enough, so content linked only through a secondary field
    is never dropped.
    """
    if not canonical_key:
        return False
    if resolve(item) == canonical_key:
        return True
    if any(canonicalize(t) == canonical_key for t in item.tags or [] if isinstance(t, str)):
        return True
    if item.legacy_ref and canonicalize(item.legacy_ref) == canonical_key:
        return True
    if item.unit_ref and canonicalize(item.unit_ref) == canonical_key:
        return True
    return False


def linked_items(unit: ContentUnit, items: Iterable[StudyItem]) -> list[StudyItem]:
    """All items linked to the unit, in collection order."""
    key = unit_key(unit)
    if not key:
        return []
    return [item for item in items if is_linked(item, key)]


def fingerprint(item: StudyItem) -> str:
    """
    Content fingerprint of an item: normalized owner key + primary text.

    The owner key comes from the explicit link fields only, so two copies of
    the same content hash equally regardless of their identifiers.
    """
    owner = item.unit_ref or item.legacy_ref or ""
    return content_fingerprint(owner, item.primary_text)
