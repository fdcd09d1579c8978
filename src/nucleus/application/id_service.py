"""Service for generating study item identifiers."""

from ulid import ULID

from nucleus.application.linkage import canonicalize
from nucleus.domain.constants import TEMP_ID_PREFIX
from nucleus.domain.models import ItemKind

_KIND_PREFIX = {
    ItemKind.QUESTION: "q_",
    ItemKind.GAP: "gap_",
    ItemKind.FLASHCARD: "fc_",
    ItemKind.PAIR: "fc_",
}


def generate_item_id(kind: ItemKind) -> str:
    """Generate a unique item ID using ULID, prefixed by item kind."""
    return f"{_KIND_PREFIX[kind]}{ULID()}"


def make_stable_id(unit_ref: str, kind: ItemKind | str, index: int | str) -> str:
    """
    Deterministic ID of the form ``unit::KIND::NN``.

    Re-importing the same file yields the same identifiers, so the merge
    engine matches records by id instead of duplicating them.
    """
    kind_name = kind.value if isinstance(kind, ItemKind) else str(kind)
    return f"{canonicalize(unit_ref)}::{kind_name.upper()}::{str(index).zfill(2)}"


def has_stable_id(item_id: str | None) -> bool:
    return bool(item_id) and not str(item_id).startswith(TEMP_ID_PREFIX)
