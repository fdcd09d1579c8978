"""
YAML-backed storage adapter.

The whole store is one document ``{units: [...], items: [...]}``. Reads
return complete collections; writes replace one collection and leave the
other as stored.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from nucleus.application.id_service import has_stable_id, make_stable_id
from nucleus.domain.errors import StoreFormatError
from nucleus.domain.models import ContentUnit, StudyItem
from nucleus.domain.ports import StudyRepository

from .serialization import item_from_dict, item_to_dict, unit_from_dict, unit_to_dict

logger = logging.getLogger(__name__)


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StoreFormatError(f"Invalid YAML in {path}: {e}") from e


class YamlStudyRepository(StudyRepository):
    """StudyRepository over a single YAML file. A missing file is an empty store."""

    def __init__(self, path: Path | str, default_stability: float = 1.0):
        self.path = Path(path).expanduser()
        self.default_stability = default_stability

    def _load_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"units": [], "items": []}
        data = _read_yaml(self.path) or {}
        if not isinstance(data, dict):
            raise StoreFormatError(f"{self.path}: expected a mapping with 'units' and 'items'")
        for key in ("units", "items"):
            if not isinstance(data.get(key) or [], list):
                raise StoreFormatError(f"{self.path}: '{key}' must be a list")
        return data

    def _write_document(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                data,
                f,
                sort_keys=False,
                allow_unicode=True,
                default_flow_style=False,
            )
        os.replace(tmp, self.path)

    def load_items(self) -> list[StudyItem]:
        raw = self._load_document().get("items") or []
        return [item_from_dict(entry, self.default_stability) for entry in raw]

    def load_units(self) -> list[ContentUnit]:
        raw = self._load_document().get("units") or []
        return [unit_from_dict(entry) for entry in raw]

    def save_items(self, items: list[StudyItem]) -> None:
        data = self._load_document()
        data["items"] = [item_to_dict(item) for item in items]
        self._write_document(data)
        logger.debug(f"Saved {len(items)} items to {self.path}")

    def save_units(self, units: list[ContentUnit]) -> None:
        data = self._load_document()
        data["units"] = [unit_to_dict(unit) for unit in units]
        self._write_document(data)
        logger.debug(f"Saved {len(units)} units to {self.path}")


def load_batch(path: Path | str, default_stability: float = 1.0) -> list[StudyItem]:
    """
    Parse an import file into study items.

    Accepts a YAML (or JSON) list of records, or a mapping holding them under
    ``items``. Records without an id but with a unit link get a stable id
    derived from the unit, kind and position, so re-importing the same file
    matches the same items.

    Raises:
        StoreFormatError: If the file is not a list of mappings.
    """
    path = Path(path).expanduser()
    data = _read_yaml(path)
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise StoreFormatError(f"{path}: expected a list of records or a mapping with 'items'")

    items: list[StudyItem] = []
    for index, entry in enumerate(data, start=1):
        if not isinstance(entry, dict):
            logger.warning(f"{path}: skipping record #{index}, not a mapping")
            continue
        item = item_from_dict(entry, default_stability)
        if not has_stable_id(item.id) and item.unit_ref:
            item.id = make_stable_id(item.unit_ref, item.kind, index)
        items.append(item)

    logger.info(f"Loaded {len(items)} records from {path}")
    return items
