from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from pydantic import ValidationError

from models.schemas import Formula, RateItem, ServiceCategory
from settings import SETTINGS

DISTANCE_FORMULAS = frozenset({Formula.PER_KM, Formula.PER_KM_PER_CREW})
CREW_FORMULAS = frozenset({Formula.PER_KM_PER_CREW, Formula.PER_DAY_PER_CREW})


class RateTableError(ValueError):
    pass


class RateTable:
    """Read-only mapping of service category to its ordered rate items."""

    def __init__(self, categories: Mapping[ServiceCategory, Iterable[RateItem]], currency: str = "KRW") -> None:
        self.currency = currency
        self._items: Dict[ServiceCategory, Tuple[RateItem, ...]] = {
            ServiceCategory(category): tuple(items) for category, items in categories.items()
        }
        for item in self._items.get(ServiceCategory.EVENT_SUPPORT, ()):
            if item.formula in DISTANCE_FORMULAS:
                raise RateTableError(f"EVENT_SUPPORT item '{item.item}' cannot use {item.formula.value}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateTable":
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, dict):
            raise RateTableError("rate table requires a 'categories' mapping")
        categories: Dict[ServiceCategory, List[RateItem]] = {}
        for raw_category, raw_items in raw_categories.items():
            try:
                category = ServiceCategory(str(raw_category))
            except ValueError as exc:
                raise RateTableError(f"unknown service category: {raw_category}") from exc
            if not isinstance(raw_items, list):
                raise RateTableError(f"items for {raw_category} must be a list")
            try:
                categories[category] = [RateItem.model_validate(raw) for raw in raw_items]
            except ValidationError as exc:
                raise RateTableError(f"invalid rate item under {raw_category}: {exc}") from exc
        return cls(categories, currency=str(data.get("currency") or SETTINGS.default_currency))

    @classmethod
    def load(cls, path: str | Path | None = None) -> "RateTable":
        source = Path(path or SETTINGS.rate_table_path)
        try:
            with source.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise RateTableError(f"cannot read rate table {source}: {exc}") from exc
        return cls.from_dict(data)

    def categories(self) -> List[ServiceCategory]:
        return list(self._items)

    def items(self, category: ServiceCategory) -> Tuple[RateItem, ...]:
        return self._items.get(ServiceCategory(category), ())

    def item_names(self, category: ServiceCategory) -> List[str]:
        names: List[str] = []
        for item in self.items(category):
            if item.item not in names:
                names.append(item.item)
        return names

    def requires_crew(self, category: ServiceCategory) -> bool:
        return any(item.formula in CREW_FORMULAS for item in self.items(category))


_DEFAULT_TABLE: RateTable | None = None


def default_rate_table() -> RateTable:
    global _DEFAULT_TABLE
    if _DEFAULT_TABLE is None:
        _DEFAULT_TABLE = RateTable.load()
    return _DEFAULT_TABLE
