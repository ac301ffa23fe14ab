from __future__ import annotations

from typing import Dict

from models.schemas import CostBreakdown, Formula, RateItem, RateQualifiers, ServiceCategory, TransportPlan
from pricing.rate_table import DISTANCE_FORMULAS, RateTable, default_rate_table

# Categories priced by fixed bundles; distance-based lines never apply to them.
BUNDLED_CATEGORIES = frozenset({ServiceCategory.DECEASED_TRANSPORT})


class CostEngine:
    """Interprets the rate table against a transport plan.

    Each rate item contributes ``unit_price`` scaled by the inputs its formula
    names and nothing else. Amounts sharing an item name accumulate; the total
    is always the sum of the breakdown.
    """

    def __init__(self, rate_table: RateTable | None = None) -> None:
        self.rate_table = rate_table or default_rate_table()

    def compute_cost(
        self,
        category: ServiceCategory,
        plan: TransportPlan,
        distance_km: float,
        days: int,
    ) -> CostBreakdown:
        category = ServiceCategory(category)
        items: Dict[str, float] = {}
        for rate in self.rate_table.items(category):
            if category in BUNDLED_CATEGORIES and rate.formula in DISTANCE_FORMULAS:
                continue
            if not self.qualifies(rate.qualifiers, plan):
                continue
            amount = self.evaluate(rate, distance_km=distance_km, days=days, crew_count=len(plan.crew))
            items[rate.item] = items.get(rate.item, 0.0) + amount
        return CostBreakdown.from_items(items, currency=self.rate_table.currency)

    @staticmethod
    def evaluate(rate: RateItem, distance_km: float, days: int, crew_count: int) -> float:
        if rate.formula == Formula.FLAT:
            return rate.unit_price
        if rate.formula == Formula.PER_KM:
            return rate.unit_price * distance_km
        if rate.formula == Formula.PER_KM_PER_CREW:
            return rate.unit_price * distance_km * crew_count
        if rate.formula == Formula.PER_DAY:
            return rate.unit_price * days
        if rate.formula == Formula.PER_DAY_PER_CREW:
            return rate.unit_price * days * crew_count
        raise ValueError(f"unsupported formula: {rate.formula}")

    @staticmethod
    def qualifies(qualifiers: RateQualifiers | None, plan: TransportPlan) -> bool:
        if qualifiers is None:
            return True
        if qualifiers.transport_mode is not None and qualifiers.transport_mode != plan.transport_mode:
            return False
        if qualifiers.role is not None and qualifiers.role not in plan.crew:
            return False
        if qualifiers.seat_class is not None and qualifiers.seat_class != plan.seat_class:
            return False
        if qualifiers.equipment is not None and not getattr(plan.equipment, qualifiers.equipment):
            return False
        if qualifiers.medication_level is not None and qualifiers.medication_level != plan.medication_level:
            return False
        if qualifiers.cremated is not None and qualifiers.cremated != plan.cremated:
            return False
        return True
