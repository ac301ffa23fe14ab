from __future__ import annotations

from typing import Dict, List, Optional

from models.schemas import (
    CostBreakdown,
    RouteInfo,
    QuoteOption,
    SeatClass,
    ServiceCategory,
    TransportMode,
    TransportPlan,
)
from pricing.rate_table import RateTable, default_rate_table

CATEGORY_LABELS: Dict[ServiceCategory, str] = {
    ServiceCategory.AIR_TRANSPORT: "Patient air transport",
    ServiceCategory.DECEASED_TRANSPORT: "Repatriation of remains",
    ServiceCategory.EVENT_SUPPORT: "Event medical coverage",
}

MODE_LABELS: Dict[TransportMode, str] = {
    TransportMode.CIVIL: "Commercial flight",
    TransportMode.AIR_AMBULANCE: "Air ambulance",
    TransportMode.CHARTER: "Charter flight",
    TransportMode.SHIP: "Ship",
}

DISCLAIMER = (
    "> This is a non-binding estimate. The final price depends on the medical review, "
    "airline or operator availability and exchange rates at the time of booking."
)
MISSING_ROUTE_PROMPT = (
    "To prepare an estimate I need both the departure and the destination. "
    "Please share the addresses or facility names, including the city and country."
)
GENERIC_APOLOGY = "Sorry, something went wrong while preparing your answer. Please try again in a moment."


def format_amount(amount: float, currency: str) -> str:
    return f"approx. {round(amount):,} {currency}"


def location_not_found_prompt(place: str) -> str:
    return (
        f"I couldn't find \"{place}\" on the map. "
        "Could you give a more specific address, including the city and country?"
    )


class ResponseComposer:
    """Renders quotes and cost-structure answers as markdown replies."""

    def __init__(self, rate_table: RateTable | None = None) -> None:
        self.rate_table = rate_table or default_rate_table()

    def compose_quote(
        self,
        category: ServiceCategory,
        options: List[QuoteOption],
        days: int,
    ) -> str:
        if not options:
            return GENERIC_APOLOGY
        if len(options) == 1:
            body = self._single(category, options[0], days)
        else:
            body = self._comparison(category, options, days)
        if category != ServiceCategory.EVENT_SUPPORT:
            body = f"{body}\n\n{DISCLAIMER}"
        return body

    def explain_structure(self, category: Optional[ServiceCategory] = None) -> str:
        categories = [category] if category else self.rate_table.categories()
        lines = ["### How an estimate is put together"]
        for cat in categories:
            names = self.rate_table.item_names(cat)
            if not names:
                continue
            lines.append(f"\n**{CATEGORY_LABELS[cat]}**")
            lines.extend(f"- {name}" for name in names)
        lines.append(
            "\nAmounts depend on the route distance, the number of days, the transport mode, and the crew and "
            "equipment the patient needs. Send me the departure, destination and patient condition for a concrete estimate."
        )
        return "\n".join(lines)

    def _summary_lines(self, category: ServiceCategory, plan: TransportPlan, days: int) -> List[str]:
        lines = ["### Transport summary", f"- Service: **{CATEGORY_LABELS[category]}**"]
        if category == ServiceCategory.EVENT_SUPPORT:
            lines.append(f"- Coverage: {days} day(s)")
        else:
            lines.append(f"- Risk: **{plan.risk.value.upper()}**")
        crew = ", ".join(role.value for role in plan.crew) or "none"
        lines.append(f"- Crew: {crew}")
        if category == ServiceCategory.DECEASED_TRANSPORT:
            lines.append(f"- Remains: {'cremated (urn)' if plan.cremated else 'not cremated (coffin)'}")
        if category == ServiceCategory.AIR_TRANSPORT:
            equipment = [name for name, on in (("ventilator", plan.equipment.ventilator), ("ECMO", plan.equipment.ecmo)) if on]
            lines.append(f"- Equipment: {', '.join(equipment + ['basic medical kit'])}")
            lines.append(f"- Medication set: {plan.medication_level.value}")
        return lines

    def _route_lines(self, route: RouteInfo) -> List[str]:
        lines = [
            "### Route",
            f"- Distance: {round(route.distance_km):,} km",
            f"- Estimated travel time: {route.duration_hr:.1f} h",
        ]
        if len(route.legs) > 1:
            lines.extend(["", "|Leg|Distance (km)|Time (h)|", "|---|---|---|"])
            lines.extend(f"|{leg.label}|{round(leg.distance_km):,}|{leg.duration_hr:.1f}|" for leg in route.legs)
        return lines

    def _cost_lines(self, cost: CostBreakdown) -> List[str]:
        lines = ["### Estimated cost", "|Item|Amount|", "|---|---|"]
        lines.extend(f"|{name}|{format_amount(amount, cost.currency)}|" for name, amount in cost.items.items())
        lines.append(f"|**Total**|**{format_amount(cost.total, cost.currency)}**|")
        return lines

    def _single(self, category: ServiceCategory, option: QuoteOption, days: int) -> str:
        plan = option.plan
        lines = self._summary_lines(category, plan, days)
        if category != ServiceCategory.EVENT_SUPPORT:
            seat = "" if plan.seat_class == SeatClass.COFFIN else f" / Seat: **{plan.seat_class.value}**"
            lines.insert(3, f"- Transport: **{MODE_LABELS[plan.transport_mode]}**{seat}")
            lines.append("")
            lines.extend(self._route_lines(option.route))
        lines.append("")
        lines.extend(self._cost_lines(option.cost))
        if plan.notes:
            lines.extend(["", "### Notes"])
            lines.extend(f"- {note}" for note in plan.notes)
        return "\n".join(lines)

    def _comparison(self, category: ServiceCategory, options: List[QuoteOption], days: int) -> str:
        lines = self._summary_lines(category, options[0].plan, days)
        if category != ServiceCategory.EVENT_SUPPORT:
            lines.append(f"- Distance: {round(options[0].route.distance_km):,} km")
        lines.extend(["", "### Options compared"])
        for option in options:
            lines.append(f"- {self.option_label(option)}: {format_amount(option.cost.total, option.cost.currency)}")
        return "\n".join(lines)

    @staticmethod
    def option_label(option: QuoteOption) -> str:
        try:
            return MODE_LABELS[TransportMode(option.label)]
        except ValueError:
            return option.label
