from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from agents.base import BaseAgent
from agents.llm_runtime import PLAN_TOOL_NAME, LLMRuntime, ToolSpec
from models.schemas import (
    CrewRole,
    Equipment,
    Level,
    PatientProfile,
    SeatClass,
    ServiceCategory,
    TransportMode,
    TransportPlan,
)
from pricing.rate_table import RateTable, default_rate_table

logger = logging.getLogger(__name__)

PLAN_TOOL = ToolSpec(
    name=PLAN_TOOL_NAME,
    description="Return the transport plan for this patient and distance.",
    parameters={
        "type": "object",
        "properties": {
            "category": {"type": "string", "enum": [c.value for c in ServiceCategory]},
            "cremated": {"type": "boolean"},
            "risk": {"type": "string", "enum": [lv.value for lv in Level]},
            "transport_mode": {"type": "string", "enum": [m.value for m in TransportMode]},
            "seat_class": {"type": "string", "enum": [s.value for s in SeatClass]},
            "crew": {"type": "array", "items": {"type": "string", "enum": [r.value for r in CrewRole]}},
            "equipment": {
                "type": "object",
                "properties": {"ventilator": {"type": "boolean"}, "ecmo": {"type": "boolean"}},
                "required": ["ventilator", "ecmo"],
            },
            "medication_level": {"type": "string", "enum": [lv.value for lv in Level]},
            "notes": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["risk", "transport_mode", "seat_class", "crew", "equipment", "medication_level", "notes"],
    },
)

SYSTEM_PROMPT = (
    "You are a flight-medicine and patient-transfer planning specialist. Judge the patient's severity and choose "
    "the transport mode, seat type, accompanying crew, equipment and medication level. Use a coffin seat only for "
    "deceased transport. Reply only by calling the tool."
)

MODE_ALIASES: Dict[str, TransportMode] = {
    "civil": TransportMode.CIVIL,
    "commercial": TransportMode.CIVIL,
    "commercial flight": TransportMode.CIVIL,
    "scheduled flight": TransportMode.CIVIL,
    "airline": TransportMode.CIVIL,
    "민항기": TransportMode.CIVIL,
    "airambulance": TransportMode.AIR_AMBULANCE,
    "air ambulance": TransportMode.AIR_AMBULANCE,
    "air-ambulance": TransportMode.AIR_AMBULANCE,
    "에어앰뷸런스": TransportMode.AIR_AMBULANCE,
    "charter": TransportMode.CHARTER,
    "charter flight": TransportMode.CHARTER,
    "전세기": TransportMode.CHARTER,
    "ship": TransportMode.SHIP,
    "sea": TransportMode.SHIP,
    "ferry": TransportMode.SHIP,
    "선박": TransportMode.SHIP,
}


class PlanSchemaError(ValueError):
    pass


def default_plan() -> TransportPlan:
    return TransportPlan(
        category=ServiceCategory.AIR_TRANSPORT,
        cremated=False,
        risk=Level.MEDIUM,
        transport_mode=TransportMode.CIVIL,
        seat_class=SeatClass.STRETCHER,
        crew=[CrewRole.DOCTOR, CrewRole.NURSE],
        equipment=Equipment(ventilator=True, ecmo=False),
        medication_level=Level.MEDIUM,
        notes=["A standard escorted transfer was assumed; a coordinator will confirm the plan after medical review."],
    )


def parse_transport_mode(label: str) -> Optional[TransportMode]:
    key = " ".join((label or "").strip().lower().split())
    if key in MODE_ALIASES:
        return MODE_ALIASES[key]
    try:
        return TransportMode(label.strip())
    except ValueError:
        return None


class PlanningAgent(BaseAgent):
    def __init__(self, llm: LLMRuntime | None = None, rate_table: RateTable | None = None) -> None:
        super().__init__(name="planning_agent")
        self.llm = llm or LLMRuntime()
        self.rate_table = rate_table or default_rate_table()

    async def derive_plan(
        self,
        patient: PatientProfile,
        distance_km: float,
        category: ServiceCategory | None = None,
        cremated: bool | None = None,
    ) -> TransportPlan:
        facts = patient.known_fields()
        result = await self.llm.invoke_tool(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=(
                f"Diagnosis: {facts['diagnosis']} / Consciousness: {facts['consciousness']} / "
                f"Mobility: {facts['mobility']} / Distance: {round(distance_km)} km"
            ),
            tool=PLAN_TOOL,
            context={
                "patient": facts,
                "distance_km": round(distance_km),
                "category": category.value if category else None,
                "cremated": cremated,
            },
        )
        try:
            plan = self.validate(result.arguments, category)
        except PlanSchemaError as exc:
            logger.warning("plan_schema_invalid", extra={"provider": result.provider, "error": str(exc)})
            plan = default_plan()
        return self.apply_category(plan, category, cremated)

    def validate(self, arguments: Any, category: ServiceCategory | None = None) -> TransportPlan:
        if not isinstance(arguments, dict):
            raise PlanSchemaError("plan is not an object")
        raw = dict(arguments)
        if category is not None:
            raw["category"] = category.value
            if category == ServiceCategory.DECEASED_TRANSPORT:
                raw["seat_class"] = SeatClass.COFFIN.value
            elif raw.get("seat_class") == SeatClass.COFFIN.value:
                raw["seat_class"] = SeatClass.STRETCHER.value
        try:
            plan = TransportPlan.model_validate(raw)
        except ValidationError as exc:
            raise PlanSchemaError(str(exc)) from exc
        if not plan.crew and self.rate_table.requires_crew(plan.category):
            raise PlanSchemaError(f"{plan.category.value} plan requires at least one crew member")
        return plan

    def apply_category(
        self,
        plan: TransportPlan,
        category: ServiceCategory | None,
        cremated: bool | None,
    ) -> TransportPlan:
        category = category or plan.category
        if category == ServiceCategory.DECEASED_TRANSPORT:
            return plan.model_copy(
                update={
                    "category": category,
                    "seat_class": SeatClass.COFFIN,
                    "cremated": plan.cremated if cremated is None else cremated,
                }
            )
        seat = SeatClass.STRETCHER if plan.seat_class == SeatClass.COFFIN else plan.seat_class
        return plan.model_copy(update={"category": category, "seat_class": seat, "cremated": False})

    def derive_scenarios(self, baseline: TransportPlan, scenarios: List[str]) -> List[Tuple[str, TransportPlan]]:
        """One plan per requested transport mode; crew, equipment and risk stay as in ``baseline``."""
        variants: List[Tuple[str, TransportPlan]] = []
        seen: List[TransportMode] = []
        for label in scenarios:
            mode = parse_transport_mode(label)
            if mode is None:
                logger.info("scenario_ignored", extra={"scenario": label})
                continue
            if mode in seen:
                continue
            seen.append(mode)
            variants.append((mode.value, baseline.model_copy(update={"transport_mode": mode})))
        return variants or [(baseline.transport_mode.value, baseline)]
