from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import ValidationError

from agents.base import BaseAgent
from agents.llm_runtime import EXTRACTION_TOOL_NAME, LLMRuntime, ToolSpec
from models.schemas import ExtractionResult, IntentType, ServiceCategory, TransportMode

logger = logging.getLogger(__name__)

EXTRACTION_TOOL = ToolSpec(
    name=EXTRACTION_TOOL_NAME,
    description="Classify the user's medical-transport request and extract the slots needed to quote it.",
    parameters={
        "type": "object",
        "properties": {
            "intent": {
                "type": "string",
                "enum": [i.value for i in IntentType],
                "description": (
                    "GENERAL for informational questions, EXPLAIN_COST when the user asks what a quote consists of, "
                    "CALCULATE_COST when the user wants a concrete estimate."
                ),
            },
            "origin": {"type": "string", "description": "Departure address or facility, as written by the user."},
            "destination": {"type": "string", "description": "Destination address or facility, as written by the user."},
            "scenarios": {
                "type": "array",
                "items": {"type": "string", "enum": [m.value for m in TransportMode]},
                "description": "Transport modes the user wants compared or explicitly requested.",
            },
            "category": {"type": "string", "enum": [c.value for c in ServiceCategory]},
            "cremated": {"type": "boolean", "description": "For deceased transport: whether the remains are cremated."},
            "days": {"type": "integer", "minimum": 1},
            "departure_airport": {"type": "string", "description": "IATA code of the departure airport, if stated."},
            "arrival_airport": {"type": "string", "description": "IATA code of the arrival airport, if stated."},
            "diagnosis": {"type": "string"},
            "consciousness": {"type": "string"},
            "mobility": {"type": "string"},
        },
        "required": ["intent"],
    },
)

SYSTEM_PROMPT = (
    "You route requests for a medical transport coordinator that handles air ambulance and escorted patient transfers, "
    "repatriation of deceased persons, and medical coverage for events. Always answer by calling the tool. "
    "Only fill a slot when the user (or earlier turns) stated it; never invent addresses."
)


class IntentExtractionError(ValueError):
    pass


class IntentAgent(BaseAgent):
    def __init__(self, llm: LLMRuntime | None = None) -> None:
        super().__init__(name="intent_agent")
        self.llm = llm or LLMRuntime()

    async def classify(self, message: str, history: List[Dict[str, str]] | None = None) -> ExtractionResult:
        try:
            return await self.extract(message, history or [])
        except IntentExtractionError as exc:
            logger.warning("intent_extraction_failed", extra={"error": str(exc)})
            return ExtractionResult(intent=IntentType.GENERAL)

    async def extract(self, message: str, history: List[Dict[str, str]]) -> ExtractionResult:
        result = await self.llm.invoke_tool(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=message,
            tool=EXTRACTION_TOOL,
            history=history,
        )
        if not isinstance(result.arguments, dict):
            raise IntentExtractionError(f"no tool call in {result.provider} response")
        return self.parse(result.arguments)

    def parse(self, arguments: Dict[str, object]) -> ExtractionResult:
        raw = dict(arguments)
        raw["patient"] = {key: raw.pop(key) for key in ("diagnosis", "consciousness", "mobility") if key in raw}
        scenarios = raw.get("scenarios")
        if isinstance(scenarios, str):
            raw["scenarios"] = scenarios.split(",")
        elif not isinstance(scenarios, list):
            raw["scenarios"] = []
        try:
            return ExtractionResult.model_validate(raw)
        except ValidationError as exc:
            raise IntentExtractionError(str(exc)) from exc
