from __future__ import annotations

from typing import Dict, List

from agents.base import BaseAgent
from agents.llm_runtime import LLMRuntime
from models.schemas import PatientProfile

SYSTEM_PROMPT = (
    "You are a friendly coordinator for a medical transport company offering air ambulance and escorted "
    "commercial-flight transfers, repatriation of deceased persons, and on-site medical coverage for events. "
    "Answer the question directly and briefly. Never quote prices, unit rates or pricing formulas; offer to "
    "prepare an estimate instead, asking for the departure, destination and patient condition."
)


class GeneralAgent(BaseAgent):
    def __init__(self, llm: LLMRuntime | None = None) -> None:
        super().__init__(name="general_agent")
        self.llm = llm or LLMRuntime()

    async def answer(
        self,
        message: str,
        history: List[Dict[str, str]] | None = None,
        patient: PatientProfile | None = None,
    ) -> str:
        context = {"known_patient_facts": patient.model_dump(exclude_none=True)} if patient else {}
        result = await self.llm.generate(
            system_prompt=SYSTEM_PROMPT,
            user_prompt=message,
            context=context,
            history=history,
        )
        return result.text or "Could you tell me a little more about what you need?"
