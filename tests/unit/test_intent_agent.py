from __future__ import annotations

import asyncio

from agents.intent_agent import IntentAgent
from agents.llm_runtime import LLMResult, LLMRuntime
from models.schemas import IntentType, ServiceCategory


class _CannedLLM:
    def __init__(self, arguments):
        self.arguments = arguments

    async def invoke_tool(self, **kwargs):
        return LLMResult(text="", provider="fake", model="fake", raw={}, arguments=self.arguments)


def test_tool_arguments_are_parsed_into_extraction():
    async def _run():
        agent = IntentAgent(llm=_CannedLLM(
            {
                "intent": "CALCULATE_COST",
                "origin": " Seoul National University Hospital ",
                "destination": "Cho Ray Hospital, Ho Chi Minh City",
                "scenarios": "airAmbulance, civil",
                "days": 4,
                "diagnosis": "pneumonia",
                "mobility": "bedridden",
            }
        ))
        extraction = await agent.classify("quote please")
        assert extraction.intent == IntentType.CALCULATE_COST
        assert extraction.origin == "Seoul National University Hospital"
        assert extraction.scenarios == ["airAmbulance", "civil"]
        assert extraction.days == 4
        assert extraction.patient.diagnosis == "pneumonia"
        assert extraction.patient.mobility == "bedridden"

    asyncio.run(_run())


def test_missing_or_invalid_tool_call_degrades_to_general():
    async def _run():
        for arguments in (None, {"intent": "BOOK_FLIGHT"}, {"intent": "CALCULATE_COST", "days": 0}):
            extraction = await IntentAgent(llm=_CannedLLM(arguments)).classify("hello")
            assert extraction.intent == IntentType.GENERAL
            assert extraction.origin is None

    asyncio.run(_run())


def test_heuristic_extracts_english_route_and_modes():
    async def _run():
        agent = IntentAgent(llm=LLMRuntime(provider="heuristic"))
        extraction = await agent.classify(
            "Please compare an air ambulance and a commercial flight from Seoul to Ho Chi Minh City for 5 days."
        )
        assert extraction.intent == IntentType.CALCULATE_COST
        assert extraction.origin == "Seoul"
        assert extraction.destination == "Ho Chi Minh City"
        assert extraction.scenarios == ["airAmbulance", "civil"]
        assert extraction.days == 5

    asyncio.run(_run())


def test_heuristic_extracts_korean_route():
    async def _run():
        agent = IntentAgent(llm=LLMRuntime(provider="heuristic"))
        extraction = await agent.classify("서울대병원에서 호치민 초레이병원까지 에어앰뷸런스 견적 부탁드립니다")
        assert extraction.intent == IntentType.CALCULATE_COST
        assert extraction.origin == "서울대병원"
        assert extraction.destination == "호치민 초레이병원"
        assert extraction.scenarios == ["airAmbulance"]

    asyncio.run(_run())


def test_heuristic_reuses_route_from_history():
    async def _run():
        agent = IntentAgent(llm=LLMRuntime(provider="heuristic"))
        history = [
            {"role": "user", "content": "We need to move my father from Seoul to Hanoi"},
            {"role": "assistant", "content": "Could you tell me about his condition?"},
        ]
        extraction = await agent.classify("How much by charter?", history)
        assert extraction.intent == IntentType.CALCULATE_COST
        assert (extraction.origin, extraction.destination) == ("Seoul", "Hanoi")
        assert extraction.scenarios == ["charter"]

    asyncio.run(_run())


def test_heuristic_detects_categories_and_explain_requests():
    async def _run():
        agent = IntentAgent(llm=LLMRuntime(provider="heuristic"))
        deceased = await agent.classify("Repatriation of the body, not cremated, from Bangkok to Seoul")
        assert deceased.category == ServiceCategory.DECEASED_TRANSPORT
        assert deceased.cremated is False

        event = await agent.classify("We need medical standby at a marathon for 2 days, what would it cost?")
        assert event.category == ServiceCategory.EVENT_SUPPORT
        assert event.intent == IntentType.CALCULATE_COST

        explain = await agent.classify("What does the cost include?")
        assert explain.intent == IntentType.EXPLAIN_COST

        general = await agent.classify("Do you fly to Japan?")
        assert general.intent == IntentType.GENERAL

    asyncio.run(_run())


def test_heuristic_does_not_read_calendar_dates_as_days():
    async def _run():
        agent = IntentAgent(llm=LLMRuntime(provider="heuristic"))
        dated = await agent.classify("6월 9일 출발, 서울에서 부산까지 견적")
        assert dated.intent == IntentType.CALCULATE_COST
        assert (dated.origin, dated.destination) == ("서울", "부산")
        assert dated.days is None

        stay = await agent.classify("서울에서 부산까지 4일간 견적")
        assert stay.days == 4

    asyncio.run(_run())
