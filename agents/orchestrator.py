from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Optional

from agents.base import BaseAgent
from agents.general_agent import GeneralAgent
from agents.intent_agent import IntentAgent
from agents.llm_runtime import LLMRuntime
from agents.planning_agent import PlanningAgent
from agents.response_composer import (
    GENERIC_APOLOGY,
    MISSING_ROUTE_PROMPT,
    ResponseComposer,
    location_not_found_prompt,
)
from compliance.audit_logger import AuditLogger
from compliance.disclosure_guard import PRICING_DISCLOSURE_REFUSAL, requests_pricing_internals
from memory.session_memory import SessionMemoryStore
from models.schemas import (
    ChatReply,
    ExtractionResult,
    InboundMessage,
    IntentType,
    QuoteOption,
    RouteInfo,
    ServiceCategory,
    Session,
)
from pricing.cost_engine import CostEngine
from pricing.rate_table import RateTable, default_rate_table
from settings import SETTINGS
from tools.geocoding_tools import NotFoundError
from tools.location_resolver import LocationResolver

logger = logging.getLogger(__name__)


class OrchestratorAgent(BaseAgent):
    """Runs one conversational turn through the quotation pipeline."""

    def __init__(
        self,
        llm: LLMRuntime | None = None,
        session_memory: SessionMemoryStore | None = None,
        location_resolver: LocationResolver | None = None,
        rate_table: RateTable | None = None,
        audit_logger: AuditLogger | None = None,
        default_days: int | None = None,
        history_window: int | None = None,
    ) -> None:
        super().__init__(name="orchestrator_agent", audit_logger=audit_logger)
        self.llm = llm or LLMRuntime()
        self.rate_table = rate_table or default_rate_table()
        self.session_memory = session_memory or SessionMemoryStore()
        self.location_resolver = location_resolver or LocationResolver()
        self.intent_agent = IntentAgent(llm=self.llm)
        self.planning_agent = PlanningAgent(llm=self.llm, rate_table=self.rate_table)
        self.general_agent = GeneralAgent(llm=self.llm)
        self.cost_engine = CostEngine(self.rate_table)
        self.composer = ResponseComposer(self.rate_table)
        self.default_days = default_days or SETTINGS.default_days
        self.history_window = history_window or SETTINGS.history_window

    async def route_message(self, message: InboundMessage) -> ChatReply:
        session_id = message.session_id or uuid.uuid4().hex
        async with self.session_memory.lock(session_id):
            session = await self.session_memory.get_or_create(session_id)
            await self.session_memory.merge_patient(session, message.patient)
            history = await self.session_memory.recent_history(session, self.history_window)
            await self.session_memory.append_turn(session, "user", message.message)
            try:
                reply, duration_ms = await self.timed(self._respond(session, message, history))
            except Exception:
                logger.exception("chat_turn_failed", extra={"session_id": session_id})
                reply = ChatReply(session_id=session_id, reply=GENERIC_APOLOGY, agent=self.name, metadata={"error": True})
                duration_ms = 0
            await self.session_memory.append_turn(session, "assistant", reply.reply)
        try:
            self._log_turn(reply, duration_ms)
        except OSError:
            logger.exception("decision_log_write_failed", extra={"session_id": session_id})
        return reply

    async def _respond(self, session: Session, message: InboundMessage, history: List[Dict[str, str]]) -> ChatReply:
        if requests_pricing_internals(message.message):
            return self._reply(session, PRICING_DISCLOSURE_REFUSAL, agent="disclosure_guard", metadata={"refused": True})

        extraction = await self.intent_agent.classify(message.message, history)
        await self.session_memory.merge_patient(session, extraction.patient)

        if extraction.intent == IntentType.GENERAL:
            text = await self.general_agent.answer(message.message, history, session.patient)
            return self._reply(session, text, agent=self.general_agent.name, intent=extraction.intent)
        if extraction.intent == IntentType.EXPLAIN_COST:
            text = self.composer.explain_structure(extraction.category)
            return self._reply(session, text, agent="response_composer", intent=extraction.intent)
        return await self._quote(session, message, extraction)

    async def _quote(self, session: Session, message: InboundMessage, extraction: ExtractionResult) -> ChatReply:
        category = extraction.category or ServiceCategory.AIR_TRANSPORT
        origin = extraction.origin or message.origin
        destination = extraction.destination or message.destination
        departure_airport = extraction.departure_airport or message.departure_airport
        arrival_airport = extraction.arrival_airport or message.arrival_airport
        days = message.days or extraction.days or self.default_days
        intent = IntentType.CALCULATE_COST

        if category == ServiceCategory.EVENT_SUPPORT:
            route = RouteInfo(distance_km=0.0, duration_hr=0.0, source="not_applicable")
        else:
            if not origin or not destination:
                return self._reply(session, MISSING_ROUTE_PROMPT, agent="clarification", intent=intent, metadata={"missing": "route"})
            try:
                route = await self.location_resolver.resolve_route(origin, destination, departure_airport, arrival_airport)
            except NotFoundError as exc:
                logger.info("location_not_found", extra={"session_id": session.session_id, "place": exc.place})
                return self._reply(
                    session,
                    location_not_found_prompt(exc.place),
                    agent="clarification",
                    intent=intent,
                    metadata={"missing": "location"},
                )

        baseline = await self.planning_agent.derive_plan(
            session.patient,
            route.distance_km,
            category=category,
            cremated=extraction.cremated,
        )
        options: List[QuoteOption] = []
        for label, plan in self.planning_agent.derive_scenarios(baseline, extraction.scenarios):
            cost = self.cost_engine.compute_cost(category, plan, route.distance_km, days)
            scenario_route = self.location_resolver.retime_for_mode(route, plan.transport_mode)
            options.append(QuoteOption(label=label, plan=plan, route=scenario_route, cost=cost))
        text = self.composer.compose_quote(category, options, days)
        return self._reply(
            session,
            text,
            agent="quote_pipeline",
            intent=intent,
            quotes=options,
            metadata={"category": category.value, "days": days, "route_source": route.source},
        )

    def _reply(
        self,
        session: Session,
        text: str,
        agent: str,
        intent: Optional[IntentType] = None,
        quotes: Optional[List[QuoteOption]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatReply:
        return ChatReply(
            session_id=session.session_id,
            reply=text,
            intent=intent,
            agent=agent,
            quotes=list(quotes or []),
            metadata=dict(metadata or {}),
        )

    def _log_turn(self, reply: ChatReply, duration_ms: int) -> None:
        details: Dict[str, Any] = dict(reply.metadata)
        details["options"] = [{"label": q.label, "total": q.cost.total, "risk": q.plan.risk.value} for q in reply.quotes]
        self.build_decision_log(
            session_id=reply.session_id,
            action=reply.intent.value if reply.intent else "NONE",
            reasoning=f"handled by {reply.agent}",
            details=details,
            duration_ms=duration_ms,
            outcome="error" if reply.metadata.get("error") else "ok",
        )
