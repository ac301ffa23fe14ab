from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from settings import SETTINGS
from tools.airport_directory import lookup_airport, normalize_airport_code

logger = logging.getLogger(__name__)

EXTRACTION_TOOL_NAME = "extract_quote_request"
PLAN_TOOL_NAME = "derive_transport_plan"


@dataclass
class ToolSpec:
    name: str
    description: str
    parameters: Dict[str, Any]


@dataclass
class LLMResult:
    text: str
    provider: str
    model: str
    raw: Dict[str, Any]
    arguments: Optional[Dict[str, Any]] = None


@dataclass
class _Cues:
    explain: List[str] = field(
        default_factory=lambda: [
            "what does the cost include",
            "what is included",
            "what's included",
            "cost structure",
            "cost components",
            "what makes up the cost",
            "how are costs structured",
            "비용 구성",
            "비용 항목",
            "어떤 비용",
        ]
    )
    calculate: List[str] = field(
        default_factory=lambda: ["how much", "quote", "estimate", "cost", "price", "fee", "비용", "견적", "얼마", "요금"]
    )
    deceased: List[str] = field(
        default_factory=lambda: [
            "deceased",
            "mortal remains",
            "human remains",
            "body of",
            "corpse",
            "coffin",
            "funeral",
            "passed away",
            "repatriation of the body",
            "시신",
            "운구",
            "고인",
            "유해",
            "사망자",
        ]
    )
    event: List[str] = field(
        default_factory=lambda: [
            "event",
            "marathon",
            "concert",
            "festival",
            "tournament",
            "on-site medical",
            "medical standby",
            "행사",
            "대회",
            "축제",
            "공연",
        ]
    )
    modes: Dict[str, List[str]] = field(
        default_factory=lambda: {
            "civil": [r"\bcivil\b", r"commercial (?:flight|airline)", r"scheduled flight", r"\bairline\b", "민항기", "일반 항공"],
            "airAmbulance": [r"air[\s-]?ambulance", "에어\\s?앰뷸런스", "항공\\s?구급"],
            "charter": [r"\bcharter", "전세기"],
            "ship": [r"\bship\b", r"by sea", r"\bferry\b", r"\bvessel\b", "선박", "배로"],
        }
    )
    high_risk: List[str] = field(
        default_factory=lambda: [
            "ards",
            "respiratory failure",
            "intubat",
            "ventilator",
            "ecmo",
            "shock",
            "sepsis",
            "cardiac arrest",
            "unconscious",
            "coma",
            "stroke",
            "hemorrhage",
            "haemorrhage",
            "icu",
            "중환자",
            "의식불명",
            "의식 없음",
            "인공호흡",
            "뇌출혈",
        ]
    )
    medium_risk: List[str] = field(
        default_factory=lambda: [
            "fracture",
            "surgery",
            "post-op",
            "pneumonia",
            "cancer",
            "cardiac",
            "heart",
            "bedridden",
            "stretcher",
            "drowsy",
            "골절",
            "수술",
            "폐렴",
            "암",
            "와상",
        ]
    )


CUES = _Cues()

ROUTE_PATTERNS = [
    re.compile(
        r"\bfrom\s+(?P<origin>.+?)\s+to\s+(?P<destination>.+?)"
        r"(?=\s*(?:[,.;?!]|\bfor\b|\bwith\b|\bby\b|\bover\b|\bin\b|\bcompar\w*|\bvs\b|\band\b|\bduring\b|\bvia\b|$))",
        re.IGNORECASE,
    ),
    re.compile(r"(?P<origin>[^,.?!]+?)\s*에서\s*(?P<destination>[^,.?!]+?)\s*(?:까지|으로|로)"),
]
AIRPORT_PAIR = re.compile(r"\b([A-Z]{3,4})\s*(?:->|→|-|to)\s*([A-Z]{3,4})\b")
# calendar dates such as "6월 9일" are not durations
DAYS = re.compile(r"(?<![\d월])(?<!월\s)(\d{1,3})\s*(?:-\s*)?(?:days?\b|nights?\b|일간|일)", re.IGNORECASE)
DIAGNOSIS = [
    re.compile(r"(?:diagnosis|diagnosed with|dx)\s*[:：]?\s*([^,.;\n]+)", re.IGNORECASE),
    re.compile(r"진단\s*[:：]?\s*([^,.;\n]+)"),
]
NON_CREMATED = re.compile(r"non[\s-]?cremat|not\s+cremat|uncremated|without\s+cremation|화장하지\s*않|매장", re.IGNORECASE)
CREMATED = re.compile(r"cremat|\bashes\b|\burn\b|화장|유골", re.IGNORECASE)


class LLMRuntime:
    """Swappable AI completion runtime with deterministic fallback for local development."""

    def __init__(self, provider: str | None = None, model: str | None = None) -> None:
        self.provider = (provider or SETTINGS.default_llm_provider or "heuristic").lower()
        self.model = model or SETTINGS.default_model or "heuristic-local"

    def available(self) -> bool:
        if self.provider == "anthropic":
            return bool(SETTINGS.anthropic_api_key)
        if self.provider in {"xai", "grok"}:
            return bool(SETTINGS.xai_api_key)
        if self.provider == "openai":
            return bool(SETTINGS.openai_api_key)
        return False

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Dict[str, Any] | None = None,
        history: List[Dict[str, str]] | None = None,
    ) -> LLMResult:
        context = context or {}
        if self.available():
            try:
                return await self._dispatch(system_prompt, user_prompt, context, history or [], tool=None)
            except Exception as exc:  # pragma: no cover - network/provider variability
                # Fall through to deterministic local fallback so the service remains usable offline.
                logger.warning("llm_generate_failed", extra={"provider": self.provider, "error": str(exc)})
        return LLMResult(
            text=self._heuristic_text(user_prompt, context),
            provider="heuristic",
            model="heuristic-local",
            raw={"fallback": True},
        )

    async def invoke_tool(
        self,
        system_prompt: str,
        user_prompt: str,
        tool: ToolSpec,
        context: Dict[str, Any] | None = None,
        history: List[Dict[str, str]] | None = None,
    ) -> LLMResult:
        """Ask the model to answer only by calling ``tool``.

        ``arguments`` is ``None`` when the provider replied with free text or
        unparseable arguments; callers validate whatever comes back.
        """
        context = context or {}
        if self.available():
            try:
                return await self._dispatch(system_prompt, user_prompt, context, history or [], tool=tool)
            except Exception as exc:  # pragma: no cover - network/provider variability
                logger.warning("llm_tool_call_failed", extra={"provider": self.provider, "tool": tool.name, "error": str(exc)})
        payload = self._heuristic_tool(tool.name, user_prompt, {**context, "history": history or []})
        return LLMResult(
            text=json.dumps(payload, ensure_ascii=False),
            provider="heuristic",
            model="heuristic-local",
            raw={"fallback": True},
            arguments=payload,
        )

    async def _dispatch(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Dict[str, Any],
        history: List[Dict[str, str]],
        tool: ToolSpec | None,
    ) -> LLMResult:
        if self.provider == "anthropic":
            return await self._generate_anthropic(system_prompt, user_prompt, context, history, tool)
        if self.provider in {"xai", "grok"}:
            return await self._generate_chat_completions(
                SETTINGS.xai_base_url, SETTINGS.xai_api_key, "xai", system_prompt, user_prompt, context, history, tool
            )
        return await self._generate_chat_completions(
            SETTINGS.openai_base_url, SETTINGS.openai_api_key, "openai", system_prompt, user_prompt, context, history, tool
        )

    async def _generate_chat_completions(
        self,
        base_url: str,
        api_key: str,
        provider: str,
        system_prompt: str,
        user_prompt: str,
        context: Dict[str, Any],
        history: List[Dict[str, str]],
        tool: ToolSpec | None,
    ) -> LLMResult:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
        messages.append({"role": "user", "content": self._compose_user_content(user_prompt, context)})
        body: Dict[str, Any] = {"model": self.model, "messages": messages, "temperature": SETTINGS.llm_temperature}
        if tool is not None:
            body["tools"] = [
                {"type": "function", "function": {"name": tool.name, "description": tool.description, "parameters": tool.parameters}}
            ]
            body["tool_choice"] = {"type": "function", "function": {"name": tool.name}}
        async with httpx.AsyncClient(timeout=SETTINGS.llm_timeout_seconds) as client:
            resp = await client.post(
                f"{base_url.rstrip('/')}/chat/completions",
                headers={"Authorization": f"Bearer {api_key}"},
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        text = self._extract_chat_completion_text(data)
        arguments = self._extract_chat_completion_tool_args(data, tool.name) if tool else None
        return LLMResult(text=text, provider=provider, model=self.model, raw=data, arguments=arguments)

    async def _generate_anthropic(
        self,
        system_prompt: str,
        user_prompt: str,
        context: Dict[str, Any],
        history: List[Dict[str, str]],
        tool: ToolSpec | None,
    ) -> LLMResult:
        messages: List[Dict[str, Any]] = [{"role": turn["role"], "content": turn["content"]} for turn in history]
        messages.append({"role": "user", "content": self._compose_user_content(user_prompt, context)})
        body: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": 900,
            "temperature": SETTINGS.llm_temperature,
            "system": system_prompt,
            "messages": messages,
        }
        if tool is not None:
            body["tools"] = [{"name": tool.name, "description": tool.description, "input_schema": tool.parameters}]
            body["tool_choice"] = {"type": "tool", "name": tool.name}
        async with httpx.AsyncClient(timeout=SETTINGS.llm_timeout_seconds) as client:
            resp = await client.post(
                f"{SETTINGS.anthropic_base_url.rstrip('/')}/messages",
                headers={
                    "x-api-key": SETTINGS.anthropic_api_key,
                    "anthropic-version": "2023-06-01",
                    "content-type": "application/json",
                },
                json=body,
            )
            resp.raise_for_status()
            data = resp.json()
        text_parts: List[str] = []
        arguments: Optional[Dict[str, Any]] = None
        for block in data.get("content", []):
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text":
                text_parts.append(str(block.get("text", "")))
            elif tool is not None and block.get("type") == "tool_use" and block.get("name") == tool.name:
                if isinstance(block.get("input"), dict):
                    arguments = dict(block["input"])
        text = "\n".join(t for t in text_parts if t).strip()
        return LLMResult(text=text, provider="anthropic", model=self.model, raw=data, arguments=arguments)

    def _compose_user_content(self, user_prompt: str, context: Dict[str, Any]) -> str:
        if not context:
            return user_prompt
        blob = json.dumps(context, ensure_ascii=False, default=str)[:8000]
        return f"{user_prompt}\n\nContext JSON:\n{blob}"

    def _extract_chat_completion_text(self, data: Dict[str, Any]) -> str:
        choices = data.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") if isinstance(choices[0], dict) else {}
        content = message.get("content", "") if isinstance(message, dict) else ""
        if isinstance(content, str):
            return content.strip()
        if isinstance(content, list):
            out: List[str] = []
            for part in content:
                if isinstance(part, dict) and "text" in part:
                    out.append(str(part.get("text", "")))
            return "\n".join(t for t in out if t).strip()
        return str(content or "").strip()

    def _extract_chat_completion_tool_args(self, data: Dict[str, Any], tool_name: str) -> Optional[Dict[str, Any]]:
        choices = data.get("choices") or []
        if not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message") or {}
        for call in message.get("tool_calls") or []:
            function = call.get("function") if isinstance(call, dict) else None
            if not isinstance(function, dict) or function.get("name") != tool_name:
                continue
            try:
                parsed = json.loads(function.get("arguments") or "{}")
            except json.JSONDecodeError:
                return None
            return parsed if isinstance(parsed, dict) else None
        return None

    def _heuristic_tool(self, tool_name: str, text: str, context: Dict[str, Any]) -> Dict[str, Any]:
        if tool_name == EXTRACTION_TOOL_NAME:
            return self._heuristic_extraction(text, context)
        if tool_name == PLAN_TOOL_NAME:
            return self._heuristic_plan(context)
        return {}

    def _heuristic_extraction(self, text: str, context: Dict[str, Any]) -> Dict[str, Any]:
        lower = text.lower()
        origin, destination = self._extract_route(text)
        if not (origin and destination):
            for turn in reversed(context.get("history") or []):
                if turn.get("role") != "user":
                    continue
                prior_origin, prior_destination = self._extract_route(str(turn.get("content", "")))
                if prior_origin and prior_destination:
                    origin, destination = origin or prior_origin, destination or prior_destination
                    break

        category: Optional[str] = None
        cremated: Optional[bool] = None
        if NON_CREMATED.search(text):
            category, cremated = "DECEASED_TRANSPORT", False
        elif CREMATED.search(text):
            category, cremated = "DECEASED_TRANSPORT", True
        elif any(cue in lower for cue in CUES.deceased):
            category = "DECEASED_TRANSPORT"
        elif any(re.search(rf"\b{re.escape(cue)}\b", lower) if cue.isascii() else cue in lower for cue in CUES.event):
            category = "EVENT_SUPPORT"

        scenarios = self._extract_modes(text)
        if any(cue in lower for cue in CUES.explain):
            intent = "EXPLAIN_COST"
        elif any(cue in lower for cue in CUES.calculate) or (origin and destination) or len(scenarios) > 1:
            intent = "CALCULATE_COST"
        else:
            intent = "GENERAL"

        payload: Dict[str, Any] = {"intent": intent, "scenarios": scenarios}
        if origin and destination:
            payload["origin"] = origin
            payload["destination"] = destination
        if category:
            payload["category"] = category
        if cremated is not None:
            payload["cremated"] = cremated
        days = DAYS.search(text)
        if days and int(days.group(1)) > 0:
            payload["days"] = int(days.group(1))
        airports = AIRPORT_PAIR.search(text)
        if airports and lookup_airport(airports.group(1)) and lookup_airport(airports.group(2)):
            payload["departure_airport"] = normalize_airport_code(airports.group(1))
            payload["arrival_airport"] = normalize_airport_code(airports.group(2))
        payload.update(self._extract_patient_facts(text))
        return payload

    def _extract_route(self, text: str) -> tuple[Optional[str], Optional[str]]:
        for pattern in ROUTE_PATTERNS:
            match = pattern.search(text)
            if match:
                origin = match.group("origin").strip(" ,.")
                destination = match.group("destination").strip(" ,.")
                if origin and destination:
                    return origin, destination
        return None, None

    def _extract_modes(self, text: str) -> List[str]:
        hits: List[tuple[int, str]] = []
        for mode, patterns in CUES.modes.items():
            positions = [m.start() for p in patterns for m in re.finditer(p, text, re.IGNORECASE)]
            if positions:
                hits.append((min(positions), mode))
        return [mode for _, mode in sorted(hits)]

    def _extract_patient_facts(self, text: str) -> Dict[str, str]:
        lower = text.lower()
        facts: Dict[str, str] = {}
        for pattern in DIAGNOSIS:
            match = pattern.search(text)
            if match and match.group(1).strip():
                facts["diagnosis"] = match.group(1).strip()
                break
        if any(cue in lower for cue in ["unconscious", "comatose", "coma", "의식불명", "의식 없음"]):
            facts["consciousness"] = "unconscious"
        elif any(cue in lower for cue in ["drowsy", "stupor", "기면"]):
            facts["consciousness"] = "drowsy"
        elif any(cue in lower for cue in ["alert", "conscious", "의식 명료"]):
            facts["consciousness"] = "alert"
        if any(cue in lower for cue in ["bedridden", "bed-bound", "bed bound", "와상"]):
            facts["mobility"] = "bedridden"
        elif any(cue in lower for cue in ["wheelchair", "휠체어"]):
            facts["mobility"] = "wheelchair"
        elif any(cue in lower for cue in ["ambulatory", "can walk", "보행 가능"]):
            facts["mobility"] = "ambulatory"
        return facts

    def _heuristic_plan(self, context: Dict[str, Any]) -> Dict[str, Any]:
        category = str(context.get("category") or "AIR_TRANSPORT")
        if category == "DECEASED_TRANSPORT":
            return {
                "category": category,
                "cremated": bool(context.get("cremated")),
                "risk": "low",
                "transport_mode": "civil",
                "seat_class": "coffin",
                "crew": ["handler"],
                "equipment": {"ventilator": False, "ecmo": False},
                "medication_level": "low",
                "notes": ["Death certificate, embalming certificate and consular clearance are required before departure."],
            }
        if category == "EVENT_SUPPORT":
            return {
                "category": category,
                "cremated": False,
                "risk": "low",
                "transport_mode": "civil",
                "seat_class": "business",
                "crew": ["doctor", "nurse", "staff"],
                "equipment": {"ventilator": False, "ecmo": False},
                "medication_level": "medium",
                "notes": ["Confirm venue access for the standby ambulance and a first-aid station location."],
            }
        patient = context.get("patient") or {}
        facts = " ".join(str(v) for v in patient.values() if v).lower()
        if any(cue in facts for cue in CUES.high_risk):
            notes = ["Continuous monitoring by a physician is required throughout the flight."]
            return {
                "category": category,
                "cremated": False,
                "risk": "high",
                "transport_mode": "airAmbulance",
                "seat_class": "stretcher",
                "crew": ["doctor", "nurse"],
                "equipment": {"ventilator": True, "ecmo": "ecmo" in facts},
                "medication_level": "high",
                "notes": notes,
            }
        if any(cue in facts for cue in CUES.medium_risk):
            return {
                "category": category,
                "cremated": False,
                "risk": "medium",
                "transport_mode": "civil",
                "seat_class": "stretcher",
                "crew": ["doctor", "nurse"],
                "equipment": {"ventilator": False, "ecmo": False},
                "medication_level": "medium",
                "notes": ["A fit-to-fly certificate from the treating physician is required by the airline."],
            }
        return {
            "category": category,
            "cremated": False,
            "risk": "low",
            "transport_mode": "civil",
            "seat_class": "business",
            "crew": ["nurse"],
            "equipment": {"ventilator": False, "ecmo": False},
            "medication_level": "low",
            "notes": ["A medical escort accompanies the patient on a scheduled flight."],
        }

    def _heuristic_text(self, text: str, context: Dict[str, Any]) -> str:
        lower = text.lower().strip()
        if re.search(r"\b(hello|hi|hey)\b", lower) or "안녕" in lower:
            return "Hello. I can help plan and estimate medical transport. Where is the patient now, and where do they need to go?"
        if "what can you do" in lower or "help" in lower:
            return (
                "I can estimate costs for air ambulance and escorted commercial-flight transfers, repatriation of remains, "
                "and on-site medical coverage for events. Tell me the departure and destination and a little about the patient."
            )
        return (
            "I can help with medical transport planning. Share the departure and destination addresses and the patient's "
            "condition, and I will prepare an estimate."
        )
