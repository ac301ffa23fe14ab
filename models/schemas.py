from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ServiceCategory(str, Enum):
    AIR_TRANSPORT = "AIR_TRANSPORT"
    DECEASED_TRANSPORT = "DECEASED_TRANSPORT"
    EVENT_SUPPORT = "EVENT_SUPPORT"


class Formula(str, Enum):
    FLAT = "FLAT"
    PER_KM = "PER_KM"
    PER_KM_PER_CREW = "PER_KM_PER_CREW"
    PER_DAY = "PER_DAY"
    PER_DAY_PER_CREW = "PER_DAY_PER_CREW"


class TransportMode(str, Enum):
    CIVIL = "civil"
    AIR_AMBULANCE = "airAmbulance"
    CHARTER = "charter"
    SHIP = "ship"


class SeatClass(str, Enum):
    BUSINESS = "business"
    STRETCHER = "stretcher"
    COFFIN = "coffin"


class Level(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CrewRole(str, Enum):
    DOCTOR = "doctor"
    NURSE = "nurse"
    HANDLER = "handler"
    STAFF = "staff"


class IntentType(str, Enum):
    GENERAL = "GENERAL"
    EXPLAIN_COST = "EXPLAIN_COST"
    CALCULATE_COST = "CALCULATE_COST"


class LegType(str, Enum):
    GROUND = "ground"
    FLIGHT = "flight"


class RateQualifiers(BaseModel):
    model_config = ConfigDict(frozen=True)

    transport_mode: Optional[TransportMode] = None
    role: Optional[CrewRole] = None
    seat_class: Optional[SeatClass] = None
    equipment: Optional[Literal["ventilator", "ecmo"]] = None
    medication_level: Optional[Level] = None
    cremated: Optional[bool] = None


class RateItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    item: str = Field(min_length=1)
    unit_price: float = Field(ge=0)
    formula: Formula
    qualifiers: Optional[RateQualifiers] = None


class Coordinate(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class PatientProfile(BaseModel):
    diagnosis: Optional[str] = None
    consciousness: Optional[str] = None
    mobility: Optional[str] = None

    @field_validator("diagnosis", "consciousness", "mobility", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def known_fields(self) -> Dict[str, str]:
        return {
            "diagnosis": self.diagnosis or "unknown",
            "consciousness": self.consciousness or "unknown",
            "mobility": self.mobility or "unknown",
        }


class Equipment(BaseModel):
    ventilator: bool = False
    ecmo: bool = False


class TransportPlan(BaseModel):
    category: ServiceCategory = ServiceCategory.AIR_TRANSPORT
    cremated: bool = False
    risk: Level
    transport_mode: TransportMode
    seat_class: SeatClass = SeatClass.STRETCHER
    crew: List[CrewRole] = Field(default_factory=list)
    equipment: Equipment = Field(default_factory=Equipment)
    medication_level: Level = Level.MEDIUM
    notes: List[str] = Field(default_factory=list)

    @field_validator("crew")
    @classmethod
    def _unique_crew(cls, value: List[CrewRole]) -> List[CrewRole]:
        seen: List[CrewRole] = []
        for role in value:
            if role not in seen:
                seen.append(role)
        return seen

    @model_validator(mode="after")
    def _coffin_only_for_deceased(self) -> "TransportPlan":
        if self.seat_class == SeatClass.COFFIN and self.category != ServiceCategory.DECEASED_TRANSPORT:
            raise ValueError("coffin seat class requires DECEASED_TRANSPORT")
        return self


class RouteLeg(BaseModel):
    label: str
    leg_type: LegType
    distance_km: float = Field(ge=0)
    duration_hr: float = Field(ge=0)
    source: str = "great_circle"


class RouteInfo(BaseModel):
    distance_km: float = Field(ge=0)
    duration_hr: float = Field(ge=0)
    source: str = "great_circle"
    legs: List[RouteLeg] = Field(default_factory=list)


class CostBreakdown(BaseModel):
    items: Dict[str, float] = Field(default_factory=dict)
    total: float = 0.0
    currency: str = "KRW"

    @classmethod
    def from_items(cls, items: Dict[str, float], currency: str = "KRW") -> "CostBreakdown":
        return cls(items=dict(items), total=sum(items.values()), currency=currency)


class Turn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    ts: datetime = Field(default_factory=_utcnow)


class Session(BaseModel):
    session_id: str
    history: List[Turn] = Field(default_factory=list)
    patient: PatientProfile = Field(default_factory=PatientProfile)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ExtractionResult(BaseModel):
    intent: IntentType = IntentType.GENERAL
    origin: Optional[str] = None
    destination: Optional[str] = None
    scenarios: List[str] = Field(default_factory=list)
    category: Optional[ServiceCategory] = None
    cremated: Optional[bool] = None
    days: Optional[int] = Field(default=None, ge=1)
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    patient: PatientProfile = Field(default_factory=PatientProfile)

    @field_validator("origin", "destination", "departure_airport", "arrival_airport", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("scenarios", mode="before")
    @classmethod
    def _clean_scenarios(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [str(v).strip() for v in value if str(v).strip()]
        return value


class InboundMessage(BaseModel):
    session_id: str
    message: str
    patient: Optional[PatientProfile] = None
    days: Optional[int] = Field(default=None, ge=1)
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_airport: Optional[str] = None
    arrival_airport: Optional[str] = None
    received_at: datetime = Field(default_factory=_utcnow)


class QuoteOption(BaseModel):
    label: str
    plan: TransportPlan
    route: RouteInfo
    cost: CostBreakdown


class ChatReply(BaseModel):
    session_id: str
    reply: str
    intent: Optional[IntentType] = None
    agent: str
    quotes: List[QuoteOption] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AgentDecisionLog(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    session_id: str
    agent: str
    action: str
    reasoning: str
    details: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = 0
    outcome: str = "ok"
