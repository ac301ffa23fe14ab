from .schemas import (
    AgentDecisionLog,
    ChatReply,
    Coordinate,
    CostBreakdown,
    CrewRole,
    Equipment,
    ExtractionResult,
    Formula,
    InboundMessage,
    IntentType,
    LegType,
    Level,
    PatientProfile,
    QuoteOption,
    RateItem,
    RateQualifiers,
    RouteInfo,
    RouteLeg,
    SeatClass,
    ServiceCategory,
    Session,
    TransportMode,
    TransportPlan,
    Turn,
)

__all__ = [
    "AgentDecisionLog",
    "ChatReply",
    "Coordinate",
    "CostBreakdown",
    "CrewRole",
    "Equipment",
    "ExtractionResult",
    "Formula",
    "InboundMessage",
    "IntentType",
    "LegType",
    "Level",
    "PatientProfile",
    "QuoteOption",
    "RateItem",
    "RateQualifiers",
    "RouteInfo",
    "RouteLeg",
    "SeatClass",
    "ServiceCategory",
    "Session",
    "TransportMode",
    "TransportPlan",
    "Turn",
]
