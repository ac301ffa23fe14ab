from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from models.schemas import InboundMessage, PatientProfile


router = APIRouter(prefix="/chat", tags=["chat"])
legacy_router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    message: str = Field(min_length=1)
    patient: Optional[PatientProfile] = None
    days: Optional[int] = Field(default=None, ge=1)
    origin: Optional[str] = None
    destination: Optional[str] = None
    departure_airport: Optional[str] = Field(default=None, alias="departureAirport")
    arrival_airport: Optional[str] = Field(default=None, alias="arrivalAirport")


def _orchestrator(request: Request):
    return request.app.state.orchestrator


async def _handle(payload: ChatRequest, request: Request):
    orchestrator = _orchestrator(request)
    response = await orchestrator.route_message(
        InboundMessage(
            session_id=payload.session_id or uuid.uuid4().hex,
            message=payload.message,
            patient=payload.patient,
            days=payload.days,
            origin=payload.origin,
            destination=payload.destination,
            departure_airport=payload.departure_airport,
            arrival_airport=payload.arrival_airport,
        )
    )
    return {"reply": response.reply, "sessionId": response.session_id}


@router.post("")
async def post_chat(payload: ChatRequest, request: Request):
    return await _handle(payload, request)


@legacy_router.post("/chat")
async def post_chat_legacy(payload: ChatRequest, request: Request):
    return await _handle(payload, request)


@router.get("/history/{session_id}")
async def get_chat_history(session_id: str, request: Request):
    orchestrator = _orchestrator(request)
    session = await orchestrator.session_memory.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="session_not_found")
    return session.model_dump(mode="json")
