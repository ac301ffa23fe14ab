from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from threading import Lock
from typing import AsyncIterator, Dict, List, Optional, Protocol

from models.schemas import PatientProfile, Session, Turn


class SessionBackend(Protocol):
    def load(self, session_id: str) -> Optional[Session]: ...

    def save(self, session: Session) -> None: ...

    def delete(self, session_id: str) -> None: ...


class InMemorySessionBackend:
    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def load(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def save(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class SessionMemoryStore:
    """Session repository: lazily created sessions holding history and patient facts.

    Sessions live for the process lifetime; there is no expiry. ``lock`` hands
    out one asyncio lock per session id so a whole turn can be serialized
    against other turns of the same session.
    """

    def __init__(self, backend: SessionBackend | None = None) -> None:
        self.backend: SessionBackend = backend or InMemorySessionBackend()
        self._lock = Lock()
        self._session_locks: Dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def lock(self, session_id: str) -> AsyncIterator[None]:
        with self._lock:
            session_lock = self._session_locks.setdefault(session_id, asyncio.Lock())
        async with session_lock:
            yield

    async def get_or_create(self, session_id: str) -> Session:
        with self._lock:
            session = self.backend.load(session_id)
            if session is None:
                session = Session(session_id=session_id)
                self.backend.save(session)
            return session

    async def merge_patient(self, session: Session, partial: PatientProfile | Dict[str, object] | None) -> Session:
        if partial is None:
            return session
        if not isinstance(partial, PatientProfile):
            partial = PatientProfile.model_validate(partial)
        updates = partial.model_dump(exclude_none=True)
        if not updates:
            return session
        with self._lock:
            session.patient = session.patient.model_copy(update=updates)
            session.updated_at = datetime.now(timezone.utc)
            self.backend.save(session)
        return session

    async def append_turn(self, session: Session, role: str, content: str) -> Session:
        with self._lock:
            session.history.append(Turn(role=role, content=content))
            session.updated_at = datetime.now(timezone.utc)
            self.backend.save(session)
        return session

    async def recent_history(self, session: Session, limit: int) -> List[Dict[str, str]]:
        turns = session.history[-limit:] if limit > 0 else []
        return [{"role": turn.role, "content": turn.content} for turn in turns]

    async def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self.backend.load(session_id)
