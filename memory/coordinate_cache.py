from __future__ import annotations

import re
from threading import Lock
from typing import Dict, Optional

from models.schemas import Coordinate


def normalize_identifier(identifier: str) -> str:
    return re.sub(r"[^A-Z0-9]", "", (identifier or "").upper())


class CoordinateCache:
    """Process-wide memo of airport/landmark coordinates keyed by normalized identifier."""

    def __init__(self) -> None:
        self._entries: Dict[str, Coordinate] = {}
        self._lock = Lock()

    def get(self, identifier: str) -> Optional[Coordinate]:
        key = normalize_identifier(identifier)
        with self._lock:
            return self._entries.get(key)

    def put(self, identifier: str, coordinate: Coordinate) -> None:
        key = normalize_identifier(identifier)
        if not key:
            return
        with self._lock:
            self._entries[key] = coordinate

    def __contains__(self, identifier: object) -> bool:
        return isinstance(identifier, str) and self.get(identifier) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


SHARED_COORDINATE_CACHE = CoordinateCache()
