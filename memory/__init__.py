from .coordinate_cache import SHARED_COORDINATE_CACHE, CoordinateCache
from .session_memory import InMemorySessionBackend, SessionMemoryStore

__all__ = ["CoordinateCache", "InMemorySessionBackend", "SessionMemoryStore", "SHARED_COORDINATE_CACHE"]
