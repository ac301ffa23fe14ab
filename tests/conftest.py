from __future__ import annotations

import httpx
import pytest

from agents.llm_runtime import LLMRuntime
from agents.orchestrator import OrchestratorAgent
from compliance.audit_logger import AuditLogger
from memory.coordinate_cache import CoordinateCache
from tools.geocoding_tools import NominatimGeocoder, PhotonGeocoder
from tools.location_resolver import LocationResolver

PLACES = {
    "seoul national university hospital": (37.5796, 126.9990),
    "cho ray hospital ho chi minh city": (10.7578, 106.6600),
    "seoul": (37.5665, 126.9780),
    "bangkok": (13.7563, 100.5018),
    "suwon": (37.2636, 127.0286),
}


def _geo_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.endswith("/search"):
        hit = PLACES.get(request.url.params.get("q", "").lower())
        return httpx.Response(200, json=[{"lat": str(hit[0]), "lon": str(hit[1])}] if hit else [])
    if path.endswith("/api/"):
        return httpx.Response(200, json={"features": []})
    # no road routing in tests; ground legs use the great-circle estimate
    return httpx.Response(503)


@pytest.fixture
def geo_transport() -> httpx.MockTransport:
    return httpx.MockTransport(_geo_handler)


@pytest.fixture
def make_orchestrator(geo_transport):
    def _make(**overrides) -> OrchestratorAgent:
        resolver = LocationResolver(
            primary=NominatimGeocoder(transport=geo_transport),
            secondary=PhotonGeocoder(transport=geo_transport),
            transport=geo_transport,
            cache=CoordinateCache(),
        )
        kwargs = {
            "llm": LLMRuntime(provider="heuristic"),
            "location_resolver": resolver,
            "audit_logger": AuditLogger(path=""),
        }
        kwargs.update(overrides)
        return OrchestratorAgent(**kwargs)

    return _make
