from __future__ import annotations

import logging
import math
from typing import List, Sequence

import httpx

from models.schemas import Coordinate, RouteInfo
from settings import SETTINGS

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0088


class RouteComputationError(RuntimeError):
    pass


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


class RouteStrategy:
    name = "strategy"

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteInfo:
        raise NotImplementedError


class OsrmRouteStrategy(RouteStrategy):
    """Road routing through an OSRM ``/route`` endpoint."""

    name = "osrm"

    def __init__(
        self,
        base_url: str | None = None,
        profile: str = "driving",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or SETTINGS.osrm_base_url).rstrip("/")
        self.profile = profile
        self.timeout = timeout or SETTINGS.geo_timeout_seconds
        self.transport = transport

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteInfo:
        path = f"{origin.lon},{origin.lat};{destination.lon},{destination.lat}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(
                    f"{self.base_url}/route/v1/{self.profile}/{path}",
                    params={"overview": "false"},
                    headers={"User-Agent": SETTINGS.geo_user_agent},
                )
                data = resp.json() if resp.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            raise RouteComputationError(f"routing request failed: {exc}") from exc
        if not isinstance(data, dict) or data.get("code") != "Ok":
            code = data.get("code") if isinstance(data, dict) else None
            raise RouteComputationError(f"routing provider returned {code or 'no status'}")
        routes = data.get("routes")
        if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
            raise RouteComputationError("routing provider returned no routes")
        try:
            meters = float(routes[0]["distance"])
            seconds = float(routes[0]["duration"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RouteComputationError("routing provider returned a malformed route") from exc
        if meters < 0 or seconds < 0:
            raise RouteComputationError("routing provider returned negative values")
        return RouteInfo(distance_km=meters / 1000.0, duration_hr=seconds / 3600.0, source=self.name)


class GreatCircleStrategy(RouteStrategy):
    """Straight-line distance with a duration synthesized from an assumed average speed."""

    name = "great_circle"

    def __init__(self, speed_kmh: float) -> None:
        self.speed_kmh = speed_kmh if speed_kmh > 0 else SETTINGS.ground_ambulance_speed_kmh

    async def route(self, origin: Coordinate, destination: Coordinate) -> RouteInfo:
        return self.estimate(origin, destination)

    def estimate(self, origin: Coordinate, destination: Coordinate) -> RouteInfo:
        km = haversine_km(origin, destination)
        return RouteInfo(distance_km=km, duration_hr=km / self.speed_kmh, source=self.name)


async def route_with(
    strategies: Sequence[RouteStrategy],
    origin: Coordinate,
    destination: Coordinate,
    fallback_speed_kmh: float,
) -> RouteInfo:
    for strategy in strategies:
        try:
            return await strategy.route(origin, destination)
        except RouteComputationError as exc:
            logger.warning("route_provider_failed", extra={"strategy": strategy.name, "error": str(exc)})
    return GreatCircleStrategy(fallback_speed_kmh).estimate(origin, destination)


def ground_strategies(
    speed_kmh: float,
    transport: httpx.AsyncBaseTransport | None = None,
    base_url: str | None = None,
) -> List[RouteStrategy]:
    return [OsrmRouteStrategy(base_url=base_url, transport=transport), GreatCircleStrategy(speed_kmh)]


def flight_strategies(speed_kmh: float) -> List[RouteStrategy]:
    return [GreatCircleStrategy(speed_kmh)]
