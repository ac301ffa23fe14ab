from __future__ import annotations

import logging
from typing import Dict, List, Sequence

import httpx

from memory.coordinate_cache import SHARED_COORDINATE_CACHE, CoordinateCache
from models.schemas import Coordinate, LegType, RouteInfo, RouteLeg, TransportMode
from settings import SETTINGS
from tools.airport_directory import lookup_airport, normalize_airport_code
from tools.geocoding_tools import (
    GeocodeStrategy,
    NominatimGeocoder,
    NotFoundError,
    PhotonGeocoder,
    default_geocode_strategies,
    geocode_with,
)
from tools.routing_tools import RouteStrategy, flight_strategies, ground_strategies, haversine_km, route_with

logger = logging.getLogger(__name__)


class LocationResolver:
    """Turns place text into coordinates and coordinate pairs into distance and duration."""

    def __init__(
        self,
        primary: NominatimGeocoder | PhotonGeocoder | None = None,
        secondary: NominatimGeocoder | PhotonGeocoder | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cache: CoordinateCache | None = None,
        geocode_strategies: Sequence[GeocodeStrategy] | None = None,
        ground_speed_kmh: float | None = None,
        destination_speed_kmh: float | None = None,
        cruise_speed_kmh: float | None = None,
        ground_leg_max_km: float | None = None,
    ) -> None:
        self.transport = transport
        self.primary = primary or NominatimGeocoder(transport=transport)
        self.secondary = secondary or PhotonGeocoder(transport=transport)
        self.geocode_strategies: List[GeocodeStrategy] = list(
            geocode_strategies or default_geocode_strategies(self.primary, self.secondary)
        )
        self.cache = cache if cache is not None else SHARED_COORDINATE_CACHE
        self.ground_speed_kmh = ground_speed_kmh or SETTINGS.ground_ambulance_speed_kmh
        self.destination_speed_kmh = destination_speed_kmh or SETTINGS.destination_ambulance_speed_kmh
        self.cruise_speed_kmh = cruise_speed_kmh or SETTINGS.cruise_speed_kmh
        self.ground_leg_max_km = ground_leg_max_km or SETTINGS.ground_leg_max_km
        self.mode_speeds_kmh: Dict[TransportMode, float] = {
            TransportMode.CIVIL: self.cruise_speed_kmh,
            TransportMode.AIR_AMBULANCE: 700.0,
            TransportMode.CHARTER: 750.0,
            TransportMode.SHIP: 30.0,
        }

    async def geocode(self, place: str) -> Coordinate:
        return await geocode_with(self.geocode_strategies, place)

    async def airport(self, code: str) -> Coordinate:
        key = normalize_airport_code(code)
        if not key:
            raise NotFoundError(code)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        coordinate = lookup_airport(key)
        if coordinate is None:
            coordinate = await self.geocode(f"{key} airport")
        self.cache.put(key, coordinate)
        return coordinate

    def strategies_for(self, leg_type: LegType, speed_kmh: float) -> List[RouteStrategy]:
        if leg_type == LegType.FLIGHT:
            return flight_strategies(speed_kmh)
        return ground_strategies(speed_kmh, transport=self.transport)

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        leg_type: LegType = LegType.GROUND,
        speed_kmh: float | None = None,
    ) -> RouteInfo:
        if speed_kmh is None:
            speed_kmh = self.cruise_speed_kmh if leg_type == LegType.FLIGHT else self.ground_speed_kmh
        return await route_with(self.strategies_for(leg_type, speed_kmh), origin, destination, speed_kmh)

    async def resolve_route(
        self,
        origin: str,
        destination: str,
        departure_airport: str | None = None,
        arrival_airport: str | None = None,
    ) -> RouteInfo:
        start = await self.geocode(origin)
        end = await self.geocode(destination)
        if departure_airport and arrival_airport:
            return await self.route_via_airports(start, end, departure_airport, arrival_airport)
        leg_type = LegType.GROUND if haversine_km(start, end) < self.ground_leg_max_km else LegType.FLIGHT
        info = await self.route(start, end, leg_type=leg_type)
        leg = RouteLeg(
            label="Origin → Destination",
            leg_type=leg_type,
            distance_km=round(info.distance_km),
            duration_hr=round(info.duration_hr, 1),
            source=info.source,
        )
        return info.model_copy(update={"legs": [leg]})

    async def route_via_airports(
        self,
        origin: Coordinate,
        destination: Coordinate,
        departure_airport: str,
        arrival_airport: str,
    ) -> RouteInfo:
        dep = await self.airport(departure_airport)
        arr = await self.airport(arrival_airport)
        dep_code = normalize_airport_code(departure_airport)
        arr_code = normalize_airport_code(arrival_airport)
        plan = [
            (f"Origin → {dep_code}", LegType.GROUND, origin, dep, self.ground_speed_kmh),
            (f"{dep_code} → {arr_code}", LegType.FLIGHT, dep, arr, self.cruise_speed_kmh),
            (f"{arr_code} → Destination", LegType.GROUND, arr, destination, self.destination_speed_kmh),
        ]
        legs: List[RouteLeg] = []
        for label, leg_type, a, b, speed in plan:
            info = await self.route(a, b, leg_type=leg_type, speed_kmh=speed)
            legs.append(
                RouteLeg(
                    label=label,
                    leg_type=leg_type,
                    distance_km=round(info.distance_km),
                    duration_hr=round(info.duration_hr, 1),
                    source=info.source,
                )
            )
        flight = legs[1]
        return RouteInfo(
            distance_km=flight.distance_km,
            duration_hr=round(sum(leg.duration_hr for leg in legs), 1),
            source=flight.source,
            legs=legs,
        )

    def retime_for_mode(self, route: RouteInfo, mode: TransportMode) -> RouteInfo:
        """Re-derive flight-leg durations at the cruise speed of ``mode``."""
        if not any(leg.leg_type == LegType.FLIGHT for leg in route.legs):
            return route
        speed = self.mode_speeds_kmh.get(mode, self.cruise_speed_kmh)
        legs = [
            leg.model_copy(update={"duration_hr": round(leg.distance_km / speed, 1)}) if leg.leg_type == LegType.FLIGHT else leg
            for leg in route.legs
        ]
        return route.model_copy(update={"legs": legs, "duration_hr": round(sum(leg.duration_hr for leg in legs), 1)})
