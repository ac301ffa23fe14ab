from __future__ import annotations

import asyncio

import httpx
import pytest

from memory.coordinate_cache import CoordinateCache
from models.schemas import Coordinate, LegType, TransportMode
from tools.geocoding_tools import NominatimGeocoder, NotFoundError, PhotonGeocoder, suffix_candidates
from tools.location_resolver import LocationResolver
from tools.routing_tools import haversine_km

SEOUL = (37.5665, 126.9780)
SUWON = (37.2636, 127.0286)
HANOI = (21.0285, 105.8542)
HCMC = (10.7769, 106.7009)


def _geo_transport(nominatim=None, photon=None, osrm=None, calls=None):
    nominatim = {k.lower(): v for k, v in (nominatim or {}).items()}
    photon = {k.lower(): v for k, v in (photon or {}).items()}
    calls = calls if calls is not None else []

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/search"):
            query = request.url.params.get("q", "")
            calls.append(("nominatim", query))
            hit = nominatim.get(query.lower())
            rows = [{"lat": str(hit[0]), "lon": str(hit[1])}] if hit else []
            return httpx.Response(200, json=rows)
        if path.endswith("/api/"):
            query = request.url.params.get("q", "")
            calls.append(("photon", query))
            hit = photon.get(query.lower())
            features = [{"geometry": {"type": "Point", "coordinates": [hit[1], hit[0]]}}] if hit else []
            return httpx.Response(200, json={"features": features})
        if "/route/v1/" in path:
            calls.append(("osrm", path))
            if osrm is None:
                return httpx.Response(503)
            return httpx.Response(200, json=osrm)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


def _resolver(transport: httpx.MockTransport) -> LocationResolver:
    return LocationResolver(
        primary=NominatimGeocoder(transport=transport),
        secondary=PhotonGeocoder(transport=transport),
        transport=transport,
        cache=CoordinateCache(),
    )


def test_exact_query_resolves_on_first_tier():
    async def _run():
        calls = []
        resolver = _resolver(_geo_transport(nominatim={"Seoul Station": SEOUL}, calls=calls))
        coordinate = await resolver.geocode("Seoul Station")
        assert (coordinate.lat, coordinate.lon) == SEOUL
        assert calls == [("nominatim", "Seoul Station")]

    asyncio.run(_run())


def test_locality_country_rewrite_is_second_tier():
    async def _run():
        calls = []
        resolver = _resolver(_geo_transport(nominatim={"Hanoi, Vietnam": HANOI}, calls=calls))
        coordinate = await resolver.geocode("Bach Mai Hospital Hanoi Vietnam")
        assert (coordinate.lat, coordinate.lon) == HANOI
        assert calls == [
            ("nominatim", "Bach Mai Hospital Hanoi Vietnam"),
            ("nominatim", "Hanoi, Vietnam"),
        ]

    asyncio.run(_run())


def test_country_suffix_tier_exhausts_primary_before_secondary():
    async def _run():
        calls = []
        resolver = _resolver(_geo_transport(photon={"Cho Ray, Vietnam": HCMC}, calls=calls))
        coordinate = await resolver.geocode("Cho Ray Hospital")
        assert (coordinate.lat, coordinate.lon) == HCMC

        candidates = suffix_candidates("Cho Ray Hospital")
        nominatim_queries = [q for provider, q in calls if provider == "nominatim"]
        photon_queries = [q for provider, q in calls if provider == "photon"]
        # exact tier, then every candidate against the primary provider
        assert nominatim_queries == ["Cho Ray Hospital"] + candidates
        assert photon_queries[-1] == "Cho Ray, Vietnam"
        assert photon_queries == candidates[: candidates.index("Cho Ray, Vietnam") + 1]

    asyncio.run(_run())


def test_unresolvable_place_raises_not_found():
    async def _run():
        resolver = _resolver(_geo_transport())
        with pytest.raises(NotFoundError) as excinfo:
            await resolver.geocode("Nowhere Clinic")
        assert excinfo.value.place == "Nowhere Clinic"
        with pytest.raises(NotFoundError):
            await resolver.geocode("   ")

    asyncio.run(_run())


@pytest.mark.parametrize(
    "payload",
    [
        {"features": [{"geometry": "oops"}]},
        {"features": [{"geometry": {"coordinates": "x"}}]},
        {"features": ["nope"]},
        ["not", "a", "collection"],
    ],
)
def test_malformed_secondary_response_moves_on_to_not_found(payload):
    async def _run():
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json=payload if request.url.path.endswith("/api/") else [])
        )
        assert await PhotonGeocoder(transport=transport).search("x") is None
        with pytest.raises(NotFoundError):
            await _resolver(transport).geocode("Cho Ray Hospital")

    asyncio.run(_run())


def test_ground_route_uses_osrm_when_available():
    async def _run():
        transport = _geo_transport(
            nominatim={"Seoul": SEOUL, "Suwon": SUWON},
            osrm={"code": "Ok", "routes": [{"distance": 42000.0, "duration": 3600.0}]},
        )
        route = await _resolver(transport).resolve_route("Seoul", "Suwon")
        assert route.source == "osrm"
        assert route.distance_km == pytest.approx(42.0)
        assert route.duration_hr == pytest.approx(1.0)
        assert [leg.leg_type for leg in route.legs] == [LegType.GROUND]

    asyncio.run(_run())


def test_osrm_failure_falls_back_to_great_circle_at_ground_speed():
    async def _run():
        transport = _geo_transport(nominatim={"Seoul": SEOUL, "Suwon": SUWON}, osrm={"code": "NoRoute"})
        route = await _resolver(transport).resolve_route("Seoul", "Suwon")
        expected = haversine_km(Coordinate(lat=SEOUL[0], lon=SEOUL[1]), Coordinate(lat=SUWON[0], lon=SUWON[1]))
        assert route.source == "great_circle"
        assert route.distance_km == pytest.approx(expected)
        assert route.duration_hr == pytest.approx(expected / 50.0)

    asyncio.run(_run())


def test_long_direct_route_is_a_flight_leg_without_road_routing():
    async def _run():
        calls = []
        transport = _geo_transport(nominatim={"Seoul": SEOUL, "Ho Chi Minh City": HCMC}, calls=calls)
        route = await _resolver(transport).resolve_route("Seoul", "Ho Chi Minh City")
        assert route.legs[0].leg_type == LegType.FLIGHT
        assert route.duration_hr == pytest.approx(route.distance_km / 800.0)
        assert not [c for c in calls if c[0] == "osrm"]

    asyncio.run(_run())


def test_airport_route_has_three_legs_and_prices_the_flight():
    async def _run():
        transport = _geo_transport(nominatim={"Seoul": SEOUL, "Ho Chi Minh City": HCMC})
        route = await _resolver(transport).resolve_route("Seoul", "Ho Chi Minh City", "ICN", "SGNH")
        assert [leg.label for leg in route.legs] == ["Origin → ICN", "ICN → SGN", "SGN → Destination"]
        assert [leg.leg_type for leg in route.legs] == [LegType.GROUND, LegType.FLIGHT, LegType.GROUND]
        assert route.distance_km == route.legs[1].distance_km
        assert route.distance_km == float(round(route.distance_km))
        assert route.duration_hr == pytest.approx(sum(leg.duration_hr for leg in route.legs), abs=0.05)

    asyncio.run(_run())


def test_unknown_airport_is_geocoded_once_and_memoized():
    async def _run():
        calls = []
        transport = _geo_transport(nominatim={"XYZ airport": HANOI}, calls=calls)
        resolver = _resolver(transport)
        first = await resolver.airport("xyz")
        second = await resolver.airport("XYZ")
        assert first == second
        assert calls == [("nominatim", "XYZ airport")]
        assert "XYZ" in resolver.cache

    asyncio.run(_run())


def test_retime_for_mode_changes_only_flight_duration():
    async def _run():
        transport = _geo_transport(nominatim={"Seoul": SEOUL, "Ho Chi Minh City": HCMC})
        resolver = _resolver(transport)
        route = await resolver.resolve_route("Seoul", "Ho Chi Minh City", "ICN", "SGN")
        retimed = resolver.retime_for_mode(route, TransportMode.SHIP)
        assert retimed.distance_km == route.distance_km
        assert retimed.legs[0] == route.legs[0]
        assert retimed.legs[1].duration_hr == pytest.approx(round(route.legs[1].distance_km / 30.0, 1))
        assert retimed.duration_hr > route.duration_hr

    asyncio.run(_run())
