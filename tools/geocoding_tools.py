from __future__ import annotations

import logging
import re
from typing import Any, Iterable, List, Optional, Sequence

import httpx

from models.schemas import Coordinate
from settings import SETTINGS

logger = logging.getLogger(__name__)

KNOWN_COUNTRIES: Sequence[str] = (
    "South Korea",
    "Vietnam",
    "Japan",
    "China",
    "Philippines",
    "Thailand",
    "United States",
)

COUNTRY_TOKENS = frozenset(
    {
        "korea",
        "south korea",
        "republic of korea",
        "vietnam",
        "viet nam",
        "japan",
        "china",
        "philippines",
        "thailand",
        "usa",
        "united states",
        "uk",
        "united kingdom",
        "한국",
        "대한민국",
        "베트남",
        "일본",
        "중국",
        "필리핀",
        "태국",
        "미국",
    }
)

FACILITY_WORDS = frozenset(
    {
        "hospital",
        "medical",
        "center",
        "centre",
        "clinic",
        "university",
        "general",
        "병원",
        "의료원",
        "대학교병원",
    }
)


class NotFoundError(LookupError):
    def __init__(self, place: str) -> None:
        super().__init__(f"location not found: {place}")
        self.place = place


def _to_coordinate(lat: Any, lon: Any) -> Optional[Coordinate]:
    try:
        return Coordinate(lat=float(lat), lon=float(lon))
    except (TypeError, ValueError):
        return None


class NominatimGeocoder:
    name = "nominatim"

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or SETTINGS.nominatim_base_url).rstrip("/")
        self.user_agent = user_agent or SETTINGS.geo_user_agent
        self.timeout = timeout or SETTINGS.geo_timeout_seconds
        self.transport = transport

    async def search(self, query: str) -> Optional[Coordinate]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(
                    f"{self.base_url}/search",
                    params={"q": query, "format": "json", "limit": 1},
                    headers={"User-Agent": self.user_agent},
                )
                resp.raise_for_status()
                rows = resp.json() if resp.content else []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocoder_request_failed", extra={"provider": self.name, "error": str(exc)})
            return None
        if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
            return None
        return _to_coordinate(rows[0].get("lat"), rows[0].get("lon"))


class PhotonGeocoder:
    name = "photon"

    def __init__(
        self,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or SETTINGS.photon_base_url).rstrip("/")
        self.user_agent = user_agent or SETTINGS.geo_user_agent
        self.timeout = timeout or SETTINGS.geo_timeout_seconds
        self.transport = transport

    async def search(self, query: str) -> Optional[Coordinate]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(
                    f"{self.base_url}/api/",
                    params={"q": query, "limit": 1},
                    headers={"User-Agent": self.user_agent},
                )
                resp.raise_for_status()
                data = resp.json() if resp.content else {}
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("geocoder_request_failed", extra={"provider": self.name, "error": str(exc)})
            return None
        features = data.get("features") if isinstance(data, dict) else None
        if not isinstance(features, list) or not features or not isinstance(features[0], dict):
            return None
        geometry = features[0].get("geometry")
        if not isinstance(geometry, dict):
            return None
        coords = geometry.get("coordinates")
        if not isinstance(coords, list) or len(coords) < 2:
            return None
        # GeoJSON order is lon, lat.
        return _to_coordinate(coords[1], coords[0])


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "").replace(",", " ")).strip()


def _unique(values: Iterable[str]) -> List[str]:
    out: List[str] = []
    for value in values:
        if value and value not in out:
            out.append(value)
    return out


def _strip_facility_words(text: str) -> str:
    return " ".join(w for w in _squash(text).split(" ") if w.lower() not in FACILITY_WORDS)


def trailing_country(text: str) -> Optional[str]:
    cleaned = _squash(text)
    lower = cleaned.lower()
    for token in sorted(COUNTRY_TOKENS, key=len, reverse=True):
        if lower == token or lower.endswith(" " + token):
            return cleaned[len(cleaned) - len(token):]
    return None


def split_locality_country(text: str) -> Optional[str]:
    """Rewrite ``"<facility> <city> <country>"`` as ``"<city>, <country>"``."""
    cleaned = _squash(text)
    country = trailing_country(cleaned)
    if not country:
        return None
    head = cleaned[: len(cleaned) - len(country)].strip()
    words = [w for w in head.split(" ") if w and w.lower() not in FACILITY_WORDS]
    if not words:
        return None
    return f"{words[-1]}, {country}"


def suffix_candidates(text: str, countries: Sequence[str] = KNOWN_COUNTRIES, limit: int = 24) -> List[str]:
    """Free-text variants, most specific first, each suffixed with a known country name."""
    cleaned = _squash(text)
    stripped = _strip_facility_words(cleaned)
    tail = " ".join(stripped.split(" ")[-2:]) if stripped else ""
    variants = _unique([cleaned, stripped, tail])
    if trailing_country(cleaned):
        return variants[:limit]
    return _unique(f"{variant}, {country}" for variant in variants for country in countries)[:limit]


class GeocodeStrategy:
    name = "strategy"

    async def resolve(self, text: str) -> Optional[Coordinate]:
        raise NotImplementedError


class ExactQueryStrategy(GeocodeStrategy):
    name = "exact"

    def __init__(self, provider: NominatimGeocoder | PhotonGeocoder) -> None:
        self.provider = provider

    async def resolve(self, text: str) -> Optional[Coordinate]:
        return await self.provider.search(text.strip())


class LocalityCountryStrategy(GeocodeStrategy):
    name = "locality_country"

    def __init__(self, provider: NominatimGeocoder | PhotonGeocoder) -> None:
        self.provider = provider

    async def resolve(self, text: str) -> Optional[Coordinate]:
        rewritten = split_locality_country(text)
        if not rewritten or rewritten == text.strip():
            return None
        return await self.provider.search(rewritten)


class CountrySuffixStrategy(GeocodeStrategy):
    name = "country_suffix"

    def __init__(
        self,
        providers: Sequence[NominatimGeocoder | PhotonGeocoder],
        countries: Sequence[str] = KNOWN_COUNTRIES,
    ) -> None:
        self.providers = list(providers)
        self.countries = countries

    async def resolve(self, text: str) -> Optional[Coordinate]:
        candidates = suffix_candidates(text, self.countries)
        for provider in self.providers:
            for query in candidates:
                coordinate = await provider.search(query)
                if coordinate is not None:
                    logger.info("geocode_candidate_matched", extra={"provider": provider.name, "query": query})
                    return coordinate
        return None


def default_geocode_strategies(
    primary: NominatimGeocoder | PhotonGeocoder,
    secondary: NominatimGeocoder | PhotonGeocoder,
) -> List[GeocodeStrategy]:
    return [
        ExactQueryStrategy(primary),
        LocalityCountryStrategy(primary),
        CountrySuffixStrategy([primary, secondary]),
    ]


async def geocode_with(strategies: Sequence[GeocodeStrategy], text: str) -> Coordinate:
    if not text or not text.strip():
        raise NotFoundError(text or "")
    for strategy in strategies:
        coordinate = await strategy.resolve(text)
        if coordinate is not None:
            return coordinate
        logger.info("geocode_tier_failed", extra={"tier": strategy.name, "place": text})
    raise NotFoundError(text)
