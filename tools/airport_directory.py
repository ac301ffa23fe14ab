from __future__ import annotations

from typing import Dict, Optional

from memory.coordinate_cache import normalize_identifier
from models.schemas import Coordinate

AIRPORTS: Dict[str, Coordinate] = {
    "ICN": Coordinate(lat=37.4691, lon=126.4505),
    "GMP": Coordinate(lat=37.5583, lon=126.7901),
    "PUS": Coordinate(lat=35.1795, lon=128.9382),
    "CJU": Coordinate(lat=33.5113, lon=126.4930),
    "SGN": Coordinate(lat=10.8188, lon=106.6520),
    "HAN": Coordinate(lat=21.2212, lon=105.8072),
    "DAD": Coordinate(lat=16.0439, lon=108.1994),
    "BKK": Coordinate(lat=13.6900, lon=100.7501),
    "MNL": Coordinate(lat=14.5086, lon=121.0194),
    "NRT": Coordinate(lat=35.7720, lon=140.3929),
    "PVG": Coordinate(lat=31.1443, lon=121.8083),
}

ALIASES: Dict[str, str] = {
    "SGNH": "SGN",
    "GIMPO": "GMP",
    "INCHEON": "ICN",
    "인천": "ICN",
    "김포": "GMP",
}


def normalize_airport_code(code: str) -> str:
    raw = (code or "").strip()
    if raw in ALIASES:
        return ALIASES[raw]
    key = normalize_identifier(raw)
    return ALIASES.get(key, key)


def lookup_airport(code: str) -> Optional[Coordinate]:
    return AIRPORTS.get(normalize_airport_code(code))
