from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

_DEFAULT_RATE_TABLE = str(Path(__file__).resolve().parent / "pricing" / "rate_table.json")


def _bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    default_llm_provider: str = os.getenv("DEFAULT_LLM_PROVIDER", "openai")
    default_model: str = os.getenv("DEFAULT_MODEL", "gpt-4o")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    anthropic_base_url: str = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com/v1")
    xai_api_key: str = os.getenv("XAI_API_KEY", "")
    xai_base_url: str = os.getenv("XAI_BASE_URL", "https://api.x.ai/v1")
    llm_timeout_seconds: int = _int("LLM_TIMEOUT_SECONDS", 25)
    llm_temperature: float = _float("LLM_TEMPERATURE", 0.2)

    nominatim_base_url: str = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
    photon_base_url: str = os.getenv("PHOTON_BASE_URL", "https://photon.komoot.io")
    osrm_base_url: str = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
    geo_user_agent: str = os.getenv("GEO_USER_AGENT", "medevac-quote-agent/1.0")
    geo_timeout_seconds: int = _int("GEO_TIMEOUT_SECONDS", 15)

    ground_ambulance_speed_kmh: float = _float("GROUND_AMBULANCE_SPEED_KMH", 50.0)
    destination_ambulance_speed_kmh: float = _float("DESTINATION_AMBULANCE_SPEED_KMH", 40.0)
    cruise_speed_kmh: float = _float("CRUISE_SPEED_KMH", 800.0)
    ground_leg_max_km: float = _float("GROUND_LEG_MAX_KM", 300.0)

    rate_table_path: str = os.getenv("RATE_TABLE_PATH", _DEFAULT_RATE_TABLE)
    default_days: int = _int("DEFAULT_DAYS", 3)
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "KRW")
    history_window: int = _int("HISTORY_WINDOW", 12)

    audit_log_path: str = os.getenv("AUDIT_LOG_PATH", "./data/audit.log.jsonl")

    debug: bool = _bool("DEBUG", True)


SETTINGS = Settings()
