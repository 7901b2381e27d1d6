from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

import pytz


_STORE_PATH_ENV = "TEMPS_STORE_PATH"
_TIMEZONE_ENV = "TEMPS_TIMEZONE"
_DEVICE_LOCATIONS_ENV = "TEMPS_DEVICE_LOCATIONS"
_INGEST_SECRET_ENV = "TEMPS_INGEST_SECRET"
_RAW_LIMIT_ENV = "TEMPS_RAW_LIMIT"
_SEED_DEMO_ENV = "TEMPS_SEED_DEMO"
_LOG_LEVEL_ENV = "LOG_LEVEL"

DEFAULT_DEVICE_LOCATIONS = "28-00000a1b2c3d=pool,28-00000d4e5f6a=outside"


@dataclass(frozen=True)
class Settings:
    store_path: Optional[str]
    timezone: str
    device_locations: Dict[str, str]
    ingest_secret: Optional[str]
    raw_limit: int
    seed_demo: bool
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip().lower()
    if not candidate:
        return default
    return candidate in {"1", "true", "yes", "on"}


def _read_timezone(default: str) -> str:
    candidate = _read_str_env(_TIMEZONE_ENV, default)
    try:
        pytz.timezone(candidate)
    except pytz.UnknownTimeZoneError:
        return default
    return candidate


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


def parse_device_locations(value: str) -> Dict[str, str]:
    """Parse ``device=location`` pairs separated by commas.

    Malformed pairs (missing ``=`` or an empty side) are skipped.
    """
    mapping: Dict[str, str] = {}
    for pair in value.split(","):
        device_id, sep, location = pair.partition("=")
        device_id = device_id.strip()
        location = location.strip()
        if not sep or not device_id or not location:
            continue
        mapping[device_id] = location
    return mapping


def _read_device_locations(default: str) -> Dict[str, str]:
    mapping = parse_device_locations(_read_str_env(_DEVICE_LOCATIONS_ENV, default))
    return mapping or parse_device_locations(default)


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_path=_read_optional_env(_STORE_PATH_ENV, "./tmp/readings.json"),
        timezone=_read_timezone("UTC"),
        device_locations=_read_device_locations(DEFAULT_DEVICE_LOCATIONS),
        ingest_secret=_read_optional_env(_INGEST_SECRET_ENV, None),
        raw_limit=_read_positive_int(_RAW_LIMIT_ENV, 100),
        seed_demo=_read_bool(_SEED_DEMO_ENV, False),
        log_level=_read_log_level("INFO"),
    )
