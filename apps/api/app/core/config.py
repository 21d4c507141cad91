"""
Runtime configuration (env-driven).

Defaults:
- DATABASE_URL: sqlite:///./data/force.db
- WEEK_TZ: host local time
- SWEEP_INTERVAL_SECONDS: 0 (background sweep off)
"""
from __future__ import annotations

import os
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

DEFAULT_DATABASE_URL = "sqlite:///./data/force.db"


def _parse_bool(v: Optional[str], default: bool) -> bool:
    if v is None:
        return default
    return v.strip().lower() not in ("0", "false", "no", "off", "")


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_app_version() -> str:
    return os.getenv("APP_VERSION", "0.1.0")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO")


def get_week_timezone() -> Optional[tzinfo]:
    """IANA zone from WEEK_TZ; None means the host's local rules, applied per instant."""
    name = (os.getenv("WEEK_TZ") or "").strip()
    if name:
        return ZoneInfo(name)
    return None


def get_sweep_interval_seconds() -> float:
    raw = os.getenv("SWEEP_INTERVAL_SECONDS", "0")
    try:
        v = float(raw)
    except ValueError:
        return 0.0
    return v if v > 0 else 0.0


def auto_create_schema() -> bool:
    return _parse_bool(os.getenv("AUTO_CREATE_SCHEMA"), default=True)
