"""Runtime settings read from ``FOOTYDB_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from footydb.names.lookup import DEFAULT_USER_AGENT


logger = logging.getLogger(__name__)

_DATA_DIR_ENV = "FOOTYDB_DATA_DIR"
_BACKUP_DIR_ENV = "FOOTYDB_BACKUP_DIR"
_CONCURRENCY_ENV = "FOOTYDB_LOOKUP_CONCURRENCY"
_DELAY_ENV = "FOOTYDB_LOOKUP_DELAY_MS"
_SKIP_DAYS_ENV = "FOOTYDB_SKIP_DAYS"
_TIMEOUT_ENV = "FOOTYDB_LOOKUP_TIMEOUT"
_USER_AGENT_ENV = "FOOTYDB_USER_AGENT"
_LOG_LEVEL_ENV = "FOOTYDB_LOG_LEVEL"
_STRICT_KEYS_ENV = "FOOTYDB_STRICT_KEYS"

_CONCURRENCY_DEFAULT = 3
_DELAY_MS_DEFAULT = 150
_SKIP_DAYS_DEFAULT = 30
_TIMEOUT_DEFAULT = 15.0


def _env_float(name: str, default: float, *, clamp_min: float | None = None, clamp_max: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s: %s; using default %.2f", name, raw, default)
        return default
    if clamp_min is not None:
        value = max(clamp_min, value)
    if clamp_max is not None:
        value = min(clamp_max, value)
    return value


def _env_int(name: str, default: int, *, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    if max_value is not None:
        value = min(max_value, value)
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    backup_dir: Path
    lookup_concurrency: int
    lookup_delay_ms: int
    skip_days: int
    lookup_timeout: float
    user_agent: str
    log_level: str
    strict_keys: bool

    @property
    def name_map_path(self) -> Path:
        return self.data_dir / "name_map.csv"

    @property
    def failure_cache_path(self) -> Path:
        return self.data_dir / "name_map_fail.csv"

    @property
    def callups_path(self) -> Path:
        return self.data_dir / "callups_site.csv"

    @property
    def club_squads_path(self) -> Path:
        return self.data_dir / "club_squads_site.csv"

    @property
    def club_master_path(self) -> Path:
        return self.data_dir / "club_master.csv"

    @property
    def league_master_path(self) -> Path:
        return self.data_dir / "league_master.csv"

    @property
    def transfers_path(self) -> Path:
        return self.data_dir / "transfers.csv"

    @property
    def match_events_path(self) -> Path:
        return self.data_dir / "match_events.csv"

    @property
    def awards_path(self) -> Path:
        return self.data_dir / "competition_awards.csv"

    @property
    def country_master_path(self) -> Path:
        return self.data_dir / "country_master.csv"


def get_settings() -> Settings:
    """Build settings from the environment; invalid values fall back to defaults."""

    data_dir = Path(os.getenv(_DATA_DIR_ENV) or "data")
    return Settings(
        data_dir=data_dir,
        backup_dir=Path(os.getenv(_BACKUP_DIR_ENV) or "_backup"),
        lookup_concurrency=_env_int(_CONCURRENCY_ENV, _CONCURRENCY_DEFAULT, min_value=1, max_value=10),
        lookup_delay_ms=_env_int(_DELAY_ENV, _DELAY_MS_DEFAULT, min_value=0),
        skip_days=_env_int(_SKIP_DAYS_ENV, _SKIP_DAYS_DEFAULT, min_value=0),
        lookup_timeout=_env_float(_TIMEOUT_ENV, _TIMEOUT_DEFAULT, clamp_min=1.0),
        user_agent=(os.getenv(_USER_AGENT_ENV) or DEFAULT_USER_AGENT).strip(),
        log_level=(os.getenv(_LOG_LEVEL_ENV) or "INFO").strip().upper(),
        strict_keys=_env_bool(_STRICT_KEYS_ENV),
    )
