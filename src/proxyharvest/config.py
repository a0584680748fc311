from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class HarvestConfig:
    # Inputs
    sources_file: str
    # Durable store
    db_file: str
    bucket: str
    # Collect runtime
    workers: int
    fetch_timeout: float
    verify_ssl: bool
    # Continuous mode
    interval_seconds: float
    # Recently-seen endpoint window (orchestrator dedupe)
    seen_window_seconds: float
    log_level: str


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() not in ("0", "false", "no", "off")


def load_config_from_env() -> HarvestConfig:
    sources_file = os.environ.get("PROXYHARVEST_SOURCES_FILE", "sources.json")
    db_file = os.environ.get("PROXYHARVEST_DB_FILE", "proxies.db")
    bucket = os.environ.get("PROXYHARVEST_BUCKET", "proxies")

    workers = max(1, int(os.environ.get("PROXYHARVEST_WORKERS", "8")))
    fetch_timeout = float(os.environ.get("PROXYHARVEST_FETCH_TIMEOUT", "10.0"))
    verify_ssl = _env_bool("PROXYHARVEST_VERIFY_SSL", "1")

    interval_seconds = float(os.environ.get("PROXYHARVEST_INTERVAL_SECONDS", "300"))
    seen_window_seconds = float(os.environ.get("PROXYHARVEST_SEEN_WINDOW_SECONDS", "3600"))
    log_level = os.environ.get("PROXYHARVEST_LOG_LEVEL", "INFO").upper()

    return HarvestConfig(
        sources_file=sources_file,
        db_file=db_file,
        bucket=bucket,
        workers=workers,
        fetch_timeout=fetch_timeout,
        verify_ssl=verify_ssl,
        interval_seconds=interval_seconds,
        seen_window_seconds=seen_window_seconds,
        log_level=log_level,
    )
