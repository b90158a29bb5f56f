from __future__ import annotations

import os
from dataclasses import dataclass, field


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_positive_float(name: str, default: float) -> float:
    value = _get_float(name, default)
    return value if value > 0 else default


def _get_list(name: str) -> frozenset[str]:
    raw = os.getenv(name) or ""
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    service_name: str = field(
        default_factory=lambda: _get_str("SERVICE_NAME", "postgres-exporter")
    )
    data_source_name: str = field(
        default_factory=lambda: _get_str("DATA_SOURCE_NAME", "postgresql:///postgres")
    )

    # HTTP endpoint
    listen_address: str = field(default_factory=lambda: _get_str("LISTEN_ADDRESS", "0.0.0.0"))
    listen_port: int = field(default_factory=lambda: _get_int("LISTEN_PORT", 9187))
    telemetry_path: str = field(default_factory=lambda: _get_str("TELEMETRY_PATH", "/metrics"))

    # Scrape deadline; the offset is subtracted from Prometheus' own timeout header
    scrape_timeout_seconds: float = field(
        default_factory=lambda: _get_positive_float("SCRAPE_TIMEOUT_SECONDS", 10.0)
    )
    scrape_timeout_offset_seconds: float = field(
        default_factory=lambda: _get_float("SCRAPE_TIMEOUT_OFFSET_SECONDS", 0.5)
    )

    # Connection pool
    pool_min_size: int = field(default_factory=lambda: _get_int("POOL_MIN_SIZE", 1))
    pool_max_size: int = field(default_factory=lambda: _get_int("POOL_MAX_SIZE", 4))
    pool_acquire_timeout_seconds: float = field(
        default_factory=lambda: _get_float("POOL_ACQUIRE_TIMEOUT_SECONDS", 5.0)
    )
    connect_timeout_seconds: int = field(
        default_factory=lambda: _get_int("CONNECT_TIMEOUT_SECONDS", 5)
    )

    # Collector selection on top of each collector's enabled-by-default flag
    collectors_enabled: frozenset[str] = field(
        default_factory=lambda: _get_list("COLLECTORS_ENABLED")
    )
    collectors_disabled: frozenset[str] = field(
        default_factory=lambda: _get_list("COLLECTORS_DISABLED")
    )


settings = Settings()
