"""Configuration helpers for session synchronization runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_RELAY_URL = "https://ntfy.sh"
DEFAULT_TOPIC_PREFIX = "gemini_impostor_game_v2_"
DEFAULT_GEMINI_MODEL = "gemini-3-flash-preview"


@dataclass(frozen=True)
class SyncSettings:
    relay_url: str
    topic_prefix: str
    heartbeat_seconds: float
    join_retry_seconds: float
    topic_timeout_seconds: float
    gemini_api_key: str | None
    gemini_model: str
    relay_host: str
    relay_port: int
    log_level: str


def _positive_float(name: str, default: str) -> float:
    value = float(os.getenv(name, default))
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> SyncSettings:
    port_raw = os.getenv("IMPOSTOR_RELAY_PORT", "8080")
    return SyncSettings(
        relay_url=os.getenv("IMPOSTOR_RELAY_URL", DEFAULT_RELAY_URL).rstrip("/"),
        topic_prefix=os.getenv("IMPOSTOR_TOPIC_PREFIX", DEFAULT_TOPIC_PREFIX),
        heartbeat_seconds=_positive_float("IMPOSTOR_HEARTBEAT_SECONDS", "2.0"),
        join_retry_seconds=_positive_float("IMPOSTOR_JOIN_RETRY_SECONDS", "1.5"),
        topic_timeout_seconds=_positive_float("IMPOSTOR_TOPIC_TIMEOUT_SECONDS", "5.0"),
        gemini_api_key=os.getenv("IMPOSTOR_GEMINI_API_KEY") or os.getenv("API_KEY") or None,
        gemini_model=os.getenv("IMPOSTOR_GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        relay_host=os.getenv("IMPOSTOR_RELAY_HOST", "127.0.0.1"),
        relay_port=int(port_raw),
        log_level=os.getenv("IMPOSTOR_LOG_LEVEL", "INFO").upper(),
    )
