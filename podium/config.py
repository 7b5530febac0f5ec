from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return v.strip() if v and v.strip() else default


def _env_bool(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default).strip().lower()
    return v in ("1", "true", "yes", "on")


def _env_float(name: str, default: str) -> float:
    try:
        return float(os.getenv(name, default))
    except Exception:
        return float(default)


def _env_int(name: str, default: str) -> int:
    try:
        return int(os.getenv(name, default))
    except Exception:
        return int(default)


@dataclass(frozen=True)
class Settings:
    service_name: str = "podium"
    session_ttl_s: float = 4 * 60 * 60

    stream_keepalive_s: float = 15.0
    stream_poll_s: float = 2.0
    max_streams: int = 0                 # 0 = unlimited

    sweep_enabled: bool = True
    sweep_interval_s: float = 30 * 60

    feedback_max_chars: int = 2000
    feedback_rate_limit: int = 30        # 0 = disabled
    feedback_rate_window_s: float = 60.0

    audience_path: str = "/presentation"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8111


def load_settings() -> Settings:
    return Settings(
        service_name=_env_str("PODIUM_SERVICE_NAME", "podium"),
        session_ttl_s=_env_float("PODIUM_SESSION_TTL_S", "14400"),
        stream_keepalive_s=_env_float("PODIUM_STREAM_KEEPALIVE_S", "15"),
        stream_poll_s=_env_float("PODIUM_STREAM_POLL_S", "2"),
        max_streams=_env_int("PODIUM_MAX_STREAMS", "0"),
        sweep_enabled=_env_bool("PODIUM_SWEEP_ENABLED", "1"),
        sweep_interval_s=_env_float("PODIUM_SWEEP_INTERVAL_S", "1800"),
        feedback_max_chars=_env_int("PODIUM_FEEDBACK_MAX_CHARS", "2000"),
        feedback_rate_limit=_env_int("PODIUM_FEEDBACK_RATE_LIMIT", "30"),
        feedback_rate_window_s=_env_float("PODIUM_FEEDBACK_RATE_WINDOW_S", "60"),
        audience_path=_env_str("PODIUM_AUDIENCE_PATH", "/presentation").rstrip("/"),
        log_level=_env_str("PODIUM_LOG_LEVEL", "INFO").upper(),
        host=_env_str("PODIUM_HOST", "0.0.0.0"),
        port=_env_int("PODIUM_PORT", "8111"),
    )
