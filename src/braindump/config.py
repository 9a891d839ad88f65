"""Environment configuration for the braindump service."""

import os
from dataclasses import dataclass
from typing import Optional

from braindump.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash-latest"
MIN_TIMEOUT_SECONDS = 8.0
MAX_TIMEOUT_SECONDS = 12.0
MIN_CALL_INTERVAL_SECONDS = 2.0
MAX_CALL_INTERVAL_SECONDS = 3.0


@dataclass
class Settings:
    """Runtime settings read from the environment."""

    gemini_api_key: Optional[str]
    llm_model: str = DEFAULT_MODEL
    llm_temperature: float = 0.4
    llm_max_output_tokens: int = 2048
    llm_timeout_seconds: float = 10.0
    llm_min_interval_seconds: float = 2.0
    duplicate_threshold: float = 0.75
    longevity_threshold: float = 0.75
    history_limit: int = 2000
    max_lines: int = 500
    api_token: Optional[str] = None
    port: int = 8098
    metrics_port: int = 8096
    postgres_host: Optional[str] = None
    postgres_port: int = 5432
    postgres_db: Optional[str] = None
    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    log_level: str = "INFO"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid {name}='{raw}', using default {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}='{raw}', using default {default}")
        return default


def _clamp(name: str, value: float, low: float, high: float) -> float:
    if value < low or value > high:
        clamped = max(low, min(high, value))
        logger.warning(f"{name}={value} outside [{low}, {high}], using {clamped}")
        return clamped
    return value


def load_settings() -> Settings:
    """Read settings from environment variables.

    Missing optional values fall back to defaults; unparsable numbers are
    logged and replaced by their defaults.

    Returns:
        Settings
    """
    gemini_api_key = os.getenv("GEMINI_API_KEY") or None
    if not gemini_api_key:
        logger.warning("GEMINI_API_KEY not set; analysis will use heuristics")

    return Settings(
        gemini_api_key=gemini_api_key,
        llm_model=os.getenv("BRAINDUMP_LLM_MODEL", DEFAULT_MODEL),
        llm_temperature=_env_float("BRAINDUMP_LLM_TEMPERATURE", 0.4),
        llm_max_output_tokens=_env_int("BRAINDUMP_LLM_MAX_OUTPUT_TOKENS", 2048),
        llm_timeout_seconds=_clamp(
            "BRAINDUMP_LLM_TIMEOUT_SECONDS",
            _env_float("BRAINDUMP_LLM_TIMEOUT_SECONDS", 10.0),
            MIN_TIMEOUT_SECONDS,
            MAX_TIMEOUT_SECONDS,
        ),
        llm_min_interval_seconds=_clamp(
            "BRAINDUMP_LLM_MIN_INTERVAL_SECONDS",
            _env_float("BRAINDUMP_LLM_MIN_INTERVAL_SECONDS", 2.0),
            MIN_CALL_INTERVAL_SECONDS,
            MAX_CALL_INTERVAL_SECONDS,
        ),
        duplicate_threshold=_env_float("BRAINDUMP_DUPLICATE_THRESHOLD", 0.75),
        longevity_threshold=_env_float("BRAINDUMP_LONGEVITY_THRESHOLD", 0.75),
        history_limit=_env_int("BRAINDUMP_HISTORY_LIMIT", 2000),
        max_lines=_env_int("BRAINDUMP_MAX_LINES", 500),
        api_token=os.getenv("BRAINDUMP_API_TOKEN") or None,
        port=_env_int("BRAINDUMP_PORT", 8098),
        metrics_port=_env_int("METRICS_PORT", 8096),
        postgres_host=os.getenv("POSTGRES_HOST"),
        postgres_port=_env_int("POSTGRES_PORT", 5432),
        postgres_db=os.getenv("POSTGRES_DB"),
        postgres_user=os.getenv("POSTGRES_USER"),
        postgres_password=os.getenv("POSTGRES_PASSWORD"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


def require_postgres(settings: Settings) -> None:
    """Raise ValueError naming the first missing Postgres setting."""
    for env_name, value in (
        ("POSTGRES_HOST", settings.postgres_host),
        ("POSTGRES_DB", settings.postgres_db),
        ("POSTGRES_USER", settings.postgres_user),
        ("POSTGRES_PASSWORD", settings.postgres_password),
    ):
        if not value:
            raise ValueError(f"{env_name} environment variable not set")
