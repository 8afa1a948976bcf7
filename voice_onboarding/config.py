"""
Centralized configuration with environment variable overrides.

Credentials, environment switches, timeouts and voice pipeline settings
are configurable here. Nothing is hardcoded in service or tool logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from voice_onboarding.logging_context import RequestIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

SQUARE_ENVIRONMENTS = ("SANDBOX", "PRODUCTION")
SQUARE_PROVIDER_KEYS = ("squareup", "squareup-sandbox")

_TRUTHY = {"1", "true", "yes", "on"}


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str = "false") -> bool:
    return os.getenv(env_var, default).strip().lower() in _TRUTHY


def _csv(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase project credentials. The service role key bypasses RLS."""

    url: str = os.getenv("SUPABASE_URL", "")
    service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.service_role_key)


@dataclass(frozen=True)
class NangoConfig:
    """Nango OAuth broker settings."""

    secret_key: str = os.getenv("NANGO_SECRET_KEY", "")
    host: str = os.getenv("NANGO_HOST", "https://api.nango.dev")
    webhook_secret: str = os.getenv("NANGO_WEBHOOK_SECRET", "")
    timeout_sec: float = _safe_float("NANGO_TIMEOUT", "15.0")


@dataclass(frozen=True)
class SquareConfig:
    """Square environment switch and REST client settings."""

    environment: str = os.getenv("SQUARE_ENV", "SANDBOX").upper()
    api_version: str = os.getenv("SQUARE_API_VERSION", "2025-01-23")
    timeout_sec: float = _safe_float("SQUARE_TIMEOUT", "30.0")
    test_mode: bool = _safe_bool("SQUARE_TEST_MODE")

    @property
    def is_production(self) -> bool:
        return self.environment == "PRODUCTION"

    @property
    def provider_config_key(self) -> str:
        """Nango integration key; anything but PRODUCTION maps to the sandbox."""
        return "squareup" if self.is_production else "squareup-sandbox"

    @property
    def base_url(self) -> str:
        if self.is_production:
            return "https://connect.squareup.com/v2"
        return "https://connect.squareupsandbox.com/v2"


@dataclass(frozen=True)
class VoiceConfig:
    """LLM, STT and ElevenLabs voice pipeline settings."""

    llm_model: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
    llm_temperature: float = _safe_float("LLM_TEMPERATURE", "0.3")
    stt_model: str = os.getenv("STT_MODEL", "nova-3")
    stt_language: str = os.getenv("STT_LANGUAGE", "en")
    tts_model: str = os.getenv("ELEVENLABS_MODEL", "eleven_turbo_v2_5")
    tts_voice_id: str = os.getenv("ELEVENLABS_VOICE_ID", "EXAVITQu4vr4xnSDxMaL")
    owner_user_id: str = os.getenv("BOOKING_OWNER_USER_ID", "")
    search_days: int = _safe_int("BOOKING_SEARCH_DAYS", "7")


@dataclass(frozen=True)
class ApiConfig:
    """HTTP API server settings."""

    host: str = os.getenv("API_HOST", "0.0.0.0")
    port: int = _safe_int("API_PORT", "8000")
    cors_origins: tuple[str, ...] = _csv("API_CORS_ORIGINS", "*")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    nango: NangoConfig = field(default_factory=NangoConfig)
    square: SquareConfig = field(default_factory=SquareConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    agent_name: str = os.getenv("AGENT_NAME", "square-booking-agent")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.square.environment not in SQUARE_ENVIRONMENTS:
        raise ValueError(
            f"SQUARE_ENV must be one of {', '.join(SQUARE_ENVIRONMENTS)}, "
            f"got {config.square.environment!r}"
        )
    if config.square.timeout_sec <= 0:
        raise ValueError(f"SQUARE_TIMEOUT must be > 0, got {config.square.timeout_sec}")
    if config.nango.timeout_sec <= 0:
        raise ValueError(f"NANGO_TIMEOUT must be > 0, got {config.nango.timeout_sec}")
    if not 0.0 <= config.voice.llm_temperature <= 2.0:
        raise ValueError(
            f"LLM_TEMPERATURE must be between 0.0 and 2.0, got {config.voice.llm_temperature}"
        )
    if config.voice.search_days < 1:
        raise ValueError(
            f"BOOKING_SEARCH_DAYS must be >= 1, got {config.voice.search_days}"
        )
    if not 1 <= config.api.port <= 65535:
        raise ValueError(f"API_PORT must be between 1 and 65535, got {config.api.port}")


def missing_credentials(config: AppConfig) -> list[str]:
    """Names of required credentials that are unset.

    Checked when a client is built rather than at import so the package
    stays importable without a populated environment.
    """
    missing = []
    if not config.supabase.url:
        missing.append("SUPABASE_URL")
    if not config.supabase.service_role_key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if not config.nango.secret_key:
        missing.append("NANGO_SECRET_KEY")
    return missing


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
    logger.info(
        "Configuration loaded (square=%s, test_mode=%s)",
        config.square.environment,
        config.square.test_mode,
    )
    return config


# Singleton instance
settings = load_config()
