import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False
    LOG_LEVEL: str = "INFO"

    # Billing backend (REST API owned by the billing service)
    BILLING_API_URL: Optional[str] = None
    BILLING_TIMEOUT_SECONDS: float = 10.0

    # Checkout flow
    ONBOARDING_REDIRECT_DELAY_SECONDS: float = 2.0
    GUARANTEE_PERIOD_DAYS: int = 90

    # Per-token sessions kept in process
    SESSION_CACHE_SIZE: int = 1000
    SESSION_IDLE_TTL_SECONDS: float = 1800.0
    NAVIGATOR_HISTORY_SIZE: int = 10

    # UI paths the orchestrator and gate point users at
    ONBOARDING_URL: str = "/onboarding"
    PRICING_URL: str = "/pricing"
    LOGIN_URL: str = "/login"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def cors_origins(settings_obj: Optional[Settings] = None) -> list[str]:
    cfg = settings_obj or settings
    return [origin.strip() for origin in cfg.CORS_ORIGINS.split(",") if origin.strip()]


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("creditpath")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "BILLING_API_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.ONBOARDING_REDIRECT_DELAY_SECONDS < 0:
        message = "ONBOARDING_REDIRECT_DELAY_SECONDS must be >= 0"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.SESSION_CACHE_SIZE < 1:
        message = "SESSION_CACHE_SIZE must be >= 1"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
