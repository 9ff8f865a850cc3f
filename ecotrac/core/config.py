import logging

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # HTTP
    CORS_ALLOW_ORIGINS: str = "http://localhost:5174"  # comma-separated

    # Progress engine
    LEADERBOARD_LIMIT: int = 10
    PROGRESS_MAX_RETRIES: int = 3  # optimistic retries on version conflict

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ALLOW_ORIGINS.split(",") if origin.strip()]

settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate required configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    Without DATABASE_URL the service keeps challenges in memory.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("ecotrac")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    required_keys = [
        "DATABASE_URL",
    ]

    missing = [key for key in required_keys if not getattr(cfg, key, None)]
    if missing:
        message = f"Missing required configuration: {', '.join(missing)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    if cfg.LEADERBOARD_LIMIT < 1:
        message = "LEADERBOARD_LIMIT must be at least 1"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)

    return True
