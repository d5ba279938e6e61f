import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return float(v.strip())
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or not v.strip():
        return default
    try:
        return int(v.strip())
    except ValueError:
        return default


def _env_optional(name: str) -> Optional[str]:
    v = (os.getenv(name) or "").strip()
    return v or None


@dataclass
class Settings:
    """Application settings loaded from environment variables with safe defaults.

    TCGplayer credentials are optional here; the token provider fails fast
    with a descriptive error the first time they are actually needed.
    """

    app_name: str = "TCG Companion Sync"
    env: str = "dev"
    database_url: str = "sqlite+aiosqlite:///./app.db"
    log_level: str = "INFO"
    limitless_base_url: str = "https://onepiece.limitlesstcg.com"
    http_timeout_seconds: float = 30.0
    tcgplayer_public_key: Optional[str] = None
    tcgplayer_private_key: Optional[str] = None
    tcgplayer_api_version: str = "v1.39.0"
    tcgplayer_sync_delay_ms: int = 2000
    tcg_catalog_dry_run: bool = True
    sync_retry_attempts: int = 3
    sync_retry_base_delay_seconds: float = 1.0
    cron_secret: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            env=os.getenv("ENV", cls.env),
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
            limitless_base_url=os.getenv("LIMITLESS_BASE_URL") or cls.limitless_base_url,
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", cls.http_timeout_seconds),
            tcgplayer_public_key=_env_optional("TCGPLAYER_PUBLIC_KEY"),
            tcgplayer_private_key=_env_optional("TCGPLAYER_PRIVATE_KEY"),
            tcgplayer_api_version=os.getenv("TCGPLAYER_API_VERSION") or cls.tcgplayer_api_version,
            tcgplayer_sync_delay_ms=_env_int("TCGPLAYER_SYNC_DELAY_MS", cls.tcgplayer_sync_delay_ms),
            # Catalog writes stay off unless explicitly enabled with TCG_CATALOG_DRY_RUN=0.
            tcg_catalog_dry_run=(os.getenv("TCG_CATALOG_DRY_RUN") or "1").strip() != "0",
            sync_retry_attempts=max(1, _env_int("SYNC_RETRY_ATTEMPTS", cls.sync_retry_attempts)),
            sync_retry_base_delay_seconds=_env_float(
                "SYNC_RETRY_BASE_DELAY_SECONDS", cls.sync_retry_base_delay_seconds
            ),
            cron_secret=_env_optional("CRON_SECRET"),
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
