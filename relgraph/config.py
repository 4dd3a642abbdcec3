from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Database settings
    DATABASE_URL: str = "postgresql://localhost:5432/relgraph"

    # Auth settings (JWKS-backed bearer tokens)
    AUTH_JWKS_URL: str = "http://localhost:8000/.well-known/jwks.json"
    AUTH_AUDIENCE: str = "authenticated"

    # Google OAuth settings
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None

    # 64 hex chars (32 bytes) for AES-256-GCM
    ENCRYPTION_KEY: str | None = None

    # =================================================================
    # CALENDAR SYNC SETTINGS
    # =================================================================
    CALENDAR_SYNC_WINDOW_DAYS: int = 365
    CALENDAR_PAGE_SIZE: int = 250
    MAX_MEETINGS_PER_CONTACT: int = 10
    RECONCILE_BATCH_SIZE: int = 50
    MAX_CONCURRENT_SYNCS: int = 5
    CALENDAR_SYNC_INTERVAL_MINUTES: int = 360
    CALENDAR_SYNC_TIMEOUT_SECONDS: float = 300.0

    # In-process identity cache used by request authentication
    USER_CACHE_TTL_SECONDS: float = 300.0
    USER_CACHE_MAX_ENTRIES: int = 10_000

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def is_production(self) -> bool:
        return self.environment == "production"

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 2,
                    "max_size": 6,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
