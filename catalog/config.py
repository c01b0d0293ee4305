from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings (ignored for SQLite)
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes
    DB_ECHO: bool = False

    # App Settings
    APP_NAME: str = "Catalog Inventory Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Reservation Settings
    RESERVATION_MAX_RETRIES: int = 3  # Attempts before giving up on a version conflict
    RESERVATION_RETRY_BACKOFF: float = 0.01  # Seconds, multiplied by attempt number

    # Pricing
    DEFAULT_CURRENCY: str = "USD"

    @field_validator('RESERVATION_MAX_RETRIES')
    @classmethod
    def validate_max_retries(cls, v):
        if v < 1:
            raise ValueError("RESERVATION_MAX_RETRIES must be at least 1")
        return v

    @field_validator('DEFAULT_CURRENCY')
    @classmethod
    def normalize_currency(cls, v):
        return v.strip().upper()

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
