"""
Application configuration using Pydantic Settings
"""
from functools import lru_cache
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    """
    # Database (single-user local store by default)
    DATABASE_URL: str = "sqlite:///./pocket_budget.sqlite3"

    # Application
    TIMEZONE: str = "Asia/Jakarta"
    CURRENCY_PREFIX: str = "Rp"
    DEBUG: bool = False

    # Coaching journal keeps only the newest N entries
    COACHING_MEMORY_LIMIT: int = 200

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    def get_sqlalchemy_url(self) -> str:
        """
        Convert DATABASE_URL to SQLAlchemy format (postgresql+psycopg://)
        """
        url = self.DATABASE_URL
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    def get_timezone(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance (singleton)
    """
    return Settings()
