"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.config.constants import DEFAULT_UPLINE_DISPLAY_DEPTH


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str
    database_echo: bool = False

    # Hierarchy cache
    hierarchy_cache_depth: int | None = Field(
        default=None,
        ge=1,
        description=(
            "Maximum number of ancestor levels stored in partner_hierarchy "
            "per user (unset = full chain)"
        ),
    )
    upline_display_depth: int = Field(
        default=DEFAULT_UPLINE_DISPLAY_DEPTH,
        ge=1,
        description="Number of upline levels shown in admin views",
    )

    # Admin bot (optional)
    telegram_bot_token: str | None = None
    admin_telegram_ids: str = ""  # Comma-separated list
    redis_url: str | None = None  # FSM storage for bot session state

    log_level: str = "INFO"
    log_file: str = "logs/hierarchy.log"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator('database_url')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL and pin the asyncpg driver."""
        if not v.startswith(('postgresql://', 'postgresql+asyncpg://')):
            raise ValueError(
                'DATABASE_URL must start with postgresql:// or postgresql+asyncpg://'
            )
        if v.startswith('postgresql://'):
            v = 'postgresql+asyncpg://' + v[len('postgresql://'):]
        return v

    def get_admin_ids(self) -> list[int]:
        """Parse admin IDs from comma-separated string with error handling."""
        if not self.admin_telegram_ids:
            return []

        result = []
        for id_ in self.admin_telegram_ids.split(","):
            id_stripped = id_.strip()
            if not id_stripped:
                continue
            try:
                result.append(int(id_stripped))
            except ValueError:
                logger.warning(f"Invalid admin ID: {id_stripped}")
                continue
        return result


# Global settings instance
settings = Settings()
