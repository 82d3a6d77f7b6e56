"""
Configuration management for Blackboard Session Bot.

Loads and validates environment variables with clear error messages.
Uses Pydantic Settings for type safety and validation.
"""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/105.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Every field has a default so a bare ``Settings()`` works for local runs;
    the Supabase and Telegram fields are only required when those bridges
    are enabled.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Blackboard configuration
    blackboard_base_url: str = Field(
        default="https://bbhosted.cuny.edu",
        description="Base URL of the Blackboard portal (markup backend)"
    )
    blackboard_api_base: Optional[str] = Field(
        default=None,
        description="Base URL of the Blackboard JSON API (api backend)"
    )
    backend: Literal["markup", "api"] = Field(
        default="markup",
        description="Which remote contract clients talk to"
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User agent sent with every request"
    )

    # Session behaviour
    keep_alive_interval: int = Field(
        default=300,
        ge=300,
        le=900,
        description="Seconds between keep-alive pings (5 to 15 minutes)"
    )
    request_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts made for every remote call"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Seconds to wait between attempts"
    )
    alert_timezone: str = Field(
        default="America/New_York",
        description="Timezone alert hours are expressed in"
    )

    # Persistence
    session_store: Literal["json", "supabase"] = Field(
        default="json",
        description="Where session snapshots are persisted"
    )
    clients_json: str = Field(
        default="clients.json",
        description="Path of the JSON session store"
    )
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL"
    )
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key (not anon key)"
    )

    # Delivery
    telegram_bot_token: Optional[str] = Field(
        default=None,
        description="Telegram Bot API token (from @BotFather)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("blackboard_base_url", "blackboard_api_base")
    @classmethod
    def validate_base_url(cls, v: Optional[str]) -> Optional[str]:
        """Ensure base URLs don't have a trailing slash."""
        return v.rstrip("/") if v else v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return upper

    @property
    def stream_viewer_url(self) -> str:
        """URL of the stream viewer endpoint that lists graded courses."""
        return f"{self.blackboard_base_url}/webapps/streamViewer/streamViewer"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Validated application settings

    Raises:
        ValidationError: If environment variables are invalid
    """
    return Settings()


def setup_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Configure application logging.

    Args:
        settings: Optional settings instance, will be loaded if not provided

    Returns:
        logging.Logger: Configured logger instance
    """
    if settings is None:
        settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    return logging.getLogger("blackboard_bot")
