"""Application settings using Pydantic Settings for environment-based configuration."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the forum-relay application.

    All settings can be overridden via environment variables.
    Prefix is not used to allow standard env var names (e.g., DISCORD_TOKEN).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    debug: bool = False

    # Redis (durable key-value state)
    redis_url: RedisDsn = Field(default="redis://localhost:6379/0")
    redis_key_prefix: str = ""

    # Discord forum channel
    discord_token: str | None = None
    discord_api_url: str = "https://discord.com/api/v10"
    forum_channel_id: str | None = None
    forum_reddit_tag: str | None = None
    forum_discourse_tag: str | None = None

    # Reddit API (OAuth2 password grant)
    reddit_user: str | None = None
    reddit_password: str | None = None
    reddit_client_id: str | None = None
    reddit_client_secret: str | None = None
    reddit_url: str = "https://www.reddit.com"
    reddit_oauth_url: str = "https://oauth.reddit.com"
    subreddit: str = "fsharp"

    # Discourse forum
    discourse_url: str = "https://forums.fsharp.org"

    user_agent: str = "FSharp Discord Bot"
    poll_interval_seconds: float = Field(default=300.0, gt=0)

    # Egress routes
    proxies_path: Path | None = None
    include_direct_route: bool = True
    dispatcher_idle_delay: float = Field(default=1.0, ge=0.0)
    dispatcher_error_wait: float = Field(default=30.0, gt=0.0)
    dispatcher_error_multiplier: float = Field(default=2.0, ge=1.0)
    dispatcher_max_error_wait: float = Field(default=300.0, gt=0.0)
    dispatcher_timeout: float = Field(default=120.0, gt=0.0)
    dispatcher_max_attempts: int = Field(default=5, ge=1, le=20)

    # Observability
    metrics_port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def reddit_configured(self) -> bool:
        """Check if Reddit API credentials are complete."""
        return all([
            self.reddit_user,
            self.reddit_password,
            self.reddit_client_id,
            self.reddit_client_secret,
        ])

    @property
    def discord_configured(self) -> bool:
        """Check if the Discord forum target is configured."""
        return (
            self.discord_token is not None
            and self.forum_channel_id is not None
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Clear cache with get_settings.cache_clear() if needed.
    """
    return Settings()
