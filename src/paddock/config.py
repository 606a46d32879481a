"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings

# Circuit map images are referenced by filename and joined onto this base.
_DEFAULT_TRACK_MAP_BASE_URL = (
    "https://www.formula1.com/content/dam/fom-website/2018-redesign-assets/"
    "Circuit%20maps%2016x9/"
)


class Settings(BaseSettings):
    """Paddock bot configuration.

    All values can be overridden via environment variables or .env file.
    """

    # Discord
    discord_bot_token: str = ""
    discord_guild_id: str = ""
    discord_enabled: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///checkin_bot.db"

    # Environment
    paddock_env: str = "development"

    # Permissions: this Discord user passes every permission check.
    paddock_operator_discord_id: str = "201215609189564416"

    # Rosters
    paddock_reorder_delay_seconds: float = 0.5

    # Check-ins
    paddock_track_map_base_url: str = _DEFAULT_TRACK_MAP_BASE_URL

    # Logging
    paddock_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_reorder_delay(self) -> Settings:
        if self.paddock_reorder_delay_seconds < 0:
            msg = "PADDOCK_REORDER_DELAY_SECONDS must be zero or positive."
            raise ValueError(msg)
        return self

    def track_map_url(self, image: str) -> str:
        """Return the default circuit map URL for a track image filename."""
        return f"{self.paddock_track_map_base_url}{image}"
