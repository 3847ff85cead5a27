"""Application settings.

All configuration is sourced from environment variables (and optionally `.env`).
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_credentials_path() -> Path:
    return Path.home() / ".esmc" / "credentials.json"


class Settings(BaseSettings):
    """Typed environment-backed settings for the ESMC SDK."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    auth_url: str = Field(default="https://esmc-sdk.com/auth/auth-login", alias="ESMC_AUTH_URL")
    api_url: str = Field(default="https://esmc-sdk.com/api", alias="ESMC_API_URL")
    dashboard_url: str = Field(default="https://esmc-sdk.com/dashboard", alias="ESMC_DASHBOARD_URL")
    jwks_url: str = Field(
        default="https://esmc-sdk.com/.well-known/jwks.json", alias="ESMC_JWKS_URL"
    )
    checksum_url: str = Field(
        default="https://esmc-sdk.com/api/v1/auth/validate-checksum",
        alias="ESMC_CHECKSUM_URL",
    )

    credentials_path: Path = Field(
        default_factory=_default_credentials_path, alias="ESMC_CREDENTIALS_PATH"
    )
    # Overrides project-root detection for the license file when set.
    license_dir: Optional[Path] = Field(default=None, alias="ESMC_LICENSE_DIR")
    brain_dir: Optional[Path] = Field(default=None, alias="ESMC_BRAIN_DIR")

    brain_checksum_free: str = Field(
        default="5aaa515d2f69b2218593ac199a0df15560918e077020a8eb4fd257f9c2d5e682",
        alias="ESMC_BRAIN_CHECKSUM_FREE",
    )
    brain_checksum_pro: str = Field(
        default="952c81d89959f1c67c7d52264d7633d904b2ea99babe93844c5ae7e514b5b27b",
        alias="ESMC_BRAIN_CHECKSUM_PRO",
    )
    brain_checksum_max: str = Field(
        default="1d55a5b27a5fa85cc89e98878201eba6e9a211e386da69e2f7a79df65f601897",
        alias="ESMC_BRAIN_CHECKSUM_MAX",
    )

    # Only the exact string "true" enables dev mode.
    dev_mode: str = Field(default="", alias="ESMC_DEV_MODE")
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ESMC_ENV", "ENVIRONMENT"),
    )
    package_signature_key: Optional[str] = Field(default=None, alias="ESMC_PACKAGE_SIGNATURE_KEY")

    cli_target: str = Field(default="esmc.sdk:SDK", alias="ESMC_CLI_TARGET")

    log_level: str = Field(default="WARNING", alias="ESMC_LOG_LEVEL")
    log_json: bool = Field(default=False, alias="ESMC_LOG_JSON")

    @property
    def dev_mode_enabled(self) -> bool:
        return self.dev_mode == "true"

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    def brain_checksum(self, tier: str) -> Optional[str]:
        return {
            "FREE": self.brain_checksum_free,
            "PRO": self.brain_checksum_pro,
            "MAX": self.brain_checksum_max,
        }.get(tier)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
