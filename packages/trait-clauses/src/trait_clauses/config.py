"""
Clause synthesis configuration and settings.

Loads environment variables (prefix ``TRAIT_CLAUSES_``) and provides a
typed settings object. A snapshot of the settings is captured by every
SynthesisContext, so changing the environment never affects a synthesis
call that is already running.
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "trait_clauses"


class Settings(BaseSettings):
    """Synthesis settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRAIT_CLAUSES_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging level applied by configure_logging()
    log_level: str = Field(default="WARNING", description="Level for the trait_clauses logger")

    # Run the match filter before invoking builders. Disabling it runs every
    # builder on every goal; the result is the same, only slower.
    filter_enabled: bool = Field(default=True, description="Skip builders that cannot match the goal")

    # WellFormed(Self: Trait) clauses for trait declarations
    emit_well_formed_clauses: bool = Field(default=True, description="Emit trait well-formedness clauses")

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    if not settings.filter_enabled:
        logger.warning("Match filter disabled; every builder runs on every goal")
    return settings


def configure_logging(settings: Settings | None = None) -> None:
    """Apply the configured level to the package logger.

    The library never installs handlers; applications decide where
    records go.
    """
    settings = settings or get_settings()
    logging.getLogger(PACKAGE_LOGGER).setLevel(settings.log_level)
