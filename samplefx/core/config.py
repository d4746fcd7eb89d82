"""
Configuration management for the samplefx effects pipeline.
Loads settings from environment variables.
"""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "samplefx"
    app_version: str = "0.1.0"
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # Pitch / time backend
    vocoder_fft_size: int = 2048
    vocoder_hop_size: int = 512
    max_semitones: int = 24
    min_tempo_ratio: float = 0.25
    max_tempo_ratio: float = 4.0

    # Equalizer
    eq_q: float = 1.41  # bandwidth of each peaking band

    # Persistence
    output_subtype: str = "PCM_16"
    descriptor_filename: str = "config.json"

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get settings instance.
    Useful for injecting configuration into processors.
    """
    return settings
