"""
PollutionWatch - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Managed backend (record table + object storage)
    backend_url: Optional[str] = None
    backend_anon_key: Optional[str] = None
    storage_bucket: str = "report-images"
    reports_table: str = "pollution_reports"
    http_timeout_seconds: float = 30.0

    # Report workflow
    reports_page_size: int = 500
    status_clear_seconds: float = 7.0
    geolocation_timeout_seconds: float = 10.0
    require_image: bool = True

    # Map defaults (Kathmandu)
    map_center_lat: float = 27.7172
    map_center_lon: float = 85.324
    map_zoom: int = 13

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    max_sessions: int = 256

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def missing_backend_settings(self) -> list[str]:
        """Names of required backend variables that are not set."""
        missing = []
        if not self.backend_url:
            missing.append("BACKEND_URL")
        if not self.backend_anon_key:
            missing.append("BACKEND_ANON_KEY")
        return missing

    def require_backend(self) -> None:
        """
        Ensure the backend endpoint and public key are configured.

        Raises:
            ConfigurationError: If either value is missing
        """
        missing = self.missing_backend_settings
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}. "
                "Set them in the environment or a .env file."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
