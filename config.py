"""Configuration settings for the guided download assistant"""
import os
from typing import List
from pydantic_settings import BaseSettings


def detect_environment() -> str:
    """
    Detect current environment from the ENVIRONMENT variable.
    Returns: 'dev', 'staging', or 'prod'
    """
    explicit_env = os.getenv("ENVIRONMENT", "").lower()
    if explicit_env in ("production", "prod"):
        return "prod"
    if explicit_env == "staging":
        return "staging"
    return "dev"


class Settings(BaseSettings):
    """Application settings using Pydantic for validation and environment variable loading"""

    # Chat flow behaviour
    # Manufacturers whose driver portals look devices up by serial / service tag
    SERIAL_REQUIRED_MANUFACTURERS: List[str] = ["Dell", "HP", "Lenovo"]
    MIN_FREE_TEXT_QUERY_LENGTH: int = 3
    RETAIN_DEVICE_ON_NEW_REQUEST: bool = True

    # Session storage
    SESSION_TTL_MINUTES: int = 30
    MAX_SESSIONS: int = 1000
    # Newest visited states kept per session (engine history and snapshots)
    MAX_HISTORY_ITEMS: int = 50

    # Application settings
    ENVIRONMENT: str = detect_environment()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT == "dev"

    def requires_serial(self, manufacturer: str) -> bool:
        """Check if a manufacturer's driver portal needs a serial number"""
        allowed = {m.strip().lower() for m in self.SERIAL_REQUIRED_MANUFACTURERS}
        return manufacturer.strip().lower() in allowed

    class Config:
        # Load from .env file
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
