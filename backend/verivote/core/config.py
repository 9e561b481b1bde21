"""
Application configuration settings.
"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    # Application
    APP_NAME: str = "Verifiable Remote Voting Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./verivote.db"
    DATABASE_ECHO: bool = False

    # Ballot session bearer tokens
    JWT_SECRET_KEY: str = "your-super-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    SESSION_TOKEN_EXPIRE_MINUTES: int = 30

    # Election officials
    ADMIN_API_KEY: str = "change-me-admin-key"

    # Ballot sessions: "token" (single-use random challenge) or
    # "counter" (per-voter increasing counter bound to the current tick)
    SESSION_CHALLENGE_MODE: str = "token"
    SESSION_TTL_TICKS: int = 10

    # Registration commit
    REGISTRATION_FRESHNESS_TICKS: int = 2

    # Individual verification
    VERIFICATION_WINDOW_TICKS: int = 30
    MAX_VERIFICATION_REDEMPTIONS: int = 3
    VERIFICATION_REQUIRES_FINAL: bool = True

    # Knowledge proof attached to every ballot
    REQUIRE_BALLOT_PROOF: bool = False

    # Time oracle; 0 disables the built-in ticker (ticks are announced externally)
    CLOCK_TICK_SECONDS: float = 0.0

    # Signing keys of the issuer, collector and registration service
    KEYRING_DIR: Optional[str] = None

    # Collaborators
    REGISTRATION_SERVICE_URL: Optional[str] = None
    REGISTRATION_TIMEOUT_SECONDS: float = 10.0
    VOTER_NOTIFICATION_URL: Optional[str] = None

    # Corruption model: names of checks a compromised component skips
    COLLECTOR_DISABLED_CHECKS: List[str] = []
    REGISTRATION_DISABLED_CHECKS: List[str] = []

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
