"""
Core settings and environment variables for CitizenConnect.
Uses pydantic-settings for type-safe environment variable loading.

Settings are built once at process start and passed explicitly to the
components that need them. validate_startup() is the fallible init step:
the app refuses to start instead of running with a guessable JWT secret.
"""

import os
from pydantic_settings import BaseSettings
from typing import List, Optional

from citizen_connect.core.errors import ConfigError


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "CitizenConnect"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Sessions (stateless JWT, no revocation)
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_HOURS: int = 24

    # Passwords and reset tokens
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 6
    RESET_TOKEN_TTL_MINUTES: int = 60
    FRONTEND_URL: str = "http://localhost:3000"

    # Image attachments
    UPLOAD_DIR: str = "./uploads"
    UPLOAD_URL_PREFIX: str = "uploads"
    MAX_UPLOAD_BYTES: int = 5 * 1024 * 1024

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    STORE_TIMEOUT_SECONDS: float = 5.0

    # In-process store for local development and tests
    USE_MOCK_DB: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origin_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def validate_startup(self) -> "Settings":
        """
        Check the configuration before any component is built.

        Raises:
            ConfigError: describing the first problem found
        """
        secret = (self.JWT_SECRET or "").strip()
        if not secret:
            raise ConfigError(
                "JWT_SECRET is not set. Configure it in the environment; "
                "sessions will not be signed with a default secret."
            )
        if len(secret) < 32:
            raise ConfigError("JWT_SECRET must be at least 32 characters long")

        if self.SESSION_TTL_HOURS <= 0:
            raise ConfigError("SESSION_TTL_HOURS must be positive")
        if self.RESET_TOKEN_TTL_MINUTES <= 0:
            raise ConfigError("RESET_TOKEN_TTL_MINUTES must be positive")
        if not 4 <= self.BCRYPT_ROUNDS <= 31:
            raise ConfigError("BCRYPT_ROUNDS must be between 4 and 31")
        if self.MAX_UPLOAD_BYTES <= 0:
            raise ConfigError("MAX_UPLOAD_BYTES must be positive")
        if self.STORE_TIMEOUT_SECONDS <= 0:
            raise ConfigError("STORE_TIMEOUT_SECONDS must be positive")

        if not self.USE_MOCK_DB and self.FIREBASE_CREDENTIALS_PATH:
            if not os.path.exists(self.FIREBASE_CREDENTIALS_PATH):
                raise ConfigError(
                    f"Firebase credentials file not found: {self.FIREBASE_CREDENTIALS_PATH}"
                )

        return self


def load_settings(**overrides) -> Settings:
    """Build settings from the environment, applying keyword overrides."""
    return Settings(**overrides)
