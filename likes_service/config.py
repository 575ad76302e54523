from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional
from dotenv import load_dotenv
from functools import lru_cache
from .exceptions import ConfigurationError

# Load environment variables
load_dotenv()

REQUIRED_SETTINGS = ("CLIENT_ID", "CLIENT_SECRET", "SESSION_SECRET")

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Server Configuration
    SERVER_HOST: str = "0.0.0.0"
    PORT: int = 3000
    ENVIRONMENT: str = "development"
    ALLOWED_ORIGINS: str = "https://dev.fun,https://cdn.dev.fun"

    # X OAuth 2.0 client
    CLIENT_ID: str
    CLIENT_SECRET: str
    REDIRECT_URI: str = "http://localhost:3000/auth/callback"
    FRONTEND_REDIRECT_URL: Optional[str] = None

    # Security
    SESSION_SECRET: str
    ENCRYPTION_KEY: Optional[str] = None

    # Token storage
    TOKEN_STORE_BACKEND: str = "json"
    TOKEN_FILE: str = "tokens.json"
    DATABASE_PATH: str = "data/tokens.db"

    # Poller
    POLLER_ENABLED: bool = True
    POLL_ON_STARTUP: bool = True
    POLL_INTERVAL_SECONDS: int = 1200
    POLL_TIMEZONE: str = "Africa/Lagos"
    LIKES_MAX_RESULTS: int = 10

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = "likes_service.log"

    @field_validator(*REQUIRED_SETTINGS)
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("ENVIRONMENT")
    @classmethod
    def _known_environment(cls, value: str) -> str:
        if value not in ("development", "production", "testing"):
            raise ValueError("Invalid environment")
        return value

    @field_validator("TOKEN_STORE_BACKEND")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "sqlite"):
            raise ValueError("TOKEN_STORE_BACKEND must be 'json' or 'sqlite'")
        return value

    @field_validator("LIKES_MAX_RESULTS")
    @classmethod
    def _likes_page_size(cls, value: int) -> int:
        # X accepts 5-100 results per liked_tweets page
        if not 5 <= value <= 100:
            raise ValueError("LIKES_MAX_RESULTS must be between 5 and 100")
        return value

    @property
    def cors_origins(self) -> List[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


def load_settings(**overrides) -> Settings:
    """Build settings, turning validation failures into a ConfigurationError."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        missing = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(missing)}"
        ) from e

# Create cached settings instance
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
