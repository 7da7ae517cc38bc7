# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,  # Environment vars are uppercase
        extra="ignore",      # Ignore unexpected vars instead of raising
    )

    # Core application settings
    DATABASE_URL: str
    HOST: str = "0.0.0.0"
    PORT: int = 8101
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_FILE: str = "app.log"

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["*"]  # In production, specify actual origins
    ALLOW_CREDENTIALS: bool = True
    ALLOWED_METHODS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = ["*"]

    # JWT settings (tokens are issued by the identity service)
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60

    # Grading settings
    AUTO_GRADER_ID: str = "auto-grader"
    SYSTEM_GRADER_ID: str = "system"
    DEFAULT_FUZZY_TOLERANCE: float = 0.8
    REPORT_PAGE_LIMIT: int = 100


def _validate_settings(settings: Settings) -> None:
    """Validate critical application settings."""
    if not settings.DATABASE_URL:
        raise ValueError("DATABASE_URL is required")
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET is required")
    if not 0 <= settings.DEFAULT_FUZZY_TOLERANCE <= 1:
        raise ValueError("DEFAULT_FUZZY_TOLERANCE must be between 0 and 1")

    # Environment-specific validations
    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        raise ValueError("DEBUG must be disabled in production")


# Initialize settings with error handling
try:
    settings = Settings()
    _validate_settings(settings)
except Exception as e:
    print(f"Error initializing settings: {e}")
    raise
