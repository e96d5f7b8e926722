"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with .env file support.
"""
from functools import lru_cache
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite:///./apsim_builds.db"

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate DATABASE_URL has an allowed scheme to prevent injection."""
        allowed_schemes = ('sqlite://', 'postgresql://', 'postgresql+psycopg2://', 'mysql://', 'mysql+pymysql://')
        if not v.startswith(allowed_schemes):
            raise ValueError(
                f'Invalid database URL scheme. Allowed schemes: {", ".join(allowed_schemes)}'
            )
        return v

    # File storage
    DOCUMENTATION_PATH: str = "./data/docs"  # Autodocs root, one directory per pull request
    INSTALLERS_PATH: str = "./data/installers"  # apsim-{revision}.{ext} files

    @field_validator('DOCUMENTATION_PATH', 'INSTALLERS_PATH')
    @classmethod
    def validate_storage_path(cls, v: str) -> str:
        """Prevent path traversal attacks."""
        if '..' in v:
            raise ValueError('Path traversal not allowed in storage paths')
        return v

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_PAT: str = ""  # Personal access token for the REST API
    GITHUB_TIMEOUT_SECONDS: float = 30.0

    # Jenkins (release build trigger)
    JENKINS_URL: str = ""
    JENKINS_TOKEN_NG: str = ""  # Remote trigger token for apsim-release
    JENKINS_TOKEN_CLASSIC: str = ""  # Remote trigger token for oldapsim-release
    JENKINS_VERIFY_SSL: bool = True

    # Webhooks
    HMAC_SECRET_KEY: str = ""  # GitHub webhook secret; empty disables signature checks

    # Public URLs
    INSTALLER_BASE_URL: str = "https://apsimdev.apsim.info/ApsimXFiles"
    PUBLIC_BASE_URL: str = "https://builds.apsim.info"

    # Revision allocation
    REVISION_ALLOCATION_ATTEMPTS: int = 10

    @field_validator('REVISION_ALLOCATION_ATTEMPTS')
    @classmethod
    def validate_allocation_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError('REVISION_ALLOCATION_ATTEMPTS must be at least 1')
        return v

    # Application
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: str = "https://builds.apsim.info,https://www.apsim.info"

    # Security
    API_KEY: str = ""  # Required in X-API-Key for write endpoints when set

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_PER_MINUTE: int = 100

    # Model configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra='ignore'  # Allow extra fields in .env without validation errors
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Returns:
        Settings instance
    """
    return Settings()
