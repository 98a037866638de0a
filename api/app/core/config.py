"""Application configuration."""
import sys
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://catalog_user:catalog_pass@db:5432/catalog_db"
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    JWT_ISSUER: str | None = None
    JWT_AUDIENCE: str | None = None

    # Environment configuration
    ENVIRONMENT: str = "development"  # "development" or "production"
    LOG_LEVEL: str = "INFO"

    # CORS configuration - comma-separated origins
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:5174"

    # Versioning / workflow policy
    CONCURRENT_MODIFICATION_RETRIES: int = 3
    MAX_LINEAGE_DEPTH: int = 64
    DEFAULT_APPROVAL_STAGES: List[str] = [
        "DEPARTMENT_REVIEW",
        "COMMITTEE_REVIEW",
        "FINAL_APPROVAL",
    ]
    DEFAULT_STEP_DUE_DAYS: int = 7

    model_config = SettingsConfigDict(env_file=".env")

    def get_cors_origins(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def validate_production_settings(self) -> None:
        """Validate settings for production environment.

        Raises SystemExit if critical security settings are misconfigured.
        """
        if self.ENVIRONMENT == "production":
            if self.SECRET_KEY == "dev-secret-key-change-in-production":
                print("FATAL: SECRET_KEY must be changed in production!", file=sys.stderr)
                print("Set a secure random SECRET_KEY environment variable.", file=sys.stderr)
                sys.exit(1)


settings = Settings()
# Validate on startup
settings.validate_production_settings()
