"""
Application configuration settings.

Central configuration module using Pydantic BaseSettings with environment variable support.
Loads from .env file and environment variables.
"""
import json
import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if it exists (python-dotenv)
env_path = Path(".env")
if env_path.exists():
    load_dotenv(dotenv_path=env_path)

# Only ever used outside production, when SESSION_SECRET is unset
DEVELOPMENT_SESSION_SECRET = "development-secret-change-in-production"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App settings
    APP_NAME: str = "GitHub Summarizer"
    APP_ENV: str = Field(default="local")
    DEBUG: bool = Field(default=False)

    # Database settings - generic connection string (highest priority)
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="Database connection URL (full URL)",
    )

    # Hosted Postgres raw vars (PG*)
    PGUSER: Optional[str] = Field(default=None)
    PGPASSWORD: Optional[str] = Field(default=None)
    PGHOST: Optional[str] = Field(default=None)
    PGPORT: Optional[str] = Field(default=None)
    PGDATABASE: Optional[str] = Field(default=None)

    # Local docker-compose Postgres settings (fallback for local dev)
    POSTGRES_USER: Optional[str] = Field(default=None)
    POSTGRES_PASSWORD: Optional[str] = Field(default=None)
    POSTGRES_HOST: Optional[str] = Field(default=None)
    POSTGRES_PORT: str = Field(default="5432")
    POSTGRES_DB: str = Field(default="gitsum")

    @property
    def sqlalchemy_database_uri(self) -> str:
        """
        Build SQLAlchemy database URI with priority:
        1. DATABASE_URL (full URL)
        2. PG* vars (hosted Postgres raw env vars)
        3. Local docker-compose Postgres (POSTGRES_*)
        4. SQLite (local development without Docker)
        """
        if self.DATABASE_URL:
            # Hosting providers hand out postgres:// which SQLAlchemy no longer accepts
            if self.DATABASE_URL.startswith("postgres://"):
                return self.DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)
            return self.DATABASE_URL

        if self.PGUSER and self.PGHOST and self.PGDATABASE:
            password = quote_plus(self.PGPASSWORD or "")
            port = self.PGPORT or "5432"
            return f"postgresql+psycopg2://{self.PGUSER}:{password}@{self.PGHOST}:{port}/{self.PGDATABASE}"

        if os.getenv("POSTGRES_HOST") and self.POSTGRES_USER and self.POSTGRES_PASSWORD:
            password = quote_plus(self.POSTGRES_PASSWORD)
            return (
                f"postgresql+psycopg2://"
                f"{self.POSTGRES_USER}:{password}@"
                f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )

        return "sqlite:///./gitsum.db"

    # CORS settings
    CORS_ORIGINS: Union[str, List[str]] = Field(
        default='["http://localhost:3000", "http://localhost:8000"]',
    )

    @field_validator("CORS_ORIGINS")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from string or list."""
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Logging
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Session identity (cookie issued by the sign-in provider)
    SESSION_SECRET: Optional[str] = Field(
        default=None,
        description="Shared secret used to verify session tokens",
    )
    SESSION_ALGORITHMS: List[str] = Field(default=["HS256"])
    SESSION_COOKIE_NAMES: List[str] = Field(
        default=["next-auth.session-token", "__Secure-next-auth.session-token"],
        description="Cookie names checked, in order, for a session token",
    )

    # API key credential format
    API_KEY_PREFIX: str = Field(default="gitsum", description="Application part of the key prefix")
    API_KEY_SUFFIX_LENGTH: int = Field(default=24, ge=24)

    # Summarization (OpenAI) - Optional
    LLM_PROVIDER: str = Field(
        default="openai",
        description="Summary provider: openai or extraction",
    )
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenAI API key for README summaries (optional)",
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    SUMMARY_TIMEOUT_SECONDS: float = Field(default=90.0)
    SUMMARY_MAX_RETRIES: int = Field(default=3)
    SUMMARY_MAX_INPUT_CHARS: int = Field(default=100_000)

    # GitHub fetching
    GITHUB_TIMEOUT_SECONDS: float = Field(default=15.0)
    GITHUB_USER_AGENT: str = Field(default="github-summarizer-bot")

    @property
    def session_secret(self) -> Optional[str]:
        """Signing secret for session tokens, with a dev-only fallback."""
        if self.SESSION_SECRET:
            return self.SESSION_SECRET
        if self.APP_ENV.lower() != "production":
            return DEVELOPMENT_SESSION_SECRET
        return None

    def is_openai_available(self) -> bool:
        """Check if OpenAI API key is configured and not empty."""
        return (
            self.OPENAI_API_KEY is not None
            and isinstance(self.OPENAI_API_KEY, str)
            and self.OPENAI_API_KEY.strip() != ""
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
