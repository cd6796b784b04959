"""Runtime settings for the Form Builder service.

Values come from the process environment or a ``.env`` file and are
validated once at startup. Use ``get_settings()`` rather than constructing
``Settings`` directly so every module shares one instance.
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENTS = ("development", "staging", "production")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Service settings.

    Attributes:
        database_url: SQLAlchemy URL for forms and responses (PostgreSQL in
            deployment, SQLite for local runs and tests)
        database_pool_size: Pooled connections (ignored for SQLite)
        database_max_overflow: Extra connections above the pool (ignored for SQLite)
        environment: development, staging or production
        log_level: Root log level
        templates_dir: Directory of starter form YAML files
        secret_key: Signing key for owner JWTs
        token_algorithm: JWT signing algorithm
        token_ttl_hours: How long an owner token stays valid
        allowed_origins: Comma-separated CORS origins of the form builder UI
        placeholder_labels: Comma-separated labels a published field may not keep
        untitled_form_title: Title a published form may not keep
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage
    database_url: str = Field(description="SQLAlchemy database URL")
    database_pool_size: int = Field(default=5, ge=1)
    database_max_overflow: int = Field(default=10, ge=0)

    # Runtime
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    templates_dir: str = Field(
        default="./templates",
        description="Directory holding <template_id>.yaml files"
    )
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="Comma-separated CORS origins"
    )

    # Owner tokens
    secret_key: str = Field(description="Signing key for owner JWTs")
    token_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    token_ttl_hours: int = Field(default=168, ge=1)

    # Publication rules
    placeholder_labels: str = Field(
        default="Question,New Question",
        description="Labels that must be replaced before publishing"
    )
    untitled_form_title: str = Field(
        default="Untitled Form",
        description="Title that must be replaced before publishing"
    )

    @field_validator("environment")
    @classmethod
    def check_environment(cls, v: str) -> str:
        """Normalise to lower case and reject unknown environments."""
        v = v.lower()
        if v not in ENVIRONMENTS:
            raise ValueError(f"environment must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, v: str) -> str:
        """Normalise to upper case and reject unknown levels."""
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v

    def get_allowed_origins_list(self) -> List[str]:
        """CORS origins as a list."""
        return _split_csv(self.allowed_origins)

    def get_placeholder_labels(self) -> set[str]:
        """Placeholder labels as a set."""
        return set(_split_csv(self.placeholder_labels))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Load settings once per process.

    Returns:
        Settings: Shared settings instance
    """
    return Settings()
