"""
Name: Application Configuration (Settings)

Responsibilities:
  - Centralized, typed configuration using pydantic-settings
  - Validate environment variables at startup
  - Provide defaults for tree limits, token sizes and batch sizes

Collaborators:
  - main.py / api/main.py: reads settings for CORS, metrics and logging
  - container.py: selects the repository backend and service limits
  - scripts/backfill_ancestor_paths.py: default batch size

Constraints:
  - Lives in API/infrastructure layer, NOT in domain/application
  - No business logic — pure configuration

Notes:
  - Singleton via lru_cache
  - Tests clear the cache (get_settings.cache_clear()) after monkeypatching env
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_BACKENDS = {"memory", "postgres"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_env: Application environment (development/production)
        log_level: Root log level for the service logger
        log_json: Emit JSON log lines (False = plain text, handy locally)
        repository_backend: memory | postgres
        database_url: PostgreSQL connection string (required for postgres)
        db_slow_query_seconds: Log queries slower than this as warnings
        db_healthcheck_on_acquire: SELECT 1 on every pool checkout
        allowed_origins: Comma-separated CORS origins
        max_tree_depth: Bound for every parent climb (default: 100)
        invitation_expiry_days: Default invitation lifetime (default: 7)
        invitation_token_bytes: Entropy of invitation tokens (default: 24)
        share_link_token_bytes: Entropy of share link tokens (default: 18)
        ancestor_backfill_batch_size: Nodes per backfill batch (default: 200)
        grant_purge_batch_size: Expired grants removed per batch (default: 500)
        metrics_enabled: Expose /metrics
    """

    # Environment
    app_env: str = "development"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Persistence
    repository_backend: str = "memory"
    database_url: str = ""

    # Database - Connection Pool
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_statement_timeout_ms: int = 30000  # 30 seconds
    db_slow_query_seconds: float = 0.25
    db_healthcheck_on_acquire: bool = True

    # CORS configuration
    allowed_origins: str = "http://localhost:3000"

    # Tree / access resolution
    max_tree_depth: int = 100

    # Invitations & share links
    invitation_expiry_days: int = 7
    invitation_token_bytes: int = 24
    share_link_token_bytes: int = 18

    # Batches (cascades)
    ancestor_backfill_batch_size: int = 200
    grant_purge_batch_size: int = 500

    # Observability
    metrics_enabled: bool = True

    @field_validator(
        "max_tree_depth",
        "invitation_expiry_days",
        "ancestor_backfill_batch_size",
        "grant_purge_batch_size",
        "db_pool_min_size",
        "db_pool_max_size",
    )
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("value must be greater than 0")
        return v

    @field_validator("invitation_token_bytes", "share_link_token_bytes")
    @classmethod
    def token_bytes_minimum(cls, v: int) -> int:
        # Por debajo de 16 bytes el token deja de ser inadivinable.
        if v < 16:
            raise ValueError("token bytes must be >= 16")
        return v

    @field_validator("repository_backend")
    @classmethod
    def repository_backend_valid(cls, v: str) -> str:
        backend = (v or "memory").strip().lower()
        if backend not in _BACKENDS:
            raise ValueError("repository_backend must be memory or postgres")
        return backend

    @model_validator(mode="after")
    def validate_database_requirements(self):
        if self.repository_backend == "postgres" and not self.database_url.strip():
            raise ValueError("DATABASE_URL is required when REPOSITORY_BACKEND=postgres")
        if self.db_pool_min_size > self.db_pool_max_size:
            raise ValueError(
                f"db_pool_min_size ({self.db_pool_min_size}) must be <= "
                f"db_pool_max_size ({self.db_pool_max_size})"
            )
        return self

    def get_allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]

    def is_production(self) -> bool:
        return self.app_env.strip().lower() == "production"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get singleton Settings instance.

    Raises:
        ValidationError: If env vars are missing or invalid
    """
    return Settings()
