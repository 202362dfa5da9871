"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded in production)
    - get_settings() is cached (lru_cache) — single instance per process
    - In production DATABASE_URL, JWT_SECRET and CLIENT_URL must be set

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box for local development
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PRODUCTION_REQUIRED = ("database_url", "jwt_secret", "client_url")


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Server
    environment: Literal["development", "production", "test"] = "development"
    host: str = "0.0.0.0"
    port: int = 5000
    forwarded_allow_ips: str = "127.0.0.1"

    # CORS
    client_url: str = "http://localhost:3000"
    render_external_hostname: str | None = None

    # Database
    database_url: str = ""

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str):
            for prefix in ("postgres://", "postgresql://"):
                if v.startswith(prefix):
                    return v.replace(prefix, "postgresql+asyncpg://", 1)
        return v

    db_pool_max: int = 20
    db_pool_min: int = 2
    db_idle_timeout_ms: int = 30_000
    db_connection_timeout_ms: int = 2_000
    db_max_uses: int = 7_500
    db_managed_connection_timeout_ms: int = 5_000
    db_statement_timeout_ms: int = 10_000
    db_managed_host_markers: list[str] = ["neon.tech"]

    migrations_path: str = "migrations/001_initial_schema.sql"

    # JWT — declared for upcoming auth routes, not read by any route yet
    jwt_secret: str = ""
    jwt_expires_in: str = "7d"

    # Rate limiting
    rate_limit_window_ms: int = 900_000
    rate_limit_max: int = 100

    # Request parsing
    body_limit_bytes: int = 10 * 1024

    # Observability
    log_level: str = "INFO"
    log_format: str = "text"
    log_dir: str | None = "logs"

    # Static client build, served in production only
    client_dist_dir: str = "client/dist"

    @model_validator(mode="after")
    def require_production_secrets(self) -> "Settings":
        if self.environment != "production":
            return self
        missing = [
            name.upper() for name in _PRODUCTION_REQUIRED
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}",
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins(self) -> list[str]:
        origins = [self.client_url]
        if self.is_production and self.render_external_hostname:
            origins.append(f"https://{self.render_external_hostname}")
        return origins

    @property
    def uses_managed_database(self) -> bool:
        """Heuristic: the connection string points at a managed Postgres host."""
        return any(
            marker in self.database_url for marker in self.db_managed_host_markers
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
