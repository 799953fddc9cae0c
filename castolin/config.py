"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # PostgreSQL
    pg_host: str = "db"
    pg_port: int = 5432
    pg_user: str = "postgres"
    pg_password: str = "postgres"
    pg_database: str = "castolin"
    pg_external_url: Optional[str] = None

    # Connection pool
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Application
    log_level: str = "INFO"
    api_port: int = 10000
    client_url: Optional[str] = None
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Queries slower than this are logged as warnings
    slow_query_threshold_ms: int = 100

    # Serialize concurrent reconciliations of the same order_no
    order_advisory_lock: bool = True

    # Prefix for generated order numbers (SQ-DD-MM-YY-NNNN)
    order_number_prefix: str = "SQ"

    @property
    def pg_dsn(self) -> str:
        """Get PostgreSQL connection string."""
        if self.pg_external_url:
            return self.pg_external_url
        return f"postgresql+asyncpg://{self.pg_user}:{self.pg_password}@{self.pg_host}:{self.pg_port}/{self.pg_database}"

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins including the configured client URL."""
        origins = list(self.cors_origins)
        if self.client_url and self.client_url not in origins:
            origins.append(self.client_url)
        return origins

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra environment variables


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
