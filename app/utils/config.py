"""
Configuration management for the Graph Loader.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Neo4j Configuration
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "loader123"

    # Logging
    log_level: str = "INFO"

    # Ingestion tree
    ingest_root: Path = Path("/var/lib/graph-loader")
    ingest_targets: Optional[str] = None  # default: every database in Neo4j

    # Watcher Configuration
    watch_polling: bool = False
    poll_interval: float = 1.0  # seconds, polling observer only
    event_queue_size: int = 1024
    stop_timeout: float = 30.0  # seconds

    # Loader Configuration
    batch_size: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_ingest_targets(self) -> list[str]:
        """Parse configured targets into a list, empty when unset."""
        if not self.ingest_targets:
            return []
        return [t.strip() for t in self.ingest_targets.split(',') if t.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
