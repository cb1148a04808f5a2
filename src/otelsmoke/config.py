"""
Harness settings and configuration.
"""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings

from otelsmoke.environment.compose import split_override_files


class Settings(BaseSettings):
    """Harness settings, read from OTELSMOKE_* environment variables or .env."""

    # Topology
    compose_file: str = "docker-compose.yaml"
    compose_override_file: str = Field(
        default="",
        validation_alias=AliasChoices("COMPOSE_OVERRIDE_FILE", "compose_override_file"),
    )
    compose_project_name: str | None = None

    # Collector self-observability endpoint
    collector_service: str = "otelcol"
    collector_metrics_port: int = Field(default=8888, gt=0, lt=65536)
    collector_metrics_path: str = "/metrics"

    # Polling
    poll_interval: float = Field(default=1.0, gt=0)
    poll_timeout: float = Field(default=120.0, gt=0)
    fetch_timeout: float = Field(default=10.0, gt=0)
    concurrent_targets: bool = False

    # Readiness gate
    readiness_timeout: float = Field(default=120.0, gt=0)
    readiness_interval: float = Field(default=1.0, gt=0)

    sent_items_threshold: float = 100.0

    log_level: str = "INFO"

    class Config:
        env_prefix = "OTELSMOKE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def override_files(self) -> list[str]:
        """Override compose files, in the order they are layered."""
        return split_override_files(self.compose_override_file)

    @property
    def compose_files(self) -> list[str]:
        """Base compose file followed by every override file."""
        return [self.compose_file, *self.override_files]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
