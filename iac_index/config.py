"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_json: bool = True  # JSON format for production, False for human-readable

    # In-process cache
    cache_max_entries: int = 1000
    cache_default_ttl: float = 3600.0  # seconds
    cache_cleanup_interval: float = 600.0  # seconds between expiry sweeps
    cache_ttl_policy: float = 24 * 3600.0  # parsed policy records
    cache_ttl_policy_index: float = 4 * 3600.0
    cache_ttl_template_index: float = 4 * 3600.0
    cache_ttl_repository: float = 6 * 3600.0  # directory listings
    cache_ttl_file: float = 24 * 3600.0  # raw file content

    # Index builds
    index_batch_size: int = 10  # concurrent extractions per batch
    index_batch_delay: float = 0.5  # seconds between batches

    # GitHub source (leave token empty for anonymous access)
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_raw_url: str = "https://raw.githubusercontent.com"
    github_timeout: float = 30.0
    github_max_depth: int = 5
    github_max_retries: int = 3
    github_retry_base_delay: float = 1.0

    # Local source - when set, data sources are read from <root>/<repo>/<base_path>
    local_source_root: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
