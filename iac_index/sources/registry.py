"""Registry of known data sources and the shared content source."""

import logging

from iac_index.cache import get_cache
from iac_index.config import get_settings
from iac_index.sources.base import ContentSource, DataSourceConfig
from iac_index.sources.github import GitHubSource
from iac_index.sources.local import LocalSource

logger = logging.getLogger(__name__)

DEFAULT_DATA_SOURCES: tuple[DataSourceConfig, ...] = (
    DataSourceConfig(
        name="azure-policy",
        owner="Azure",
        repo="azure-policy",
        branch="master",
        base_path="built-in-policies/policyDefinitions",
        description="Azure built-in policy definitions",
        kind="policies",
    ),
    DataSourceConfig(
        name="quickstart-templates",
        owner="Azure",
        repo="azure-quickstart-templates",
        branch="master",
        base_path="quickstarts",
        description="Azure QuickStart Bicep and ARM templates",
    ),
    DataSourceConfig(
        name="bicep-samples",
        owner="Azure",
        repo="azure-docs-bicep-samples",
        branch="main",
        base_path="samples",
        description="Azure documentation Bicep samples",
    ),
    DataSourceConfig(
        name="resource-modules",
        owner="Azure",
        repo="ResourceModules",
        branch="main",
        base_path="modules",
        description="Azure Resource Modules (mature Bicep modules)",
    ),
)


class DataSourceRegistry:
    """Named data source configurations, in registration order."""

    def __init__(self, sources: tuple[DataSourceConfig, ...] | list[DataSourceConfig] = DEFAULT_DATA_SOURCES):
        self._sources = {source.name: source for source in sources}

    def get(self, name: str) -> DataSourceConfig | None:
        return self._sources.get(name)

    def names(self) -> list[str]:
        return list(self._sources)

    def all(self) -> list[DataSourceConfig]:
        return list(self._sources.values())

    def register(self, config: DataSourceConfig) -> None:
        self._sources[config.name] = config


# Singleton instances
_registry: DataSourceRegistry | None = None
_source: ContentSource | None = None


def get_registry() -> DataSourceRegistry:
    global _registry
    if _registry is None:
        _registry = DataSourceRegistry()
    return _registry


def create_content_source() -> ContentSource:
    """Build the content source selected by settings."""
    settings = get_settings()
    if settings.local_source_root:
        logger.info(f"Reading data sources from {settings.local_source_root}")
        return LocalSource(settings.local_source_root, max_depth=settings.github_max_depth)

    return GitHubSource(
        cache=get_cache(),
        token=settings.github_token,
        api_url=settings.github_api_url,
        raw_url=settings.github_raw_url,
        timeout=settings.github_timeout,
        max_depth=settings.github_max_depth,
        max_retries=settings.github_max_retries,
        retry_base_delay=settings.github_retry_base_delay,
        listing_ttl=settings.cache_ttl_repository,
        file_ttl=settings.cache_ttl_file,
    )


def get_content_source() -> ContentSource:
    """Get the shared content source, creating it on first use."""
    global _source
    if _source is None:
        _source = create_content_source()
    return _source


def set_content_source(source: ContentSource | None) -> None:
    """Replace the shared content source. Used by tests."""
    global _source
    _source = source


async def close_content_source() -> None:
    global _source
    if _source is not None:
        await _source.aclose()
    _source = None
