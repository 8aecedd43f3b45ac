"""Content sources for policy and template repositories."""

from iac_index.sources.base import ContentSource, DataSourceConfig, SourceFile
from iac_index.sources.github import GitHubSource
from iac_index.sources.local import LocalSource
from iac_index.sources.registry import (
    DEFAULT_DATA_SOURCES,
    DataSourceRegistry,
    get_content_source,
    get_registry,
)

__all__ = [
    "ContentSource",
    "DataSourceConfig",
    "SourceFile",
    "GitHubSource",
    "LocalSource",
    "DEFAULT_DATA_SOURCES",
    "DataSourceRegistry",
    "get_content_source",
    "get_registry",
]
