"""Shared route dependencies."""

from fastapi import HTTPException

from iac_index.errors import ErrorCode, make_error
from iac_index.sources.base import DataSourceConfig, SourceKind
from iac_index.sources.registry import get_registry


def resolve_data_source(name: str, kind: SourceKind) -> DataSourceConfig:
    """Look up a registered data source of the given kind, or raise 404."""
    config = get_registry().get(name)
    if config is None or config.kind != kind:
        available = [c.name for c in get_registry().all() if c.kind == kind]
        raise HTTPException(
            status_code=404,
            detail=make_error(
                ErrorCode.DATA_SOURCE_NOT_FOUND,
                message=f"No {kind} data source named '{name}'",
                hint=f"Available {kind} sources: {', '.join(available)}",
            ),
        )
    return config
