"""Data source endpoints."""

import logging

from fastapi import APIRouter, HTTPException

from iac_index.cache import get_cache
from iac_index.errors import ErrorCode, make_error
from iac_index.schemas.errors import ErrorResponse
from iac_index.schemas.source import CacheStats, DataSourceInfo, RefreshResponse
from iac_index.services.policy_indexer import policy_index_key
from iac_index.services.template_indexer import template_index_key
from iac_index.sources.registry import get_content_source, get_registry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sources", tags=["Sources"])


@router.get("", response_model=list[DataSourceInfo])
async def list_sources():
    """List the configured policy and template repositories."""
    return [
        DataSourceInfo(
            name=c.name,
            owner=c.owner,
            repo=c.repo,
            branch=c.branch,
            base_path=c.base_path,
            description=c.description,
            kind=c.kind,
        )
        for c in get_registry().all()
    ]


@router.post("/refresh", response_model=RefreshResponse, responses={404: {"model": ErrorResponse}})
async def refresh_sources(name: str | None = None):
    """Drop cached indexes, listings and files for one source, or all of them.

    The next search against a refreshed source rebuilds its index.
    """
    registry = get_registry()
    if name is not None:
        config = registry.get(name)
        if config is None:
            raise HTTPException(
                status_code=404,
                detail=make_error(
                    ErrorCode.DATA_SOURCE_NOT_FOUND,
                    message=f"Data source '{name}' not found",
                ),
            )
        configs = [config]
    else:
        configs = registry.all()

    cache = get_cache()
    source = get_content_source()
    for config in configs:
        cache.delete(template_index_key(config))
        cache.delete(policy_index_key(config))
        dropped = source.invalidate(config)
        logger.info(
            f"Refreshed data source {config.name}",
            extra={"data_source": config.name, "dropped_entries": dropped},
        )

    return RefreshResponse(
        refreshed=[c.name for c in configs],
        cache=CacheStats(**cache.stats()),
    )
