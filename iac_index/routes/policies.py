"""Policy analysis and search endpoints."""

import logging

from fastapi import APIRouter, HTTPException, Query

from iac_index.errors import PolicyParsingError, SourceError
from iac_index.routes.deps import resolve_data_source
from iac_index.schemas.errors import ErrorResponse
from iac_index.schemas.policy import (
    ParsedPolicy,
    PolicyAnalyzeRequest,
    PolicySearchCriteria,
    PolicyValidateRequest,
    PolicyValidationResult,
)
from iac_index.services.policy_indexer import get_policy_indexer, search_policies
from iac_index.services.policy_parser import get_policy_parser
from iac_index.sources.registry import get_content_source

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/policies", tags=["Policies"])


@router.post(
    "/analyze",
    response_model=ParsedPolicy,
    responses={422: {"model": ErrorResponse}},
)
async def analyze_policy(request: PolicyAnalyzeRequest):
    """Parse a policy definition into a structured record.

    Accepts the full ARM envelope or just its `properties`. Returns 422 when
    the content is not a JSON object.
    """
    try:
        return get_policy_parser().parse(request.content, request.id)
    except PolicyParsingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_error())


@router.post("/validate", response_model=PolicyValidationResult)
async def validate_policy(request: PolicyValidateRequest):
    """Structural checks on a policy definition.

    Problems are reported in `errors` and `warnings`; the endpoint itself
    only fails for malformed request bodies.
    """
    return get_policy_parser().validate(request.definition)


@router.get("/search", responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
async def search(
    source: str = "azure-policy",
    resource_types: list[str] | None = Query(None),
    categories: list[str] | None = Query(None),
    effects: list[str] | None = Query(None),
    keywords: list[str] | None = Query(None),
    policy_types: list[str] | None = Query(None),
    include_preview: bool = True,
    include_deprecated: bool = False,
    limit: int | None = Query(None, ge=1),
):
    """Search the policy index of a data source.

    List filters may be repeated (`?effects=deny&effects=audit`). Filters
    combine with AND; values within one filter combine with OR. The index
    is built on first use and cached.
    """
    config = resolve_data_source(source, "policies")
    criteria = PolicySearchCriteria(
        resource_types=resource_types,
        categories=categories,
        effects=effects,
        keywords=keywords,
        policy_types=policy_types,
        include_preview=include_preview,
        include_deprecated=include_deprecated,
        limit=limit,
    )

    try:
        index = await get_policy_indexer(get_content_source(), get_policy_parser()).index_policies(config)
    except SourceError as e:
        logger.error(f"Policy index unavailable for {source}: {e}")
        raise HTTPException(status_code=e.status_code, detail=e.to_error())

    results = search_policies(index, criteria)
    return {
        "source": source,
        "total": len(results),
        "policies": [p.model_dump(mode="json", by_alias=True) for p in results],
    }
