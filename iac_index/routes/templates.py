"""Template extraction and search endpoints."""

import logging

from fastapi import APIRouter, HTTPException

from iac_index.errors import SourceError, TemplateValidationError
from iac_index.routes.deps import resolve_data_source
from iac_index.schemas.errors import ErrorResponse
from iac_index.schemas.template import TemplateExtractRequest, TemplateRecord, TemplateSearchRequest
from iac_index.services.template_extractor import build_record, is_template_file, search_templates
from iac_index.services.template_indexer import get_template_indexer
from iac_index.sources.base import SourceFile
from iac_index.sources.registry import get_content_source

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/templates", tags=["Templates"])

# Source key for records built from request bodies rather than a repository
INLINE_SOURCE_KEY = "inline"


@router.post(
    "/extract",
    response_model=TemplateRecord,
    responses={422: {"model": ErrorResponse}},
)
async def extract_template(request: TemplateExtractRequest):
    """Extract resources, parameters, outputs and metadata from template text.

    `fileName` decides the format: `.bicep` files are scanned as Bicep,
    `.json` files are read as ARM JSON.
    """
    if not is_template_file(request.file_name):
        error = TemplateValidationError(
            f"Unsupported template file '{request.file_name}', expected .bicep or .json"
        )
        raise HTTPException(status_code=error.status_code, detail=error.to_error())

    file = SourceFile(
        name=request.file_name,
        path=request.path or request.file_name,
        size=request.size if request.size is not None else len(request.content.encode("utf-8")),
    )
    return build_record(INLINE_SOURCE_KEY, file, request.content)


@router.post("/search", responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}})
async def search(request: TemplateSearchRequest):
    """Search the template index of a data source.

    Records are returned without their `content`; use the record `path`
    to fetch the template itself.
    """
    config = resolve_data_source(request.source, "templates")

    try:
        index = await get_template_indexer(get_content_source()).index_templates(config)
    except SourceError as e:
        logger.error(f"Template index unavailable for {request.source}: {e}")
        raise HTTPException(status_code=e.status_code, detail=e.to_error())

    results = search_templates(index, request)
    return {
        "source": request.source,
        "total": len(results),
        "templates": [
            t.model_dump(mode="json", by_alias=True, exclude={"content"}) for t in results
        ],
    }
