"""Pydantic schemas for indexed infrastructure templates."""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from iac_index.schemas.common import CamelModel, Complexity


class TemplateResourceType(CamelModel):
    """A resource declared by a template."""

    type: str
    provider: str
    properties: list[str] = Field(default_factory=list)


class TemplateParameter(CamelModel):
    name: str
    type: str | None = None
    description: str | None = None
    default_value: Any = None
    allowed_values: list[Any] | None = None


class TemplateOutput(CamelModel):
    name: str
    type: str | None = None
    description: str | None = None


class TemplateMetadata(CamelModel):
    description: str
    category: str = "General"
    tags: list[str] = Field(default_factory=list)
    author: str = "Microsoft"
    version: str = "1.0.0"
    created_date: datetime
    updated_date: datetime


class TemplateRecord(CamelModel):
    """Everything extracted from one template file."""

    id: str
    name: str
    path: str
    file_name: str
    size: int = 0
    content: str = ""
    metadata: TemplateMetadata
    resource_types: list[TemplateResourceType] = Field(default_factory=list)
    parameters: list[TemplateParameter] = Field(default_factory=list)
    outputs: list[TemplateOutput] = Field(default_factory=list)
    last_modified: datetime
    complexity: Complexity = "simple"


class ResourceTypeSummary(CamelModel):
    """Aggregate view of one resource type across an index."""

    type: str
    template_count: int = 0
    common_properties: list[str] = Field(default_factory=list)
    provider: str


class TemplateIndex(CamelModel):
    """All template records from one data source, built in one pass."""

    templates: list[TemplateRecord] = Field(default_factory=list)
    categories: dict[str, int] = Field(default_factory=dict)
    resource_types: dict[str, ResourceTypeSummary] = Field(default_factory=dict)
    total_templates: int = 0
    failed_files: list[str] = Field(default_factory=list)
    last_updated: datetime
    data_source: str | None = None


class TemplateSearchCriteria(CamelModel):
    """Optional, conjunctive filters over a template index."""

    categories: list[str] | None = None
    resource_types: list[str] | None = None
    keywords: list[str] | None = None
    max_complexity: Complexity | None = None
    sort_by: Literal["name", "complexity", "size", "resources"] | None = None
    limit: int | None = Field(None, ge=1)


class TemplateExtractRequest(CamelModel):
    """Raw template content to extract."""

    content: str
    file_name: str = Field(..., description="File name; .bicep selects the Bicep extractor")
    path: str | None = None
    size: int | None = None


class TemplateSearchRequest(TemplateSearchCriteria):
    """Search criteria plus the data source to search."""

    source: str = Field("quickstart-templates", description="Registered data source name")

    model_config = {
        "json_schema_extra": {
            "example": {
                "source": "quickstart-templates",
                "categories": ["Storage"],
                "keywords": ["blob"],
                "maxComplexity": "moderate",
                "sortBy": "name",
                "limit": 10,
            }
        }
    }
