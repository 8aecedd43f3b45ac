"""Pydantic schemas for parsed policy definitions."""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from iac_index.schemas.common import CamelModel, Complexity


class ParameterInfo(CamelModel):
    """One declared policy parameter."""

    name: str
    type: str | None = None
    display_name: str | None = None
    description: str | None = None
    required: bool = Field(..., description="True when no defaultValue is declared")
    allowed_values: list[Any] | None = None
    default_value: Any = None


class ConditionInfo(CamelModel):
    """A listed condition, mirroring the shape of the policy's if-tree."""

    type: Literal["field", "logical", "function"]
    operator: str
    field: str | None = None
    value: Any = None
    nested: list["ConditionInfo"] | None = None


class FieldCheck(CamelModel):
    """Every operator/value applied to one field across a condition tree."""

    field: str
    operators: list[str] = Field(default_factory=list)
    values: list[Any] = Field(default_factory=list)
    required: bool = False


class RuleAnalysis(CamelModel):
    """Derived views over a policy's if-tree."""

    conditions: list[ConditionInfo] = Field(default_factory=list)
    logical_operators: list[str] = Field(default_factory=list)
    field_checks: list[FieldCheck] = Field(default_factory=list)
    complexity: Complexity = "simple"


class EffectInfo(CamelModel):
    """Characteristics of a policy's then-clause."""

    effect: str
    has_details: bool = False
    requires_role_definitions: bool = False
    deploys_resources: bool = False
    modifies_resources: bool = False


class ParsedPolicy(CamelModel):
    """Flattened, queryable record for one policy definition."""

    id: str
    name: str
    display_name: str = ""
    description: str = ""
    category: str = "General"
    policy_type: str | None = None
    mode: str | None = None
    version: str | None = None
    deprecated: bool = False
    preview: bool = False
    parameters: list[ParameterInfo] = Field(default_factory=list)
    rules: RuleAnalysis = Field(default_factory=RuleAnalysis)
    resource_types: list[str] = Field(default_factory=list)
    effects: list[EffectInfo] = Field(default_factory=list)


class ResourceTypeCompatibility(CamelModel):
    """Fields a policy checks on one inferred resource type."""

    resource_type: str
    compatible: bool = True
    reason: str | None = None
    required_fields: list[str] = Field(default_factory=list)
    optional_fields: list[str] = Field(default_factory=list)


class PolicyValidationResult(CamelModel):
    """Structural findings for a policy definition."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    resource_type_compatibility: list[ResourceTypeCompatibility] = Field(default_factory=list)


class PolicySearchCriteria(CamelModel):
    """Optional, conjunctive filters over a policy index."""

    categories: list[str] | None = None
    effects: list[str] | None = None
    resource_types: list[str] | None = None
    keywords: list[str] | None = None
    policy_types: list[str] | None = None
    include_preview: bool = True
    include_deprecated: bool = False
    limit: int | None = Field(None, ge=1)


class PolicyIndex(CamelModel):
    """All parsed policies from one data source."""

    policies: list[ParsedPolicy] = Field(default_factory=list)
    categories: dict[str, int] = Field(default_factory=dict)
    resource_types: dict[str, list[str]] = Field(
        default_factory=dict, description="Resource type to ids of policies that target it"
    )
    total_policies: int = 0
    failed_files: list[str] = Field(default_factory=list)
    last_updated: datetime
    data_source: str | None = None


class PolicyAnalyzeRequest(CamelModel):
    """Raw policy definition text to parse."""

    content: str = Field(..., description="Policy definition JSON text")
    id: str | None = Field(None, description="Identifier to assign to the parsed policy")

    model_config = {
        "json_schema_extra": {
            "example": {
                "id": "storage-https",
                "content": '{"properties": {"displayName": "Storage accounts should use HTTPS", '
                '"mode": "All", "policyRule": {"if": {"field": "type", '
                '"equals": "Microsoft.Storage/storageAccounts"}, "then": {"effect": "audit"}}}}',
            }
        }
    }


class PolicyValidateRequest(CamelModel):
    """Pre-decoded policy definition to validate."""

    definition: dict[str, Any]
