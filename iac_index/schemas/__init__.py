"""Pydantic schemas package."""

from iac_index.schemas.policy import (
    ConditionInfo,
    EffectInfo,
    FieldCheck,
    ParameterInfo,
    ParsedPolicy,
    PolicyIndex,
    PolicySearchCriteria,
    PolicyValidationResult,
    ResourceTypeCompatibility,
    RuleAnalysis,
)
from iac_index.schemas.template import (
    ResourceTypeSummary,
    TemplateIndex,
    TemplateMetadata,
    TemplateOutput,
    TemplateParameter,
    TemplateRecord,
    TemplateResourceType,
    TemplateSearchCriteria,
)

__all__ = [
    "ConditionInfo",
    "EffectInfo",
    "FieldCheck",
    "ParameterInfo",
    "ParsedPolicy",
    "PolicyIndex",
    "PolicySearchCriteria",
    "PolicyValidationResult",
    "ResourceTypeCompatibility",
    "RuleAnalysis",
    "ResourceTypeSummary",
    "TemplateIndex",
    "TemplateMetadata",
    "TemplateOutput",
    "TemplateParameter",
    "TemplateRecord",
    "TemplateResourceType",
    "TemplateSearchCriteria",
]
