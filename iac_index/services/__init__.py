"""Business logic services."""

from iac_index.services.policy_parser import PolicyParser, get_policy_parser
from iac_index.services.policy_indexer import PolicyIndexer, search_policies
from iac_index.services.template_extractor import build_index, build_record, search_templates
from iac_index.services.template_indexer import TemplateIndexer

__all__ = [
    "PolicyParser",
    "get_policy_parser",
    "PolicyIndexer",
    "search_policies",
    "build_index",
    "build_record",
    "search_templates",
    "TemplateIndexer",
]
