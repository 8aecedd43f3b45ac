"""Unit tests for template and policy search."""

from datetime import datetime, timezone

import pytest

from iac_index.schemas.policy import EffectInfo, ParsedPolicy, PolicySearchCriteria
from iac_index.schemas.template import (
    TemplateMetadata,
    TemplateRecord,
    TemplateResourceType,
    TemplateSearchCriteria,
)
from iac_index.services.policy_indexer import build_policy_index, search_policies
from iac_index.services.template_extractor import build_index, search_templates, sort_templates

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_template(
    name: str,
    complexity: str = "simple",
    size: int = 1000,
    category: str = "General",
    resource_types: list[str] | None = None,
    description: str = "",
    tags: list[str] | None = None,
) -> TemplateRecord:
    return TemplateRecord(
        id=f"Azure/test/{name}",
        name=name,
        path=f"quickstarts/{name}/main.bicep",
        file_name="main.bicep",
        size=size,
        metadata=TemplateMetadata(
            description=description or f"Template: {name}",
            category=category,
            tags=tags or [],
            created_date=NOW,
            updated_date=NOW,
        ),
        resource_types=[
            TemplateResourceType(type=t, provider=t.split("/")[0]) for t in (resource_types or [])
        ],
        last_modified=NOW,
        complexity=complexity,
    )


def names(records) -> list[str]:
    return [r.name for r in records]


class TestTemplateSearch:
    """Tests for filter/sort/limit over a template index."""

    def test_max_complexity_simple(self):
        index = build_index([make_template("easy", "simple"), make_template("medium", "moderate")])
        results = search_templates(index, TemplateSearchCriteria(max_complexity="simple"))
        assert names(results) == ["easy"]

    def test_sort_by_size(self):
        index = build_index([
            make_template("big", "simple", size=5000),
            make_template("small", "simple", size=2000),
        ])
        results = search_templates(index, TemplateSearchCriteria(max_complexity="simple", sort_by="size"))
        assert names(results) == ["small", "big"]

    def test_empty_criteria_preserves_order(self):
        index = build_index([make_template(n) for n in ["c", "a", "b"]])
        assert names(search_templates(index, TemplateSearchCriteria())) == ["c", "a", "b"]

    def test_category_exact_match(self):
        index = build_index([
            make_template("vm", category="Compute"),
            make_template("sa", category="Storage"),
        ])
        results = search_templates(index, TemplateSearchCriteria(categories=["Storage", "Web"]))
        assert names(results) == ["sa"]

    def test_category_is_case_sensitive(self):
        index = build_index([make_template("sa", category="Storage")])
        assert search_templates(index, TemplateSearchCriteria(categories=["storage"])) == []

    def test_resource_type_query_contained_in_type(self):
        index = build_index([
            make_template("sa", resource_types=["Microsoft.Storage/storageAccounts@2023-01-01"]),
            make_template("vm", resource_types=["Microsoft.Compute/virtualMachines"]),
        ])
        results = search_templates(index, TemplateSearchCriteria(resource_types=["Microsoft.Storage/storageAccounts"]))
        assert names(results) == ["sa"]

    def test_resource_type_type_contained_in_query(self):
        index = build_index([make_template("vm", resource_types=["Microsoft.Compute/virtualMachines"])])
        query = ["Microsoft.Compute/virtualMachines/extensions"]
        assert names(search_templates(index, TemplateSearchCriteria(resource_types=query))) == ["vm"]

    def test_keywords_match_name_description_and_tags(self):
        index = build_index([
            make_template("hub-spoke", description="Network topology"),
            make_template("aks", tags=["Kubernetes"]),
            make_template("other"),
        ])
        assert names(search_templates(index, TemplateSearchCriteria(keywords=["HUB"]))) == ["hub-spoke"]
        assert names(search_templates(index, TemplateSearchCriteria(keywords=["kubernetes"]))) == ["aks"]
        assert names(search_templates(index, TemplateSearchCriteria(keywords=["topology", "kubernetes"]))) == [
            "hub-spoke",
            "aks",
        ]

    def test_filters_are_conjunctive(self):
        index = build_index([
            make_template("sa-simple", "simple", category="Storage"),
            make_template("sa-complex", "complex", category="Storage"),
            make_template("vm-simple", "simple", category="Compute"),
        ])
        criteria = TemplateSearchCriteria(categories=["Storage"], max_complexity="moderate")
        assert names(search_templates(index, criteria)) == ["sa-simple"]

    def test_limit_applies_after_sort(self):
        index = build_index([make_template(n) for n in ["c", "a", "b"]])
        results = search_templates(index, TemplateSearchCriteria(sort_by="name", limit=2))
        assert names(results) == ["a", "b"]

    def test_search_does_not_reorder_index(self):
        index = build_index([make_template(n) for n in ["c", "a", "b"]])
        search_templates(index, TemplateSearchCriteria(sort_by="name"))
        assert names(index.templates) == ["c", "a", "b"]

    def test_criteria_accept_camel_case(self):
        criteria = TemplateSearchCriteria.model_validate({"maxComplexity": "simple", "sortBy": "size"})
        assert criteria.max_complexity == "simple"
        assert criteria.sort_by == "size"


class TestSortTemplates:
    """Tests for each sort key."""

    def test_by_complexity_ascending(self):
        records = [make_template("x", "complex"), make_template("y", "simple"), make_template("z", "moderate")]
        assert names(sort_templates(records, "complexity")) == ["y", "z", "x"]

    def test_by_resources_descending(self):
        records = [
            make_template("one", resource_types=["A/a"]),
            make_template("three", resource_types=["A/a", "B/b", "C/c"]),
            make_template("none"),
        ]
        assert names(sort_templates(records, "resources")) == ["three", "one", "none"]

    def test_sort_is_stable(self):
        records = [make_template("first", size=10), make_template("second", size=10)]
        assert names(sort_templates(records, "size")) == ["first", "second"]

    def test_unknown_key_keeps_order(self):
        records = [make_template("b"), make_template("a")]
        assert names(sort_templates(records, None)) == ["b", "a"]


def make_policy(
    name: str,
    category: str = "General",
    effect: str = "Audit",
    resource_types: list[str] | None = None,
    policy_type: str = "BuiltIn",
    preview: bool = False,
    deprecated: bool = False,
    description: str = "",
) -> ParsedPolicy:
    return ParsedPolicy(
        id=f"policies/{name}",
        name=name,
        display_name=name.replace("-", " ").title(),
        description=description,
        category=category,
        policy_type=policy_type,
        preview=preview,
        deprecated=deprecated,
        resource_types=resource_types or [],
        effects=[EffectInfo(effect=effect)],
    )


@pytest.fixture
def policy_index():
    return build_policy_index([
        make_policy("storage-https", "Storage", "Deny", ["Microsoft.Storage/storageAccounts"]),
        make_policy("vm-backup", "Compute", "AuditIfNotExists", ["Microsoft.Compute/virtualMachines"]),
        make_policy("tag-audit", "Tags", "audit", [], policy_type="Custom"),
        make_policy("preview-policy", "Storage", "Audit", ["Microsoft.Storage/storageAccounts"], preview=True),
        make_policy("old-policy", "Storage", "Audit", ["Microsoft.Storage/storageAccounts"], deprecated=True),
    ])


class TestPolicyIndex:
    """Tests for policy index aggregation."""

    def test_counts_and_resource_map(self, policy_index):
        assert policy_index.total_policies == 5
        assert policy_index.categories == {"Storage": 3, "Compute": 1, "Tags": 1}
        assert policy_index.resource_types["Microsoft.Storage/storageAccounts"] == [
            "policies/storage-https",
            "policies/preview-policy",
            "policies/old-policy",
        ]


class TestPolicySearch:
    """Tests for policy filters."""

    def test_defaults_exclude_deprecated_only(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria())
        assert "old-policy" not in names(results)
        assert "preview-policy" in names(results)

    def test_include_deprecated(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(include_deprecated=True))
        assert len(results) == 5

    def test_exclude_preview(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(include_preview=False))
        assert "preview-policy" not in names(results)

    def test_resource_type_is_exact_and_case_insensitive(self, policy_index):
        exact = search_policies(policy_index, PolicySearchCriteria(resource_types=["microsoft.storage/storageaccounts"]))
        assert names(exact) == ["storage-https", "preview-policy"]
        partial = search_policies(policy_index, PolicySearchCriteria(resource_types=["Microsoft.Storage"]))
        assert partial == []

    def test_effects_case_insensitive(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(effects=["AUDIT"]))
        assert names(results) == ["tag-audit", "preview-policy"]

    def test_categories_and_policy_types(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(categories=["Tags"], policy_types=["Custom"]))
        assert names(results) == ["tag-audit"]

    def test_keywords_search_display_name(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(keywords=["BACKUP"]))
        assert names(results) == ["vm-backup"]

    def test_limit(self, policy_index):
        results = search_policies(policy_index, PolicySearchCriteria(limit=2))
        assert names(results) == ["storage-https", "vm-backup"]
