"""Template Extractor - best-effort metadata extraction from Bicep and ARM JSON.

Bicep files are scanned with regular expressions, not parsed. The scan is
shallow: a resource's property list holds every ``key:`` token in the first
brace block after its declaration, nested keys included, and a block that
contains a nested object is cut at the first closing brace. Missed or extra
entries are expected on hand-written templates.

ARM JSON files are decoded and read from their top-level ``resources``,
``parameters``, ``outputs`` and ``metadata`` members.

Every extraction kind fails independently: a file that cannot be read for
one kind logs a warning and yields an empty list for that kind only.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable

from iac_index.metrics import TEMPLATE_EXTRACT_FAILURES_TOTAL
from iac_index.schemas.common import COMPLEXITY_ORDER
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
from iac_index.sources.base import SourceFile

logger = logging.getLogger(__name__)

TEMPLATE_EXTENSIONS = (".bicep", ".json")

# Sibling files consulted for descriptions and tags, in preference order
METADATA_FILE_NAMES = ("readme.md", "metadata.json")

BICEP_RESOURCE_PATTERN = re.compile(r"resource\s+\w+\s+'([^']+)'[^{]*{([^}]*)}")
BICEP_PROPERTY_PATTERN = re.compile(r"(\w+):")
BICEP_PARAM_PATTERN = re.compile(r"param\s+(\w+)\s+(\w+)(?:\s*=\s*([^'\n]+))?")
BICEP_OUTPUT_PATTERN = re.compile(r"output\s+(\w+)\s+(\w+)\s*=")
BICEP_DESCRIPTION_PATTERN = re.compile(r"@description\('([^']+)'\)")
LINE_COMMENT_PATTERN = re.compile(r"//\s*(.+)")

README_TITLE_PATTERN = re.compile(r"^#\s+(.+)$", re.MULTILINE)
README_TAGS_PATTERN = re.compile(r"(?:tags?|keywords?):\s*(.+)", re.IGNORECASE)

# First match wins, so order decides ties
CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Compute", ("vm", "virtual machine", "compute", "scale set")),
    ("Storage", ("storage", "blob", "file", "queue", "table")),
    ("Network", ("network", "vnet", "subnet", "nsg", "load balancer")),
    ("Database", ("sql", "database", "cosmos", "mysql", "postgresql")),
    ("Web", ("web", "app service", "function", "logic app")),
    ("Identity", ("active directory", "identity", "rbac", "managed identity")),
    ("Security", ("key vault", "security", "certificate", "firewall")),
    ("Monitoring", ("monitor", "log analytics", "application insights")),
    ("Container", ("container", "kubernetes", "aks", "docker")),
    ("AI", ("cognitive", "machine learning", "ai", "bot")),
)
DEFAULT_CATEGORY = "General"

# Weights for resources, parameters and outputs
COMPLEXITY_WEIGHTS = (1.0, 0.5, 0.3)
SIMPLE_MAX_WEIGHT = 3
MODERATE_MAX_WEIGHT = 10


def is_bicep(file_name: str) -> bool:
    return file_name.lower().endswith(".bicep")


def is_template_file(file_name: str) -> bool:
    """Bicep or JSON files, excluding sibling metadata and parameter files."""
    lowered = file_name.lower()
    if not lowered.endswith(TEMPLATE_EXTENSIONS):
        return False
    return lowered != "metadata.json" and not lowered.endswith(".parameters.json")


def template_name(path: str) -> str:
    return re.sub(r"\.(bicep|json)$", "", path.rsplit("/", 1)[-1])


def _provider(resource_type: str) -> str:
    return resource_type.split("/", 1)[0]


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _load_json_object(content: str) -> dict:
    document = json.loads(content)
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document


def _description(entry: Any) -> str | None:
    if not isinstance(entry, dict) or not isinstance(entry.get("metadata"), dict):
        return None
    return entry["metadata"].get("description")


def _extraction_failed(kind: str, file_name: str, error: Exception) -> None:
    TEMPLATE_EXTRACT_FAILURES_TOTAL.labels(kind=kind).inc()
    logger.warning(
        f"Failed to extract {kind} from {file_name}: {error}",
        extra={"file_name": file_name, "kind": kind},
    )


# =============================================================================
# Per-kind extraction
# =============================================================================

def extract_resource_types(content: str, file_name: str) -> list[TemplateResourceType]:
    """Resources declared by a template, in declaration order."""
    try:
        if is_bicep(file_name):
            return [
                TemplateResourceType(
                    type=match.group(1),
                    provider=_provider(match.group(1)),
                    properties=_unique(BICEP_PROPERTY_PATTERN.findall(match.group(0))),
                )
                for match in BICEP_RESOURCE_PATTERN.finditer(content)
            ]

        resources = _load_json_object(content).get("resources")
        if not isinstance(resources, list):
            return []
        result = []
        for resource in resources:
            if not isinstance(resource, dict) or not isinstance(resource.get("type"), str):
                continue
            properties = resource.get("properties")
            result.append(
                TemplateResourceType(
                    type=resource["type"],
                    provider=_provider(resource["type"]),
                    properties=list(properties) if isinstance(properties, dict) else [],
                )
            )
        return result
    except (ValueError, TypeError) as e:
        _extraction_failed("resource_types", file_name, e)
        return []


def extract_parameters(content: str, file_name: str) -> list[TemplateParameter]:
    try:
        if is_bicep(file_name):
            return [
                TemplateParameter(
                    name=match.group(1),
                    type=match.group(2),
                    default_value=match.group(3).strip() if match.group(3) else None,
                )
                for match in BICEP_PARAM_PATTERN.finditer(content)
            ]

        parameters = _load_json_object(content).get("parameters")
        if not isinstance(parameters, dict):
            return []
        result = []
        for name, param in parameters.items():
            param = param if isinstance(param, dict) else {}
            allowed = param.get("allowedValues")
            result.append(
                TemplateParameter(
                    name=name,
                    type=param.get("type"),
                    description=_description(param),
                    default_value=param.get("defaultValue"),
                    allowed_values=allowed if isinstance(allowed, list) else None,
                )
            )
        return result
    except (ValueError, TypeError) as e:
        _extraction_failed("parameters", file_name, e)
        return []


def extract_outputs(content: str, file_name: str) -> list[TemplateOutput]:
    try:
        if is_bicep(file_name):
            return [
                TemplateOutput(name=match.group(1), type=match.group(2))
                for match in BICEP_OUTPUT_PATTERN.finditer(content)
            ]

        outputs = _load_json_object(content).get("outputs")
        if not isinstance(outputs, dict):
            return []
        return [
            TemplateOutput(
                name=name,
                type=output.get("type") if isinstance(output, dict) else None,
                description=_description(output),
            )
            for name, output in outputs.items()
        ]
    except (ValueError, TypeError) as e:
        _extraction_failed("outputs", file_name, e)
        return []


def extract_description(content: str, file_name: str) -> str:
    """Description embedded in the template itself, or "" when there is none."""
    try:
        if is_bicep(file_name):
            match = BICEP_DESCRIPTION_PATTERN.search(content) or LINE_COMMENT_PATTERN.search(content)
            return match.group(1).strip() if match else ""
        description = _description(_load_json_object(content))
        return description if isinstance(description, str) else ""
    except (ValueError, TypeError):
        # A broken template is already reported by the other extractions
        return ""


def infer_category(path: str, content: str, description: str) -> str:
    text = f"{path} {content} {description}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def _read_metadata_file(file_name: str, content: str) -> tuple[str, list[str]]:
    """(description, tags) from a README or metadata.json."""
    if file_name.lower().startswith("readme"):
        title = README_TITLE_PATTERN.search(content)
        tags_line = README_TAGS_PATTERN.search(content)
        tags = [t for t in re.split(r"[,\s]+", tags_line.group(1)) if t] if tags_line else []
        return (title.group(1).strip() if title else ""), tags

    document = _load_json_object(content)
    description = document.get("description")
    tags = document.get("tags")
    return (
        description if isinstance(description, str) else "",
        [str(t) for t in tags] if isinstance(tags, list) else [],
    )


def extract_metadata(
    path: str,
    file_name: str,
    content: str,
    metadata_file_name: str | None = None,
    metadata_content: str | None = None,
) -> TemplateMetadata:
    """Description, category and tags for a template.

    A sibling README or metadata.json takes precedence for the description;
    otherwise it comes from the template itself, and finally falls back to
    ``Template: <file name>``.
    """
    description = ""
    tags: list[str] = []

    if metadata_file_name and metadata_content is not None:
        try:
            description, tags = _read_metadata_file(metadata_file_name, metadata_content)
        except (ValueError, TypeError) as e:
            _extraction_failed("metadata", metadata_file_name, e)

    category = infer_category(path, content, description)

    if not description:
        description = extract_description(content, file_name)

    now = datetime.now(timezone.utc)
    return TemplateMetadata(
        description=description or f"Template: {file_name}",
        category=category,
        tags=tags,
        created_date=now,
        updated_date=now,
    )


def assess_complexity(resource_count: int, parameter_count: int, output_count: int) -> str:
    weight = sum(
        count * factor
        for count, factor in zip((resource_count, parameter_count, output_count), COMPLEXITY_WEIGHTS)
    )
    if weight <= SIMPLE_MAX_WEIGHT:
        return "simple"
    if weight <= MODERATE_MAX_WEIGHT:
        return "moderate"
    return "complex"


def find_metadata_file(template: SourceFile, files: Iterable[SourceFile]) -> SourceFile | None:
    """The README or metadata.json sitting next to a template, if any."""
    siblings = {
        f.name.lower(): f
        for f in files
        if f.directory == template.directory and f.name.lower() in METADATA_FILE_NAMES
    }
    for name in METADATA_FILE_NAMES:
        if name in siblings:
            return siblings[name]
    return None


def build_record(
    source_key: str,
    file: SourceFile,
    content: str,
    metadata_file: tuple[str, str] | None = None,
) -> TemplateRecord:
    """Compose every extraction for one file into a TemplateRecord.

    Args:
        source_key: ``owner/repo`` of the data source
        file: The template's listing entry
        content: Raw template text
        metadata_file: Optional ``(file_name, content)`` of a sibling README or metadata.json
    """
    metadata_name, metadata_content = metadata_file or (None, None)
    resource_types = extract_resource_types(content, file.name)
    parameters = extract_parameters(content, file.name)
    outputs = extract_outputs(content, file.name)

    return TemplateRecord(
        id=f"{source_key}/{file.path}",
        name=template_name(file.path),
        path=file.path,
        file_name=file.name,
        size=file.size or len(content.encode("utf-8")),
        content=content,
        metadata=extract_metadata(file.path, file.name, content, metadata_name, metadata_content),
        resource_types=resource_types,
        parameters=parameters,
        outputs=outputs,
        last_modified=datetime.now(timezone.utc),
        complexity=assess_complexity(len(resource_types), len(parameters), len(outputs)),
    )


# =============================================================================
# Index and search
# =============================================================================

def build_index(
    records: Iterable[TemplateRecord],
    failed_files: Iterable[str] = (),
    data_source: str | None = None,
) -> TemplateIndex:
    """Aggregate records into a fresh index. Records keep their given order."""
    templates = list(records)
    categories: dict[str, int] = {}
    summaries: dict[str, ResourceTypeSummary] = {}

    for record in templates:
        category = record.metadata.category
        categories[category] = categories.get(category, 0) + 1

        for resource in record.resource_types:
            summary = summaries.get(resource.type)
            if summary is None:
                summary = summaries[resource.type] = ResourceTypeSummary(
                    type=resource.type, provider=resource.provider
                )
            summary.template_count += 1
            summary.common_properties = _unique([*summary.common_properties, *resource.properties])

    return TemplateIndex(
        templates=templates,
        categories=categories,
        resource_types=summaries,
        total_templates=len(templates),
        failed_files=list(failed_files),
        last_updated=datetime.now(timezone.utc),
        data_source=data_source,
    )


def sort_templates(templates: list[TemplateRecord], sort_by: str | None) -> list[TemplateRecord]:
    """Stable sort by name, complexity, size, or resource count (most first)."""
    if sort_by == "name":
        return sorted(templates, key=lambda t: t.name)
    if sort_by == "complexity":
        return sorted(templates, key=lambda t: COMPLEXITY_ORDER[t.complexity])
    if sort_by == "size":
        return sorted(templates, key=lambda t: t.size)
    if sort_by == "resources":
        return sorted(templates, key=lambda t: len(t.resource_types), reverse=True)
    return list(templates)


def _matches_resource_type(record: TemplateRecord, queries: list[str]) -> bool:
    return any(
        query in resource.type or resource.type in query
        for resource in record.resource_types
        for query in queries
    )


def _matches_keywords(record: TemplateRecord, keywords: list[str]) -> bool:
    text = " ".join([record.name, record.metadata.description, *record.metadata.tags]).lower()
    return any(keyword.lower() in text for keyword in keywords)


def search_templates(index: TemplateIndex, criteria: TemplateSearchCriteria) -> list[TemplateRecord]:
    """Filter, sort and truncate an index. Empty criteria return every template in order."""
    results = list(index.templates)

    if criteria.categories:
        results = [t for t in results if t.metadata.category in criteria.categories]

    if criteria.resource_types:
        results = [t for t in results if _matches_resource_type(t, criteria.resource_types)]

    if criteria.keywords:
        results = [t for t in results if _matches_keywords(t, criteria.keywords)]

    if criteria.max_complexity:
        ceiling = COMPLEXITY_ORDER[criteria.max_complexity]
        results = [t for t in results if COMPLEXITY_ORDER[t.complexity] <= ceiling]

    if criteria.sort_by:
        results = sort_templates(results, criteria.sort_by)

    if criteria.limit:
        results = results[: criteria.limit]

    return results
