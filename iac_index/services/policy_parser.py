"""Policy Parser - turns policy definitions into queryable records."""

import copy
import hashlib
import json
import logging
import re
from typing import Any

from iac_index.cache import CacheStore, get_cache
from iac_index.config import get_settings
from iac_index.errors import PolicyParsingError
from iac_index.metrics import POLICY_PARSE_TOTAL
from iac_index.schemas.policy import (
    ConditionInfo,
    EffectInfo,
    FieldCheck,
    ParameterInfo,
    ParsedPolicy,
    PolicyValidationResult,
    ResourceTypeCompatibility,
    RuleAnalysis,
)
from iac_index.services.conditions import (
    Condition,
    ConditionVisitor,
    CountCondition,
    FieldCondition,
    LogicalCondition,
    parse_condition,
    walk,
)

logger = logging.getLogger(__name__)

# Resource types assumed for near-universal fields such as location and tags
COMMON_RESOURCE_TYPES = (
    "Microsoft.Compute/virtualMachines",
    "Microsoft.Storage/storageAccounts",
    "Microsoft.Network/virtualNetworks",
    "Microsoft.Network/networkSecurityGroups",
    "Microsoft.Web/sites",
    "Microsoft.KeyVault/vaults",
    "Microsoft.ContainerInstance/containerGroups",
    "Microsoft.ContainerRegistry/registries",
)

# Field substring -> resource types, consulted only when no explicit type check exists
FIELD_PATTERN_RESOURCE_TYPES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("location", COMMON_RESOURCE_TYPES),
    ("tags", COMMON_RESOURCE_TYPES),
    ("sku", ("Microsoft.Compute/virtualMachines", "Microsoft.Storage/storageAccounts")),
    ("properties.encryption", ("Microsoft.Storage/storageAccounts", "Microsoft.KeyVault/vaults")),
    ("properties.networkAcls", ("Microsoft.Storage/storageAccounts",)),
    ("properties.supportsHttpsTrafficOnly", ("Microsoft.Storage/storageAccounts",)),
    ("properties.minimumTlsVersion", ("Microsoft.Storage/storageAccounts",)),
)

# Aliases such as Microsoft.Storage/storageAccounts/supportsHttpsTrafficOnly
RESOURCE_ALIAS_PATTERN = re.compile(r"^(Microsoft\.\w+/\w+)")

# (max conditions, max logical operators, max field checks)
SIMPLE_LIMITS = (3, 1, 2)
MODERATE_LIMITS = (8, 3, 5)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _string(value: Any, default: str | None = None) -> str | None:
    return value if isinstance(value, str) and value else default


def _is_true(value: Any) -> bool:
    # Built-in definitions write exists as either a boolean or a string
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _is_literal(value: Any) -> bool:
    """A plain string operand, not an ARM expression like [parameters('x')]."""
    return isinstance(value, str) and bool(value) and not value.startswith("[")


def _properties(policy: Any) -> dict:
    """Accept both the ARM envelope and a bare properties object."""
    policy = _as_dict(policy)
    if "properties" in policy:
        return _as_dict(policy["properties"])
    return policy


# =============================================================================
# Condition tree views
# =============================================================================

class _ConditionLister(ConditionVisitor):
    """Rebuilds the if-tree as ConditionInfo entries, one per operator."""

    def visit_empty(self) -> list[ConditionInfo]:
        return []

    def visit_logical(self, condition: LogicalCondition) -> list[ConditionInfo]:
        nested = [info for child in condition.children for info in self.visit(child)]
        return [ConditionInfo(type="logical", operator=condition.operator, nested=nested)]

    def visit_field(self, condition: FieldCondition) -> list[ConditionInfo]:
        return [
            ConditionInfo(type="field", operator=op, field=condition.field, value=value)
            for op, value in condition.comparisons
        ]

    def visit_count(self, condition: CountCondition) -> list[ConditionInfo]:
        return [
            ConditionInfo(
                type="function",
                operator="count",
                field=condition.field,
                value=condition.expression,
                nested=self.visit(condition.where),
            )
        ]


def list_conditions(condition: Condition | None) -> list[ConditionInfo]:
    """Order-preserving listing of the tree."""
    return _ConditionLister().visit(condition)


def count_listed(conditions: list[ConditionInfo]) -> int:
    """Number of listed entries at every depth."""
    return sum(1 + count_listed(info.nested or []) for info in conditions)


def aggregate_field_checks(condition: Condition | None) -> list[FieldCheck]:
    """Merge every comparison on each field into one FieldCheck per field."""
    checks: dict[str, FieldCheck] = {}
    for node in walk(condition):
        if not isinstance(node, FieldCondition) or not node.comparisons:
            continue
        check = checks.get(node.field)
        if check is None:
            check = checks[node.field] = FieldCheck(field=node.field)
        for op, value in node.comparisons:
            check.operators.append(op)
            check.values.append(value)
            if op == "exists" and _is_true(value):
                check.required = True
    return list(checks.values())


def collect_logical_operators(condition: Condition | None) -> list[str]:
    """Distinct logical keywords in order of first appearance."""
    seen: dict[str, None] = {}
    for node in walk(condition):
        if isinstance(node, LogicalCondition):
            seen.setdefault(node.operator, None)
    return list(seen)


def classify_rule_complexity(conditions: int, logical_operators: int, field_checks: int) -> str:
    counts = (conditions, logical_operators, field_checks)
    if all(count <= limit for count, limit in zip(counts, SIMPLE_LIMITS)):
        return "simple"
    if all(count <= limit for count, limit in zip(counts, MODERATE_LIMITS)):
        return "moderate"
    return "complex"


def analyze_rules(condition: Condition | None) -> RuleAnalysis:
    conditions = list_conditions(condition)
    logical_operators = collect_logical_operators(condition)
    field_checks = aggregate_field_checks(condition)
    return RuleAnalysis(
        conditions=conditions,
        logical_operators=logical_operators,
        field_checks=field_checks,
        complexity=classify_rule_complexity(
            count_listed(conditions), len(logical_operators), len(field_checks)
        ),
    )


def infer_resource_types(condition: Condition | None) -> list[str]:
    """Resource types a policy targets.

    Explicit ``type`` checks and provider-qualified field aliases are used
    when present; otherwise types are guessed from well-known field names.
    """
    explicit: dict[str, None] = {}
    for node in walk(condition):
        if not isinstance(node, FieldCondition):
            continue
        if node.field.lower() == "type":
            for op, value in node.comparisons:
                if op == "equals" and _is_literal(value):
                    explicit.setdefault(value, None)
                elif op == "in":
                    for item in _as_list(value):
                        if _is_literal(item):
                            explicit.setdefault(item, None)
        match = RESOURCE_ALIAS_PATTERN.match(node.field)
        if match:
            explicit.setdefault(match.group(1), None)

    if explicit:
        return list(explicit)
    return _infer_from_field_names(condition)


def _infer_from_field_names(condition: Condition | None) -> list[str]:
    fields: dict[str, None] = {}
    for node in walk(condition):
        if isinstance(node, (FieldCondition, CountCondition)) and node.field:
            fields.setdefault(node.field, None)

    inferred: dict[str, None] = {}
    for field_name in fields:
        for pattern, resource_types in FIELD_PATTERN_RESOURCE_TYPES:
            if pattern in field_name:
                for resource_type in resource_types:
                    inferred.setdefault(resource_type, None)
    return list(inferred)


def extract_effects(policy_rule: dict) -> list[EffectInfo]:
    """One EffectInfo for the then-clause, or none if it has no effect."""
    then = _as_dict(policy_rule.get("then"))
    effect = then.get("effect")
    if not effect:
        return []

    details = then.get("details")
    details_dict = _as_dict(details)
    # Parameterized effects never match these literals
    return [
        EffectInfo(
            effect=str(effect),
            has_details=isinstance(details, dict),
            requires_role_definitions=bool(_as_list(details_dict.get("roleDefinitionIds"))),
            deploys_resources=effect == "deployIfNotExists" and details_dict.get("deployment") is not None,
            modifies_resources=effect == "modify" and bool(_as_list(details_dict.get("operations"))),
        )
    ]


def extract_parameters(parameters: dict) -> list[ParameterInfo]:
    result = []
    for name, raw in parameters.items():
        param = _as_dict(raw)
        metadata = _as_dict(param.get("metadata"))
        allowed = param.get("allowedValues")
        result.append(
            ParameterInfo(
                name=name,
                type=_string(param.get("type")),
                display_name=_string(metadata.get("displayName")),
                description=_string(metadata.get("description")),
                required="defaultValue" not in param,
                allowed_values=allowed if isinstance(allowed, list) else None,
                default_value=param.get("defaultValue"),
            )
        )
    return result


# =============================================================================
# Parser
# =============================================================================

class PolicyParser:
    """
    Parses and validates policy definitions.

    Definition shape (either the full envelope or just ``properties``):
    {
        "id": "/providers/Microsoft.Authorization/policyDefinitions/...",
        "name": "...",
        "properties": {
            "displayName": "...",
            "policyType": "BuiltIn" | "Custom" | "Static",
            "mode": "All" | "Indexed" | ...,
            "description": "...",
            "metadata": {"version": "1.0.0", "category": "Storage", "preview": false, "deprecated": false},
            "parameters": {"effect": {"type": "String", "defaultValue": "Audit", ...}},
            "policyRule": {"if": {...condition...}, "then": {"effect": "...", "details": {...}}}
        }
    }
    """

    def __init__(self, cache: CacheStore | None = None, cache_ttl: float | None = None):
        self.cache = cache
        self.cache_ttl = cache_ttl

    def parse(self, policy_json: str | bytes, id: str | None = None) -> ParsedPolicy:
        """Parse raw definition text. Raises PolicyParsingError on malformed input."""
        if isinstance(policy_json, bytes):
            try:
                policy_json = policy_json.decode("utf-8")
            except UnicodeDecodeError as e:
                POLICY_PARSE_TOTAL.labels(outcome="invalid").inc()
                raise PolicyParsingError(f"Invalid policy JSON: {e}") from e

        cache_key = None
        if self.cache is not None:
            digest = hashlib.sha256(policy_json.encode("utf-8")).hexdigest()
            cache_key = f"policy:{digest}:{id or ''}"
            cached = self.cache.get(cache_key)
            if cached is not None:
                POLICY_PARSE_TOTAL.labels(outcome="cached").inc()
                return cached.model_copy(deep=True)

        try:
            policy = json.loads(policy_json)
        except json.JSONDecodeError as e:
            POLICY_PARSE_TOTAL.labels(outcome="invalid").inc()
            raise PolicyParsingError(f"Invalid policy JSON: {e}") from e

        if not isinstance(policy, dict):
            POLICY_PARSE_TOTAL.labels(outcome="invalid").inc()
            raise PolicyParsingError("Invalid policy JSON: definition must be a JSON object")

        parsed = self.analyze(policy, id)
        POLICY_PARSE_TOTAL.labels(outcome="ok").inc()

        if cache_key is not None:
            self.cache.set(cache_key, parsed, self.cache_ttl)
            return parsed.model_copy(deep=True)
        return parsed

    def analyze(self, policy: dict, id: str | None = None) -> ParsedPolicy:
        """Analyze a decoded definition. Missing or mistyped optional fields fall back to defaults."""
        policy = copy.deepcopy(_as_dict(policy))
        props = _properties(policy)
        metadata = _as_dict(props.get("metadata"))
        policy_rule = _as_dict(props.get("policyRule"))
        condition = parse_condition(policy_rule.get("if"))

        version = metadata.get("version")
        return ParsedPolicy(
            id=id or _string(policy.get("id"), "unknown"),
            name=_string(policy.get("name"), "unknown"),
            display_name=_string(props.get("displayName"), ""),
            description=_string(props.get("description"), ""),
            category=_string(metadata.get("category"), "General"),
            policy_type=_string(props.get("policyType")),
            mode=_string(props.get("mode")),
            version=str(version) if version is not None else None,
            deprecated=bool(metadata.get("deprecated", False)),
            preview=bool(metadata.get("preview", False)),
            parameters=extract_parameters(_as_dict(props.get("parameters"))),
            rules=analyze_rules(condition),
            resource_types=infer_resource_types(condition),
            effects=extract_effects(policy_rule),
        )

    def validate(self, policy: dict) -> PolicyValidationResult:
        """Report structural problems as data; never raises."""
        errors: list[str] = []
        warnings: list[str] = []

        if not isinstance(policy, dict) or (
            "properties" in policy and not isinstance(policy["properties"], dict)
        ):
            return PolicyValidationResult(is_valid=False, errors=["Missing properties object"])

        props = _properties(policy)

        if not props.get("displayName"):
            errors.append("Missing displayName")
        if not props.get("description"):
            errors.append("Missing description")
        if not props.get("policyRule"):
            errors.append("Missing policyRule")
        if not props.get("mode"):
            errors.append("Missing mode")

        policy_rule = _as_dict(props.get("policyRule"))
        if policy_rule:
            if not policy_rule.get("if"):
                errors.append("Missing if condition in policyRule")
            if not policy_rule.get("then"):
                errors.append("Missing then effect in policyRule")
            elif not _as_dict(policy_rule.get("then")).get("effect"):
                errors.append("Missing effect in then clause")

        if not _as_dict(props.get("metadata")).get("category"):
            warnings.append("Missing category in metadata")

        for name, param in _as_dict(props.get("parameters")).items():
            if not _as_dict(param).get("type"):
                errors.append(f"Parameter {name} missing type")

        return PolicyValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            resource_type_compatibility=self._resource_type_compatibility(policy_rule),
        )

    def _resource_type_compatibility(self, policy_rule: dict) -> list[ResourceTypeCompatibility]:
        # No schema lookup: every inferred type is reported compatible
        condition = parse_condition(policy_rule.get("if"))
        if condition is None:
            return []

        field_checks = aggregate_field_checks(condition)
        required = [fc.field for fc in field_checks if fc.required]
        optional = [fc.field for fc in field_checks if not fc.required]
        return [
            ResourceTypeCompatibility(
                resource_type=resource_type,
                compatible=True,
                required_fields=list(required),
                optional_fields=list(optional),
            )
            for resource_type in infer_resource_types(condition)
        ]


# Singleton instance
_parser: PolicyParser | None = None


def get_policy_parser() -> PolicyParser:
    """Get the shared parser, memoizing through the process-wide cache."""
    global _parser
    if _parser is None:
        _parser = PolicyParser(cache=get_cache(), cache_ttl=get_settings().cache_ttl_policy)
    return _parser


def reset_policy_parser() -> None:
    """Drop the shared parser. Used by tests and on cache re-initialization."""
    global _parser
    _parser = None
