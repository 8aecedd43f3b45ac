"""Policy if-trees as a closed set of node types.

A raw condition is a JSON object in one of three shapes:

- logical: ``{"allOf": [...]}``, ``{"anyOf": [...]}`` or ``{"not": {...}}``
- field: ``{"field": "<alias>", "<operator>": <operand>, ...}``
- count: ``{"count": {"field": "<alias>[*]", "where": {...}}, "<operator>": n}``

``parse_condition`` turns that into ``LogicalCondition``, ``FieldCondition``
or ``CountCondition``. Anything else (non-objects, ``{}``, value-only
conditions) parses to ``None`` and is skipped by every traversal.
"""

from dataclasses import dataclass, field as dc_field
from typing import Any, Iterator, Union

COMPARISON_OPERATORS = (
    "equals",
    "notEquals",
    "like",
    "notLike",
    "match",
    "notMatch",
    "contains",
    "notContains",
    "in",
    "notIn",
    "containsKey",
    "notContainsKey",
    "less",
    "lessOrEquals",
    "greater",
    "greaterOrEquals",
    "exists",
)

LOGICAL_OPERATORS = ("allOf", "anyOf", "not")


@dataclass(frozen=True)
class LogicalCondition:
    operator: str
    children: tuple["Condition", ...] = ()


@dataclass(frozen=True)
class FieldCondition:
    field: str
    # (operator, operand) pairs in COMPARISON_OPERATORS order
    comparisons: tuple[tuple[str, Any], ...] = ()


@dataclass(frozen=True)
class CountCondition:
    field: str | None
    where: Union["Condition", None] = None
    comparisons: tuple[tuple[str, Any], ...] = ()
    expression: dict = dc_field(default_factory=dict, compare=False)


Condition = Union[LogicalCondition, FieldCondition, CountCondition]


def _comparisons(node: dict) -> tuple[tuple[str, Any], ...]:
    return tuple((op, node[op]) for op in COMPARISON_OPERATORS if op in node)


def parse_condition(node: Any) -> Condition | None:
    """Parse a raw condition object. Unrecognized shapes return None.

    When a node carries more than one shape, logical keys win over
    ``field``, which wins over ``count``.
    """
    if not isinstance(node, dict) or not node:
        return None

    for op in ("allOf", "anyOf"):
        if op in node:
            raw_children = node[op]
            if not isinstance(raw_children, list):
                return None
            children = (parse_condition(child) for child in raw_children)
            return LogicalCondition(op, tuple(c for c in children if c is not None))

    if "not" in node:
        child = parse_condition(node["not"])
        return LogicalCondition("not", (child,) if child is not None else ())

    field_name = node.get("field")
    if isinstance(field_name, str) and field_name:
        return FieldCondition(field_name, _comparisons(node))

    count = node.get("count")
    if isinstance(count, dict):
        count_field = count.get("field")
        # Operators may sit inside the count object or beside it
        comparisons = _comparisons(count) or _comparisons(node)
        return CountCondition(
            field=count_field if isinstance(count_field, str) else None,
            where=parse_condition(count.get("where")),
            comparisons=comparisons,
            expression=count,
        )

    return None


def walk(condition: Condition | None) -> Iterator[Condition]:
    """Yield every node depth-first, parents before children.

    Count nodes are followed into their ``where`` clause.
    """
    if condition is None:
        return
    yield condition
    if isinstance(condition, LogicalCondition):
        for child in condition.children:
            yield from walk(child)
    elif isinstance(condition, CountCondition):
        yield from walk(condition.where)


class ConditionVisitor:
    """Dispatch on node type. Subclasses implement one method per shape."""

    def visit(self, condition: Condition | None):
        if condition is None:
            return self.visit_empty()
        if isinstance(condition, LogicalCondition):
            return self.visit_logical(condition)
        if isinstance(condition, FieldCondition):
            return self.visit_field(condition)
        if isinstance(condition, CountCondition):
            return self.visit_count(condition)
        raise TypeError(f"Unknown condition node: {type(condition).__name__}")

    def visit_empty(self):
        return None

    def visit_logical(self, condition: LogicalCondition):
        raise NotImplementedError

    def visit_field(self, condition: FieldCondition):
        raise NotImplementedError

    def visit_count(self, condition: CountCondition):
        raise NotImplementedError
