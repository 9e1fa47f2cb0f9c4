"""
Read/write adapters between document-shaped dicts and model objects.

Stored documents come from several editor generations:

    - ids under "uuid" (older) or "id"
    - pages typed "set" (older) or "page"
    - children in "items" (embedded objects) and/or "nodes"
      (embedded objects or bare id strings)

This module is the only place that knows those shapes. Readers flatten a
nested node dict into id -> Node entries; writers expand them back into
the slot and shape each child was read from.

ARCHITECTURAL RULE:
    Nothing outside this module and formflow.serialization inspects raw
    document keys.
"""
from __future__ import annotations

import copy
import uuid
from typing import Any, Callable, Dict, Mapping, MutableMapping, Optional

from formflow.conditions import DEFAULT_CONDITION, condition_to_string, parse_condition
from formflow.expressions import ALWAYS_TRUE
from formflow.model import (
    ChildRef,
    ChildSlot,
    NavigationRule,
    Node,
    NodeType,
    Severity,
    ValidationRule,
)

IdFactory = Callable[[], str]

ID_KEYS = ("uuid", "id")
_NODE_KEYS = frozenset({
    "uuid", "id", "type", "name", "label", "fieldName",
    "items", "nodes", "navigationRules", "validationRules",
})
_PAGE_TYPES = frozenset({"set", "page"})


class DocumentFormatError(Exception):
    """Raised when a stored document cannot be read."""
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def node_type_from_raw(raw_type: str) -> NodeType:
    if raw_type == NodeType.SECTION.value:
        return NodeType.SECTION
    if raw_type in _PAGE_TYPES:
        return NodeType.PAGE
    return NodeType.BLOCK


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def navigation_rule_from_dict(d: Mapping[str, Any]) -> NavigationRule:
    if not isinstance(d, Mapping):
        raise DocumentFormatError(f"Navigation rule must be an object, got {type(d).__name__}")
    is_default = bool(d.get("isDefault", False))
    raw_condition = d.get("condition")
    if is_default and not raw_condition:
        condition = ALWAYS_TRUE
    else:
        condition = parse_condition(raw_condition if isinstance(raw_condition, str) else None)
    target = d.get("target")
    return NavigationRule(
        target="" if target is None else str(target),
        condition=condition,
        is_page=bool(d.get("isPage", False)),
        is_default=is_default,
    )


def navigation_rule_to_dict(rule: NavigationRule) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "condition": DEFAULT_CONDITION if rule.is_default else condition_to_string(rule.condition),
        "target": rule.target,
    }
    if rule.is_page:
        d["isPage"] = True
    if rule.is_default:
        d["isDefault"] = True
    return d


def validation_rule_from_dict(d: Mapping[str, Any]) -> ValidationRule:
    if not isinstance(d, Mapping):
        raise DocumentFormatError(f"Validation rule must be an object, got {type(d).__name__}")
    operator = d.get("operator")
    if not operator:
        raise DocumentFormatError(f"Validation rule without operator: {dict(d)!r}")

    severity = d.get("severity")
    try:
        severity = Severity(severity) if severity is not None else None
    except ValueError:
        raise DocumentFormatError(f"Unknown validation severity: {severity!r}") from None

    raw_condition = d.get("condition")
    return ValidationRule(
        operator=str(operator),
        message=str(d.get("message", "")),
        value=copy.deepcopy(d.get("value")),
        field=d.get("field") or None,
        severity=severity,
        condition=parse_condition(raw_condition) if raw_condition else None,
        id=d.get("id"),
        dependencies=tuple(d.get("dependencies") or ()),
    )


def validation_rule_to_dict(rule: ValidationRule) -> Dict[str, Any]:
    d: Dict[str, Any] = {}
    if rule.id is not None:
        d["id"] = rule.id
    if rule.field is not None:
        d["field"] = rule.field
    d["operator"] = rule.operator
    if rule.value is not None:
        d["value"] = copy.deepcopy(rule.value)
    d["message"] = rule.message
    if rule.severity is not None:
        d["severity"] = rule.severity.value
    if rule.condition is not None:
        d["condition"] = condition_to_string(rule.condition)
    if rule.dependencies:
        d["dependencies"] = list(rule.dependencies)
    return d


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


def flatten_node(
    d: Mapping[str, Any],
    into: MutableMapping[str, Node],
    id_factory: IdFactory = new_id,
    default_type: Optional[str] = None,
    keep_ids: bool = True,
) -> str:
    """
    Read a nested node dict into `into`, depth first.

    Args:
        d: Node object in document shape
        into: Receives id -> Node for the node and every embedded descendant
        id_factory: Supplies ids for objects that carry none
        default_type: Type used when the object has no "type"; when None a
            missing type is an error
        keep_ids: When False every node gets a fresh id from `id_factory`

    Returns:
        Id of the node read from `d`

    Raises:
        DocumentFormatError: non-object entries, missing type, duplicate ids
    """
    if not isinstance(d, Mapping):
        raise DocumentFormatError(f"Node must be an object, got {type(d).__name__}")

    raw_type = d.get("type")
    if not raw_type:
        if default_type is None:
            raise DocumentFormatError(f"Node without type: {_describe(d)}")
        raw_type = default_type
    raw_type = str(raw_type)

    node_id = None
    if keep_ids:
        node_id = next((str(d[key]) for key in ID_KEYS if d.get(key)), None)
    if node_id is None:
        node_id = id_factory()
    if node_id in into:
        raise DocumentFormatError(f"Duplicate node id: {node_id}")
    # Reserve the id before descending so children cannot reuse it.
    into[node_id] = None  # type: ignore[assignment]

    children = []
    for slot in (ChildSlot.ITEMS, ChildSlot.NODES):
        entries = d.get(slot.value) or []
        if not isinstance(entries, list):
            raise DocumentFormatError(f"'{slot.value}' of node {node_id} must be a list")
        for entry in entries:
            if isinstance(entry, str):
                children.append(ChildRef(entry, slot, embedded=False))
            else:
                child_id = flatten_node(entry, into, id_factory, default_type, keep_ids)
                children.append(ChildRef(child_id, slot, embedded=True))

    into[node_id] = Node(
        id=node_id,
        type=node_type_from_raw(raw_type),
        name=d.get("name"),
        label=d.get("label"),
        field_name=d.get("fieldName"),
        raw_type=raw_type,
        children=tuple(children),
        navigation_rules=tuple(
            navigation_rule_from_dict(r) for r in d.get("navigationRules") or []
        ),
        validation_rules=tuple(
            validation_rule_from_dict(r) for r in d.get("validationRules") or []
        ),
        extra={k: copy.deepcopy(v) for k, v in d.items() if k not in _NODE_KEYS},
    )
    return node_id


def expand_node(node_id: str, nodes: Mapping[str, Node]) -> Dict[str, Any]:
    """Write a node and its embedded descendants back to document shape."""
    node = nodes[node_id]
    d: Dict[str, Any] = {
        "uuid": node.id,
        "type": node.raw_type or node.type.value,
    }
    if node.name is not None:
        d["name"] = node.name
    if node.label is not None:
        d["label"] = node.label
    if node.field_name is not None:
        d["fieldName"] = node.field_name
    d.update(copy.deepcopy(node.extra))

    for slot in (ChildSlot.ITEMS, ChildSlot.NODES):
        refs = [ref for ref in node.children if ref.slot is slot]
        if refs:
            d[slot.value] = [
                expand_node(ref.node_id, nodes)
                if ref.embedded and ref.node_id in nodes else ref.node_id
                for ref in refs
            ]

    if node.navigation_rules:
        d["navigationRules"] = [navigation_rule_to_dict(r) for r in node.navigation_rules]
    if node.validation_rules:
        d["validationRules"] = [validation_rule_to_dict(r) for r in node.validation_rules]
    return d


def _describe(d: Mapping[str, Any]) -> str:
    for key in ID_KEYS + ("name", "label"):
        if d.get(key):
            return f"{key}={d[key]!r}"
    return "<anonymous>"
