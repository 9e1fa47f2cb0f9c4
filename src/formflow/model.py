"""
Core Form Model Objects

Defines the data structures a form document is made of:
    - Nodes (sections, pages, blocks)
    - Child references (the one child-list type)
    - Navigation rules (where to go next)
    - Validation rules (whether an answer is accepted)

ARCHITECTURAL RULE:
    These objects:
        - Are immutable (frozen dataclasses, tuples for sequences)
        - Know nothing about JSON key names or legacy document shapes
        - Represent structure, not behavior
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from formflow.expressions import ALWAYS_TRUE, Expression

SUBMIT = "submit"


class NodeType(Enum):
    """Structural kind of a node."""

    SECTION = "section"
    PAGE = "page"
    BLOCK = "block"


class ChildSlot(Enum):
    """
    Which legacy child list a child was stored in.

    ITEMS: the newer list of embedded child objects
    NODES: the older list whose entries are child objects or bare ids
    """

    ITEMS = "items"
    NODES = "nodes"


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ChildRef:
    """
    A reference from a parent to one child, by id.

    Properties:
        node_id:
            Id of the child. For bare references this id may be absent
            from the tree; such references are never resolved locally.

        slot:
            Child list the reference came from (kept for round-tripping).

        embedded:
            True when the child was stored as an object, False for a bare
            id reference.
    """

    node_id: str
    slot: ChildSlot = ChildSlot.NODES
    embedded: bool = True


@dataclass(frozen=True)
class NavigationRule:
    """
    Condition + target pair deciding which node is visited next.

    Properties:
        target: Node id, or "submit" to finish the form
        condition: Typed condition (AlwaysTrue for "true")
        is_page: Target is a page rather than a block
        is_default: Unconditional fallback; intended to be listed last

    IMPORTANT:
        Order in the owning list is authoritative. `is_default` only makes
        the condition always true; nothing moves default rules to the end.
    """

    target: str
    condition: Expression = ALWAYS_TRUE
    is_page: bool = False
    is_default: bool = False

    @property
    def effective_condition(self) -> Expression:
        return ALWAYS_TRUE if self.is_default else self.condition

    @property
    def is_terminal(self) -> bool:
        return self.target == SUBMIT


@dataclass(frozen=True)
class ValidationRule:
    """
    Operator check deciding whether a field's answer is accepted.

    Properties:
        operator:
            Name from the operator catalog (formflow.operators.OPERATORS)

        message:
            Returned when the rule fails

        value:
            Operand. Shape depends on the operator: None, a scalar, a list,
            or a list of {"type": "variable"|"literal", "value": ...} entries

        field:
            Optional name of another field whose value is checked instead
            of the value under test

        severity:
            ERROR blocks progress, WARNING is advisory.
            None (not stated in the document) behaves as ERROR.

        condition:
            Optional guard; when it evaluates False the rule is skipped

        id, dependencies:
            Editor metadata, carried through unchanged
    """

    operator: str
    message: str
    value: Any = None
    field: Optional[str] = None
    severity: Optional[Severity] = None
    condition: Optional[Expression] = None
    id: Optional[str] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def effective_severity(self) -> Severity:
        return self.severity or Severity.ERROR


@dataclass(frozen=True)
class Node:
    """
    One entry of the form tree: a section, a page or a block.

    Properties:
        id:
            Unique within a tree snapshot, never changed after assignment

        type:
            NodeType

        name, label:
            Human-readable names (label is typical for blocks)

        field_name:
            Key under which a block's answer is stored (blocks only)

        raw_type:
            Type string as written in the document ("set", "textfield", ...).
            None for nodes created without one.

        children:
            Ordered ChildRefs across both legacy child lists

        navigation_rules, validation_rules:
            Ordered rule lists

        extra:
            Every other key of the source object, kept for round-tripping.
            Treat as read-only.
    """

    id: str
    type: NodeType
    name: Optional[str] = None
    label: Optional[str] = None
    field_name: Optional[str] = None
    raw_type: Optional[str] = None
    children: Tuple[ChildRef, ...] = ()
    navigation_rules: Tuple[NavigationRule, ...] = ()
    validation_rules: Tuple[ValidationRule, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.label or self.field_name or self.id

    @property
    def block_type(self) -> Optional[str]:
        """Widget type of a block ("radio", "textfield", ...)."""
        if self.type is not NodeType.BLOCK:
            return None
        return self.raw_type

    def child_ids(self, slot: Optional[ChildSlot] = None) -> Tuple[str, ...]:
        return tuple(
            ref.node_id for ref in self.children
            if slot is None or ref.slot is slot
        )
