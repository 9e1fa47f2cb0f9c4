"""
Condition AST for formflow

Navigation conditions and validation guards are held as typed
expressions, never as raw strings. Strings exist only at the storage
boundary (see `formflow.conditions.build` / `parse_condition`).

This ensures:
    - Evaluation never re-parses text
    - Operators are a closed set
    - Legacy strings outside the grammar survive a round trip

ARCHITECTURAL RULE:
    These objects are structure only.
    Evaluation lives in `formflow.conditions`.
"""

from abc import ABC
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Expression(ABC):
    """
    Base class for all condition expressions.

    DO NOT:
        - Add evaluation logic here (belongs in formflow.conditions)
        - Add string serialization here (belongs in formflow.conditions)
    """
    pass


class ConditionOperator(Enum):
    """
    Operators of the navigation condition grammar.

    The first nine values are the exact tokens used in stored condition
    strings. The rest are written by the rule editor as small script
    expressions (`["a","b"].includes(f)`, `f >= "1" && f <= "9"`) and are
    named here by the editor's operator names.
    """

    EQUALS = "=="
    NOT_EQUALS = "!="
    GREATER_THAN = ">"
    GREATER_EQUAL = ">="
    LESS_THAN = "<"
    LESS_EQUAL = "<="
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    IN = "in"
    NOT_IN = "notIn"
    BETWEEN = "between"
    NOT_BETWEEN = "notBetween"

    @property
    def is_ordering(self) -> bool:
        return self in _ORDERING

    @property
    def is_textual(self) -> bool:
        return self in (
            ConditionOperator.CONTAINS,
            ConditionOperator.STARTS_WITH,
            ConditionOperator.ENDS_WITH,
        )

    @property
    def takes_no_value(self) -> bool:
        return self in (ConditionOperator.IS_EMPTY, ConditionOperator.IS_NOT_EMPTY)

    @property
    def is_membership(self) -> bool:
        return self in (ConditionOperator.IN, ConditionOperator.NOT_IN)

    @property
    def is_range(self) -> bool:
        return self in (ConditionOperator.BETWEEN, ConditionOperator.NOT_BETWEEN)


_ORDERING = frozenset({
    ConditionOperator.GREATER_THAN,
    ConditionOperator.GREATER_EQUAL,
    ConditionOperator.LESS_THAN,
    ConditionOperator.LESS_EQUAL,
})


@dataclass(frozen=True)
class Comparison(Expression):
    """
    A single `<field> <operator> <value>` test against the value map.

    Example:
        age >= "18"

    Becomes:
        Comparison(field="age", operator=ConditionOperator.GREATER_EQUAL, value="18")

    Properties:
        field: Key looked up in the evaluation context (may contain dots)
        operator: ConditionOperator
        value: Right-hand operand. Parsed conditions carry strings;
            programmatically built ones may carry numbers or booleans.
            Membership operators carry a tuple of candidates, range
            operators a `(low, high)` tuple and the emptiness operators None.
    """

    field: str
    operator: ConditionOperator
    value: Any


@dataclass(frozen=True)
class AlwaysTrue(Expression):
    """
    The unconditional condition of a default rule.

    Serializes to the literal string "true".
    """
    pass


@dataclass(frozen=True)
class UnparsedCondition(Expression):
    """
    A stored condition string that does not match the grammar.

    Older documents hold free-form script conditions
    (e.g. `age > 18 && consent == "yes"`). They are kept verbatim so that
    saving a document never rewrites them, and they evaluate to False.
    """

    text: str


ALWAYS_TRUE = AlwaysTrue()
