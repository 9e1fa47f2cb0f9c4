"""
Condition language: parse, build and evaluate navigation conditions.

Stored form documents keep navigation conditions as short strings:

    age >= "18"
    country == "NO"
    email endsWith "@example.com"
    true

The rule editor also writes a handful of operators as script expressions:

    !phone || phone === ""              isEmpty
    phone && phone !== ""               isNotEmpty
    ["NO","SE"].includes(country)       in
    !["NO","SE"].includes(country)      notIn
    age >= "18" && age <= "65"          between
    age < "18" || age > "65"            notBetween

`parse` / `build` convert between those strings and `Comparison` nodes;
`parse_condition` / `condition_to_string` do the same for any
`Expression` at the storage boundary. `evaluate` answers "does this
condition hold for these answers?" and never raises for bad data: a
missing field simply fails to match.

Validation rules use a separate, structured dialect
(see `formflow.validation`) and do NOT evaluate through `evaluate`
for their operator checks. Only their optional guard goes through here.
"""

import json
import logging
import math
import re
from typing import Any, Mapping, Optional, Union

from formflow.coercion import is_empty, loose_equals, to_number, to_text
from formflow.expressions import (
    ALWAYS_TRUE,
    AlwaysTrue,
    Comparison,
    ConditionOperator,
    Expression,
    UnparsedCondition,
)
from formflow.operators import as_list, as_range

logger = logging.getLogger(__name__)

DEFAULT_CONDITION = "true"

_IDENT = r"[A-Za-z_$][\w.$]*"
# Double-quoted values may carry JSON escapes (\" and \\).
_DQ = r'"(?:[^"\\]|\\.)*"'
_VALUE = rf"""(?:(?P<dq>{_DQ})|'(?P<sq>[^']*)'|(?P<bare>[^"'&|()=<>!\s][^"'&|()=<>!]*?))"""
_LITERAL = rf"""(?:{_DQ}|'[^']*'|[^\s"'&|()]+)"""

_SYMBOLIC_RE = re.compile(
    rf"^(?P<field>{_IDENT})\s*(?P<op>===|!==|==|!=|>=|<=|>|<)\s*{_VALUE}\s*$"
)
_WORD_RE = re.compile(
    rf"^(?P<field>{_IDENT})\s+(?P<op>contains|startsWith|endsWith)\s+{_VALUE}\s*$"
)
_METHOD_RE = re.compile(
    rf"""^(?P<field>{_IDENT})\.(?P<op>contains|includes|startsWith|endsWith)\(\s*(?:(?P<dq>{_DQ})|'(?P<sq>[^']*)')\s*\)$"""
)

_IS_EMPTY_RE = re.compile(
    rf"""^!(?P<field>{_IDENT})\s*\|\|\s*(?P=field)\s*===?\s*(?:""|'')$"""
)
_IS_NOT_EMPTY_RE = re.compile(
    rf"""^(?P<field>{_IDENT})\s*&&\s*(?P=field)\s*!==?\s*(?:""|'')$"""
)
_BETWEEN_RE = re.compile(
    rf"^(?P<field>{_IDENT})\s*>=\s*(?P<low>{_LITERAL})\s*&&\s*(?P=field)\s*<=\s*(?P<high>{_LITERAL})$"
)
_NOT_BETWEEN_RE = re.compile(
    rf"^(?P<field>{_IDENT})\s*<\s*(?P<low>{_LITERAL})\s*\|\|\s*(?P=field)\s*>\s*(?P<high>{_LITERAL})$"
)
_MEMBERSHIP_RE = re.compile(
    rf"^(?P<negated>!?)(?P<candidates>\[.*\])\.includes\(\s*(?P<field>{_IDENT})\s*\)$"
)

_OPERATOR_ALIASES = {
    "===": ConditionOperator.EQUALS,
    "!==": ConditionOperator.NOT_EQUALS,
    "includes": ConditionOperator.CONTAINS,
}


def _operator_from_token(token: str) -> ConditionOperator:
    if token in _OPERATOR_ALIASES:
        return _OPERATOR_ALIASES[token]
    return ConditionOperator(token)


def _unquote_double(token: str) -> str:
    body = token[1:-1]
    if "\\" not in body:
        return body
    try:
        return json.loads(token)
    except ValueError:
        return body


def _literal(token: str) -> str:
    if token.startswith('"'):
        return _unquote_double(token)
    if token.startswith("'"):
        return token[1:-1]
    return token


def _matched_value(match: "re.Match[str]") -> str:
    if match.group("dq") is not None:
        return _unquote_double(match.group("dq"))
    if match.group("sq") is not None:
        return match.group("sq")
    bare = match.groupdict().get("bare")
    return bare.strip() if bare is not None else ""


def _parse_script_form(text: str) -> Optional[Comparison]:
    """The editor's script spellings of the emptiness, range and membership operators."""
    match = _IS_EMPTY_RE.match(text)
    if match:
        return Comparison(match.group("field"), ConditionOperator.IS_EMPTY, None)
    match = _IS_NOT_EMPTY_RE.match(text)
    if match:
        return Comparison(match.group("field"), ConditionOperator.IS_NOT_EMPTY, None)

    for pattern, operator in ((_BETWEEN_RE, ConditionOperator.BETWEEN),
                              (_NOT_BETWEEN_RE, ConditionOperator.NOT_BETWEEN)):
        match = pattern.match(text)
        if match:
            bounds = (_literal(match.group("low")), _literal(match.group("high")))
            return Comparison(match.group("field"), operator, bounds)

    match = _MEMBERSHIP_RE.match(text)
    if match:
        try:
            candidates = json.loads(match.group("candidates"))
        except ValueError:
            return None
        if not isinstance(candidates, list):
            return None
        operator = ConditionOperator.NOT_IN if match.group("negated") else ConditionOperator.IN
        return Comparison(match.group("field"), operator, tuple(candidates))
    return None


def parse(text: Optional[str]) -> Optional[Comparison]:
    """
    Parse `<identifier> <operator> <value>` into a Comparison.

    The value may be double-quoted, single-quoted or bare; it is always
    returned as a string. The legacy method spelling
    `field.startsWith("x")` is accepted as well, and so are the editor's
    script spellings listed in the module docstring.

    Returns:
        Comparison, or None when the text does not match the grammar.
        Callers substitute their own neutral rule for None.
    """
    if text is None:
        return None
    stripped = text.strip()
    if not stripped:
        return None

    for pattern in (_METHOD_RE, _WORD_RE, _SYMBOLIC_RE):
        match = pattern.match(stripped)
        if match:
            return Comparison(
                field=match.group("field"),
                operator=_operator_from_token(match.group("op")),
                value=_matched_value(match),
            )
    return _parse_script_form(stripped)


def _quote(value: Any) -> str:
    text = to_text(value)
    if "\\" not in text:
        if '"' not in text:
            return f'"{text}"'
        if "'" not in text:
            return f"'{text}'"
    return json.dumps(text, ensure_ascii=False)


def build(
    field: str,
    operator: Union[ConditionOperator, str],
    value: Any,
    is_default: bool = False,
) -> str:
    """
    Serialize a comparison; the inverse of `parse`.

    `is_default=True` always produces "true", whatever the other arguments.
    Membership operators take a list of candidates and range operators a
    `[low, high]` pair; a scalar stands for a one-element list or an empty
    range `[v, v]`.
    """
    if is_default:
        return DEFAULT_CONDITION
    op = operator if isinstance(operator, ConditionOperator) else _operator_from_token(operator)

    if op is ConditionOperator.IS_EMPTY:
        return f'!{field} || {field} === ""'
    if op is ConditionOperator.IS_NOT_EMPTY:
        return f'{field} && {field} !== ""'
    if op.is_membership:
        candidates = json.dumps(as_list(value), separators=(",", ":"), ensure_ascii=False)
        text = f"{candidates}.includes({field})"
        return f"!{text}" if op is ConditionOperator.NOT_IN else text
    if op.is_range:
        low, high = (_quote(bound) for bound in as_range(value))
        if op is ConditionOperator.BETWEEN:
            return f"{field} >= {low} && {field} <= {high}"
        return f"{field} < {low} || {field} > {high}"
    return f"{field} {op.value} {_quote(value)}"


def parse_condition(text: Optional[str]) -> Expression:
    """
    Storage-boundary reader for any stored condition string.

    "true" (any case) becomes AlwaysTrue, grammar matches become
    Comparison, everything else is preserved as UnparsedCondition.
    """
    if text is not None and text.strip().lower() == DEFAULT_CONDITION:
        return ALWAYS_TRUE
    parsed = parse(text)
    if parsed is not None:
        return parsed
    if text:
        logger.debug("Condition outside grammar kept verbatim: %r", text)
    return UnparsedCondition(text or "")


def condition_to_string(expr: Expression) -> str:
    """Storage-boundary writer for any condition expression."""
    if isinstance(expr, AlwaysTrue):
        return DEFAULT_CONDITION
    if isinstance(expr, Comparison):
        return build(expr.field, expr.operator, expr.value)
    if isinstance(expr, UnparsedCondition):
        return expr.text
    raise TypeError(f"Unsupported Expression type: {type(expr)}")


def lookup(context: Mapping[str, Any], field: str) -> Any:
    """
    Fetch a field from the value map.

    Exact keys win; otherwise a dotted name walks nested mappings
    (`address.city`). Missing values are None.
    """
    if field in context:
        return context[field]
    if "." not in field:
        return None
    current: Any = context
    for part in field.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def _compare(actual: Any, operator: ConditionOperator, expected: Any) -> bool:
    if operator is ConditionOperator.EQUALS:
        return loose_equals(actual, expected)
    if operator is ConditionOperator.NOT_EQUALS:
        return not loose_equals(actual, expected)

    if operator.is_ordering:
        left, right = to_number(actual), to_number(expected)
        if math.isnan(left) or math.isnan(right):
            return False
        if operator is ConditionOperator.GREATER_THAN:
            return left > right
        if operator is ConditionOperator.GREATER_EQUAL:
            return left >= right
        if operator is ConditionOperator.LESS_THAN:
            return left < right
        return left <= right

    if operator is ConditionOperator.IS_EMPTY:
        return is_empty(actual)
    if operator is ConditionOperator.IS_NOT_EMPTY:
        return not is_empty(actual)

    if operator.is_membership:
        # A missing answer is neither in nor out of the list.
        if actual is None:
            return False
        found = any(loose_equals(actual, candidate) for candidate in as_list(expected))
        return found if operator is ConditionOperator.IN else not found

    if operator.is_range:
        value = to_number(actual)
        low, high = (to_number(bound) for bound in as_range(expected))
        if math.isnan(value) or math.isnan(low) or math.isnan(high):
            return False
        inside = low <= value <= high
        return inside if operator is ConditionOperator.BETWEEN else not inside

    haystack, needle = to_text(actual), to_text(expected)
    if operator is ConditionOperator.CONTAINS:
        return needle in haystack
    if operator is ConditionOperator.STARTS_WITH:
        return haystack.startswith(needle)
    return haystack.endswith(needle)


def evaluate(expr: Expression, context: Mapping[str, Any]) -> bool:
    """
    Evaluate a condition against a flat value map.

    Comparisons are loose: equality coerces numbers and numeric strings,
    ordering and range operators compare numerically (non-numeric sides
    never match), string operators stringify both sides, membership uses
    loose equality against each candidate. Emptiness follows
    `formflow.coercion.is_empty`.
    """
    if isinstance(expr, AlwaysTrue):
        return True
    if isinstance(expr, UnparsedCondition):
        return False
    if isinstance(expr, Comparison):
        return _compare(lookup(context, expr.field), expr.operator, expr.value)
    raise TypeError(f"Unsupported Expression type: {type(expr)}")


def evaluate_text(text: Optional[str], context: Mapping[str, Any]) -> bool:
    """Convenience wrapper: parse a stored condition string, then evaluate it."""
    return evaluate(parse_condition(text), context)
