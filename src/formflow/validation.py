"""
Validation engine: decide whether a field's answer is accepted.

Polarity differs by operator category:

    comparison (==, !=, >, >=, <, <=)   the rule FAILS when the comparison holds
                                        ("age > 65" means "reject ages over 65")
    every other operator               the rule PASSES when the check holds

Navigation routes when its conditions hold, so the two engines share no
evaluation code (see `formflow.conditions` for navigation).

A rule evaluation returns None on pass and the rule's message on failure.
Errors inside one rule (an invalid regex, an unreadable operand) fail that
rule with its message and are logged; the remaining rules still run.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Sequence

from formflow.conditions import evaluate as evaluate_condition
from formflow.conditions import lookup
from formflow.debug import resolve_logger
from formflow.model import Node, Severity, ValidationRule
from formflow.operators import OPERATORS, OperatorDefinition, ValueShape

DEFAULT_MESSAGE = "Validation failed"


@dataclass(frozen=True)
class ValidationResult:
    """One failing rule of a field."""

    rule_index: int
    message: str
    severity: Severity
    operator: str

    @property
    def is_blocking(self) -> bool:
        return self.severity is Severity.ERROR


def _is_operand_entry(item: Any) -> bool:
    return isinstance(item, Mapping) and item.get("type") in ("variable", "literal")


def resolve_operand(operand: Any, form_values: Mapping[str, Any]) -> Any:
    """
    Replace variable references in an operand with current answers.

    `{"type": "variable", "value": "other"}` becomes form_values["other"],
    `{"type": "literal", "value": x}` becomes x. Other operands are returned
    unchanged.
    """
    if _is_operand_entry(operand):
        return _resolve_entry(operand, form_values)
    if isinstance(operand, (list, tuple)) and any(_is_operand_entry(i) for i in operand):
        return [
            _resolve_entry(i, form_values) if _is_operand_entry(i) else i
            for i in operand
        ]
    return operand


def _resolve_entry(entry: Mapping[str, Any], form_values: Mapping[str, Any]) -> Any:
    if entry["type"] == "variable":
        return lookup(form_values, str(entry.get("value", "")))
    return entry.get("value")


class ValidationEngine:
    """
    Evaluates validation rules against answers.

    Args:
        operators: Operator catalog (defaults to formflow.operators.OPERATORS)
        clock: Returns "now" for date operators
        logger: Injected logger (defaults to this module's logger)
    """

    def __init__(
        self,
        operators: Optional[Mapping[str, OperatorDefinition]] = None,
        clock: Callable[[], datetime] = datetime.now,
        logger: Optional[logging.Logger] = None,
    ):
        self.operators = OPERATORS if operators is None else operators
        self.clock = clock
        self.logger = resolve_logger(logger, __name__)

    def evaluate(
        self,
        rule: ValidationRule,
        current_value: Any,
        form_values: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """
        Evaluate one rule.

        Returns:
            None when the value is accepted, otherwise `rule.message`
        """
        form_values = form_values or {}
        try:
            if rule.condition is not None and not evaluate_condition(rule.condition, form_values):
                return None

            definition = self.operators.get(rule.operator)
            if definition is None:
                self.logger.warning("Unknown validation operator %r; rule passes", rule.operator)
                return None

            value = lookup(form_values, rule.field) if rule.field else current_value
            operand = resolve_operand(rule.value, form_values)
            if (
                definition.value_shape is ValueShape.SINGLE
                and isinstance(operand, list)
                and len(operand) == 1
                and rule.value is not operand
            ):
                operand = operand[0]

            holds = definition.check(value, operand, self.clock())
            passed = not holds if definition.is_failure_trigger else holds
        except Exception:
            self.logger.exception("Validation rule %r raised; treated as failed", rule.operator)
            return rule.message

        return None if passed else rule.message

    def validate_field(
        self,
        rules: Sequence[ValidationRule],
        value: Any,
        form_values: Optional[Mapping[str, Any]] = None,
    ) -> List[ValidationResult]:
        """Every failing rule, in list order."""
        results = []
        for index, rule in enumerate(rules):
            message = self.evaluate(rule, value, form_values)
            if message is not None:
                results.append(
                    ValidationResult(index, message, rule.effective_severity, rule.operator)
                )
        return results

    def first_error(
        self,
        rules: Sequence[ValidationRule],
        value: Any,
        form_values: Optional[Mapping[str, Any]] = None,
    ) -> Optional[str]:
        """Message of the first failing ERROR rule; warnings never block."""
        for result in self.validate_field(rules, value, form_values):
            if result.is_blocking:
                return result.message
        return None

    def validate_block(self, block: Node, form_values: Mapping[str, Any]) -> List[ValidationResult]:
        value = lookup(form_values, block.field_name) if block.field_name else None
        return self.validate_field(block.validation_rules, value, form_values)


def evaluate(
    rule: ValidationRule,
    current_value: Any,
    form_values: Optional[Mapping[str, Any]] = None,
) -> Optional[str]:
    return ValidationEngine().evaluate(rule, current_value, form_values)


def validate_field(
    rules: Sequence[ValidationRule],
    value: Any,
    form_values: Optional[Mapping[str, Any]] = None,
) -> List[ValidationResult]:
    return ValidationEngine().validate_field(rules, value, form_values)


def first_error(
    rules: Sequence[ValidationRule],
    value: Any,
    form_values: Optional[Mapping[str, Any]] = None,
) -> Optional[str]:
    return ValidationEngine().first_error(rules, value, form_values)


def parse_rule_string(text: str) -> ValidationRule:
    """
    Read the compact "operator|value|message" form.

    Pipes inside the message are kept. Text without a pipe yields an
    `==` rule with an empty operand.
    """
    parts = text.split("|")
    if len(parts) < 2:
        return ValidationRule(operator="==", value="", message=DEFAULT_MESSAGE)
    operator, value, *message_parts = parts
    return ValidationRule(
        operator=operator.strip(),
        value=value.strip(),
        message="|".join(message_parts).strip() or DEFAULT_MESSAGE,
    )


def rule_to_string(rule: ValidationRule) -> str:
    if isinstance(rule.value, (list, tuple)):
        value = ",".join(str(v) for v in rule.value)
    elif rule.value is None:
        value = ""
    else:
        value = str(rule.value)
    return f"{rule.operator}|{value}|{rule.message}"
