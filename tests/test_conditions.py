"""
Tests for the navigation condition language.

Covers parsing, building, the storage-boundary helpers and evaluation
with loose, form-style coercion.
"""

import pytest
from dataclasses import FrozenInstanceError

from formflow.conditions import (
    build,
    condition_to_string,
    evaluate,
    evaluate_text,
    lookup,
    parse,
    parse_condition,
)
from formflow.expressions import (
    ALWAYS_TRUE,
    AlwaysTrue,
    Comparison,
    ConditionOperator,
    UnparsedCondition,
)


class TestParse:
    """Tests for parse()."""

    def test_age_scenario(self):
        """parse('age >= "18"') yields field, operator and a string value."""
        parsed = parse('age >= "18"')
        assert parsed == Comparison("age", ConditionOperator.GREATER_EQUAL, "18")

    def test_single_quoted_value(self):
        parsed = parse("country == 'NO'")
        assert parsed.value == "NO"
        assert parsed.operator is ConditionOperator.EQUALS

    def test_bare_value(self):
        parsed = parse("count < 5")
        assert parsed == Comparison("count", ConditionOperator.LESS_THAN, "5")

    def test_dotted_identifier(self):
        parsed = parse('address.city == "Oslo"')
        assert parsed.field == "address.city"

    def test_strict_equality_tokens(self):
        """=== and !== read as == and !=."""
        assert parse('a === "1"').operator is ConditionOperator.EQUALS
        assert parse('a !== "1"').operator is ConditionOperator.NOT_EQUALS

    def test_word_operators(self):
        assert parse('email endsWith "@example.com"') == Comparison(
            "email", ConditionOperator.ENDS_WITH, "@example.com"
        )
        assert parse('name contains "an"').operator is ConditionOperator.CONTAINS

    def test_method_form(self):
        """Legacy field.startsWith("x") spelling is accepted."""
        assert parse('code.startsWith("AB")') == Comparison(
            "code", ConditionOperator.STARTS_WITH, "AB"
        )
        assert parse('tags.includes("x")').operator is ConditionOperator.CONTAINS

    def test_empty_quoted_value(self):
        assert parse('name == ""').value == ""

    @pytest.mark.parametrize("text", [
        None,
        "",
        "   ",
        "age",
        "age >",
        'age > 18 && consent == "yes"',
        '!a || b === ""',
        'age >= "1" && score <= "9"',
        '["a",].includes(x)',
        "new Date(dob) > new Date()",
    ])
    def test_non_matching_text_returns_none(self, text):
        assert parse(text) is None


class TestBuild:
    """Tests for build() and the build/parse round trip."""

    def test_build_quotes_value(self):
        assert build("age", ">=", 18) == 'age >= "18"'

    def test_build_accepts_enum(self):
        assert build("age", ConditionOperator.LESS_THAN, "5") == 'age < "5"'

    def test_default_always_true(self):
        assert build("age", ">=", "18", is_default=True) == "true"

    def test_value_with_double_quote_uses_single_quotes(self):
        assert build("q", "==", 'say "hi"') == "q == 'say \"hi\"'"

    def test_value_with_both_quotes_is_escaped(self):
        text = build("note", "==", 'it\'s "x"')
        assert text == 'note == "it\'s \\"x\\""'
        assert parse(text).value == 'it\'s "x"'

    @pytest.mark.parametrize("field,operator,value", [
        ("age", ">=", "18"),
        ("country", "!=", "NO"),
        ("score", "<=", "3.5"),
        ("email", "endsWith", "@example.com"),
        ("name", "startsWith", "Dr "),
        ("notes", "contains", "it's"),
        ("quote", "==", 'a "b"'),
        ("address.city", "==", "Oslo"),
        ("blank", "==", ""),
        ("note", "==", 'it\'s "x"'),
        ("path", "==", "C:\\temp"),
    ])
    def test_round_trip(self, field, operator, value):
        """build(parse(s)) == s for every string produced by build."""
        text = build(field, operator, value)
        parsed = parse(text)
        assert build(parsed.field, parsed.operator, parsed.value) == text
        assert parsed.value == value


class TestBoundary:
    """Tests for parse_condition() / condition_to_string()."""

    def test_true_is_always_true(self):
        assert parse_condition("true") is ALWAYS_TRUE
        assert parse_condition(" TRUE ") is ALWAYS_TRUE

    def test_grammar_string_becomes_comparison(self):
        assert isinstance(parse_condition('x == "1"'), Comparison)

    def test_legacy_script_kept_verbatim(self):
        text = 'age > 18 && consent == "yes"'
        parsed = parse_condition(text)
        assert parsed == UnparsedCondition(text)
        assert condition_to_string(parsed) == text

    def test_missing_condition(self):
        assert parse_condition(None) == UnparsedCondition("")

    def test_always_true_to_string(self):
        assert condition_to_string(AlwaysTrue()) == "true"

    def test_expressions_are_immutable(self):
        comparison = Comparison("a", ConditionOperator.EQUALS, "1")
        with pytest.raises(FrozenInstanceError):
            comparison.value = "2"

    def test_unknown_expression_type(self):
        with pytest.raises(TypeError):
            condition_to_string(object())


class TestEvaluate:
    """Tests for evaluate()."""

    def test_age_scenario(self):
        """age >= "18" holds for 20 and not for 16."""
        expr = parse('age >= "18"')
        assert evaluate(expr, {"age": 20}) is True
        assert evaluate(expr, {"age": 16}) is False

    def test_loose_equality(self):
        expr = parse('count == "5"')
        assert evaluate(expr, {"count": 5})
        assert evaluate(expr, {"count": "5"})
        assert not evaluate(expr, {"count": 6})

    def test_not_equals_with_missing_field(self):
        assert evaluate(parse('x != "a"'), {})

    def test_missing_field_never_orders(self):
        assert not evaluate(parse('age > "1"'), {})
        assert not evaluate(parse('age < "1"'), {})

    def test_non_numeric_ordering_is_false(self):
        assert not evaluate(parse('age > "abc"'), {"age": 5})
        assert not evaluate(parse('age > "1"'), {"age": "many"})

    def test_numeric_strings_order_numerically(self):
        assert evaluate(parse('size > "9"'), {"size": "10"})

    def test_string_operators(self):
        assert evaluate(parse('email endsWith "@x.org"'), {"email": "a@x.org"})
        assert evaluate(parse('name startsWith "Dr"'), {"name": "Dr Who"})
        assert evaluate(parse('tags contains "b"'), {"tags": ["a", "b"]})
        assert not evaluate(parse('name contains "z"'), {"name": None})

    def test_boolean_answers(self):
        assert evaluate(parse('consent == "true"'), {"consent": True}) is False
        assert evaluate(parse('consent == "1"'), {"consent": True})

    def test_always_true_and_unparsed(self):
        assert evaluate(ALWAYS_TRUE, {}) is True
        assert evaluate(UnparsedCondition("a && b"), {"a": 1, "b": 1}) is False

    def test_dotted_lookup(self):
        context = {"address": {"city": "Oslo"}}
        assert lookup(context, "address.city") == "Oslo"
        assert evaluate(parse('address.city == "Oslo"'), context)

    def test_exact_key_wins_over_dotted_walk(self):
        assert lookup({"a.b": 1, "a": {"b": 2}}, "a.b") == 1

    def test_evaluate_text(self):
        assert evaluate_text("true", {})
        assert evaluate_text('n < "3"', {"n": 2})
        assert not evaluate_text("garbage (", {})


class TestScriptForms:
    """The rule editor's script spellings of the richer operators."""

    def test_emptiness(self):
        assert parse('!phone || phone === ""') == Comparison("phone", ConditionOperator.IS_EMPTY, None)
        assert parse('phone && phone !== ""') == Comparison(
            "phone", ConditionOperator.IS_NOT_EMPTY, None
        )

    def test_membership(self):
        assert parse('["NO","SE"].includes(country)') == Comparison(
            "country", ConditionOperator.IN, ("NO", "SE")
        )
        assert parse('!["NO", "SE"].includes(country)').operator is ConditionOperator.NOT_IN

    def test_ranges(self):
        assert parse('age >= "18" && age <= "65"') == Comparison(
            "age", ConditionOperator.BETWEEN, ("18", "65")
        )
        assert parse("age < 18 || age > 65") == Comparison(
            "age", ConditionOperator.NOT_BETWEEN, ("18", "65")
        )

    def test_build(self):
        assert build("phone", "isEmpty", None) == '!phone || phone === ""'
        assert build("phone", "isNotEmpty", "ignored") == 'phone && phone !== ""'
        assert build("country", "in", ["NO", "SE"]) == '["NO","SE"].includes(country)'
        assert build("country", "notIn", "DK") == '!["DK"].includes(country)'
        assert build("age", "between", [18, 65]) == 'age >= "18" && age <= "65"'
        assert build("age", "notBetween", ("1", "9")) == 'age < "1" || age > "9"'

    @pytest.mark.parametrize("text", [
        '!phone || phone === ""',
        'phone && phone !== ""',
        '["NO","SE"].includes(country)',
        '!["NO","SE"].includes(country)',
        '[1,2].includes(n)',
        'age >= "18" && age <= "65"',
        'age < "18" || age > "65"',
    ])
    def test_round_trip(self, text):
        parsed = parse_condition(text)
        assert isinstance(parsed, Comparison)
        assert condition_to_string(parsed) == text

    @pytest.mark.parametrize("answers,expected", [
        ({}, True),
        ({"phone": ""}, True),
        ({"phone": []}, True),
        ({"phone": "555"}, False),
        ({"phone": 0}, False),
    ])
    def test_evaluate_emptiness(self, answers, expected):
        assert evaluate(parse('!phone || phone === ""'), answers) is expected
        assert evaluate(parse('phone && phone !== ""'), answers) is not expected

    def test_evaluate_membership(self):
        is_in = parse('["NO","SE"].includes(country)')
        not_in = parse('!["NO","SE"].includes(country)')
        assert evaluate(is_in, {"country": "SE"})
        assert not evaluate(not_in, {"country": "SE"})
        assert evaluate(not_in, {"country": "DK"})
        assert evaluate(parse('["1","2"].includes(n)'), {"n": 2})

    def test_missing_answer_is_neither_in_nor_out(self):
        assert not evaluate(parse('["NO"].includes(country)'), {})
        assert not evaluate(parse('!["NO"].includes(country)'), {})

    def test_evaluate_ranges(self):
        between = parse('age >= "18" && age <= "65"')
        outside = parse('age < "18" || age > "65"')
        assert evaluate(between, {"age": 30})
        assert evaluate(between, {"age": "18"})
        assert not evaluate(between, {"age": 70})
        assert evaluate(outside, {"age": 70})
        assert not evaluate(outside, {"age": "40"})

    def test_non_numeric_ranges_never_match(self):
        assert not evaluate(parse('age >= "18" && age <= "65"'), {"age": "old"})
        assert not evaluate(parse('age < "18" || age > "65"'), {})
