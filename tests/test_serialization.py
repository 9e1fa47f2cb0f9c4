"""
Tests for serialization and deserialization of form documents.

These tests ensure lossless dict/JSON/YAML round-trip of stored documents,
including the legacy shapes older editors wrote.
"""

import pytest

from formflow.examples import build_example_document, example_document_dict
from formflow.expressions import ALWAYS_TRUE, Comparison, ConditionOperator, UnparsedCondition
from formflow.model import ChildSlot, NavigationRule, Severity, ValidationRule
from formflow.serialization import (
    DocumentFormatError,
    document_from_dict,
    document_from_json,
    document_from_yaml,
    document_to_dict,
    document_to_json,
    document_to_yaml,
    navigation_rule_from_dict,
    navigation_rule_to_dict,
    tree_from_dict,
    tree_to_dict,
    validation_rule_from_dict,
    validation_rule_to_dict,
)


def test_dict_roundtrip_is_exact():
    d = example_document_dict()
    assert document_to_dict(document_from_dict(d)) == d


def test_json_roundtrip():
    doc = build_example_document()
    before = document_to_dict(doc)
    restored = document_from_json(document_to_json(doc, indent=2))
    assert document_to_dict(restored) == before


def test_yaml_roundtrip():
    doc = build_example_document()
    before = document_to_dict(doc)
    restored = document_from_yaml(document_to_yaml(doc))
    assert document_to_dict(restored) == before


def test_localizations_and_theme_carried_verbatim():
    doc = build_example_document()
    assert doc.localizations == {"en": {"submit": "Send"}}
    assert doc.theme == {"primaryColor": "#2a6f97"}


def test_reading_does_not_alias_input():
    d = example_document_dict()
    doc = document_from_dict(d)
    d["theme"]["primaryColor"] = "red"
    d["rootNode"]["items"][1]["items"][0]["options"].append("maybe")
    assert doc.theme["primaryColor"] == "#2a6f97"
    assert doc.tree.get("blk-smoker").extra["options"] == ["yes", "no"]


def test_bare_reference_survives_roundtrip():
    doc = build_example_document()
    root = document_to_dict(doc)["rootNode"]
    assert root["nodes"][-1] == "library-consent-block"


def test_child_slots_are_kept():
    tree = build_example_document().tree
    assert tree.get("page-guardian").children[0].slot is ChildSlot.NODES
    assert tree.get("page-about").children[0].slot is ChildSlot.ITEMS


def test_legacy_id_key_written_back_as_uuid():
    tree = tree_from_dict({"id": "r", "type": "section", "items": [{"id": "b", "type": "text"}]})
    assert tree_to_dict(tree) == {
        "uuid": "r",
        "type": "section",
        "items": [{"uuid": "b", "type": "text"}],
    }


def test_missing_document_optionals_default_to_empty():
    doc = document_from_dict({"rootNode": {"uuid": "r", "type": "section"}})
    assert doc.localizations == {}
    assert doc.theme == {}


@pytest.mark.parametrize("payload", [
    [],
    "not a document",
    {},
    {"rootNode": "r"},
    {"rootNode": {"uuid": "r"}},
    {"rootNode": {"uuid": "r", "type": "section", "items": "b1"}},
])
def test_malformed_documents_raise(payload):
    with pytest.raises(DocumentFormatError):
        document_from_dict(payload)


def test_invalid_json_raises_format_error():
    with pytest.raises(DocumentFormatError):
        document_from_json("{not json")


def test_invalid_yaml_raises_format_error():
    with pytest.raises(DocumentFormatError):
        document_from_yaml("rootNode: [unclosed")


class TestNavigationRuleAdapters:
    """Tests for the navigation rule readers/writers."""

    def test_read_conditional_rule(self):
        rule = navigation_rule_from_dict({"condition": 'age >= "18"', "target": "p2", "isPage": True})
        assert rule == NavigationRule(
            "p2", Comparison("age", ConditionOperator.GREATER_EQUAL, "18"), is_page=True
        )

    def test_default_without_condition_is_always_true(self):
        rule = navigation_rule_from_dict({"target": "submit", "isDefault": True})
        assert rule.condition is ALWAYS_TRUE
        assert navigation_rule_to_dict(rule) == {
            "condition": "true", "target": "submit", "isDefault": True,
        }

    def test_legacy_script_condition_preserved(self):
        d = {"condition": "a > 1 && b < 2", "target": "x"}
        rule = navigation_rule_from_dict(d)
        assert rule.condition == UnparsedCondition("a > 1 && b < 2")
        assert navigation_rule_to_dict(rule) == d

    def test_rule_must_be_object(self):
        with pytest.raises(DocumentFormatError):
            navigation_rule_from_dict("submit")


class TestValidationRuleAdapters:
    """Tests for the validation rule readers/writers."""

    def test_full_rule_roundtrip(self):
        d = {
            "id": "v1",
            "field": "other",
            "operator": "between",
            "value": [{"type": "variable", "value": "min"}, {"type": "literal", "value": 10}],
            "message": "Out of range",
            "severity": "warning",
            "condition": 'x == "1"',
            "dependencies": ["min"],
        }
        rule = validation_rule_from_dict(d)
        assert rule.severity is Severity.WARNING
        assert rule.dependencies == ("min",)
        assert validation_rule_to_dict(rule) == d

    def test_minimal_rule(self):
        rule = validation_rule_from_dict({"operator": "isNotEmpty", "message": "Required"})
        assert rule == ValidationRule("isNotEmpty", "Required")
        assert rule.effective_severity is Severity.ERROR
        assert validation_rule_to_dict(rule) == {"operator": "isNotEmpty", "message": "Required"}

    def test_operator_required(self):
        with pytest.raises(DocumentFormatError):
            validation_rule_from_dict({"message": "x"})

    def test_unknown_severity(self):
        with pytest.raises(DocumentFormatError):
            validation_rule_from_dict({"operator": "==", "message": "x", "severity": "fatal"})
