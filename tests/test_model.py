"""
Tests for formflow Core Model Objects

These tests verify:
    - Basic model creation and defaults
    - Derived properties (display names, effective conditions, severities)
    - Immutability
"""

from dataclasses import FrozenInstanceError

import pytest

from formflow.conditions import parse
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


class TestNode:
    """Test Node objects."""

    def test_defaults(self):
        node = Node(id="n1", type=NodeType.BLOCK)
        assert node.children == ()
        assert node.navigation_rules == ()
        assert node.extra == {}

    @pytest.mark.parametrize("kwargs,expected", [
        ({"name": "Name", "label": "Label", "field_name": "field"}, "Name"),
        ({"label": "Label", "field_name": "field"}, "Label"),
        ({"field_name": "field"}, "field"),
        ({}, "n1"),
    ])
    def test_display_name_fallbacks(self, kwargs, expected):
        assert Node(id="n1", type=NodeType.BLOCK, **kwargs).display_name == expected

    def test_block_type_only_for_blocks(self):
        assert Node("b", NodeType.BLOCK, raw_type="radio").block_type == "radio"
        assert Node("p", NodeType.PAGE, raw_type="set").block_type is None

    def test_child_ids_by_slot(self):
        node = Node("p", NodeType.PAGE, children=(
            ChildRef("a", ChildSlot.ITEMS),
            ChildRef("b", ChildSlot.NODES),
            ChildRef("c", ChildSlot.NODES, embedded=False),
        ))
        assert node.child_ids() == ("a", "b", "c")
        assert node.child_ids(ChildSlot.NODES) == ("b", "c")

    def test_nodes_are_immutable(self):
        node = Node("n", NodeType.BLOCK)
        with pytest.raises(FrozenInstanceError):
            node.label = "changed"


class TestNavigationRule:
    """Test NavigationRule objects."""

    def test_defaults_to_always_true(self):
        assert NavigationRule("x").condition is ALWAYS_TRUE

    def test_default_flag_makes_condition_always_true(self):
        rule = NavigationRule("x", parse('a == "1"'), is_default=True)
        assert rule.effective_condition is ALWAYS_TRUE
        assert rule.condition == parse('a == "1"')

    def test_terminal(self):
        assert NavigationRule("submit").is_terminal
        assert not NavigationRule("page-2").is_terminal


class TestValidationRule:
    """Test ValidationRule objects."""

    def test_missing_severity_behaves_as_error(self):
        assert ValidationRule("isEmail", "bad").effective_severity is Severity.ERROR

    def test_warning(self):
        rule = ValidationRule(">", "check", value="110", severity=Severity.WARNING)
        assert rule.effective_severity is Severity.WARNING
