"""
Tests for flow graph derivation.

Tests verify that:
    - Every section, page and block becomes one node, plus START and SUBMIT
    - Consecutive blocks without rules get exactly one sequential edge
    - Navigation edges carry the condition text, or "default"
    - Dangling targets produce no edge
"""

import logging

import pytest

from formflow.backends.flow_graph import (
    START_ID,
    SUBMIT_ID,
    FlowEdgeKind,
    FlowNodeKind,
    build_flow_graph,
    edge_label,
)
from formflow.conditions import parse
from formflow.examples import build_example_document
from formflow.model import NavigationRule
from formflow.tree import DocumentTree, remove_by_id


def two_block_tree(rules=None) -> DocumentTree:
    first = {"uuid": "B1", "type": "textfield", "label": "First"}
    if rules is not None:
        first["navigationRules"] = rules
    return DocumentTree.from_dict({
        "uuid": "root",
        "type": "section",
        "items": [{
            "uuid": "P1",
            "type": "page",
            "items": [first, {"uuid": "B2", "type": "textfield", "label": "Second"}],
        }],
    })


@pytest.fixture
def example_graph():
    return build_flow_graph(build_example_document().tree)


class TestNodes:
    """Tests for node derivation."""

    def test_node_order(self, example_graph):
        assert [n.id for n in example_graph.nodes] == [
            START_ID,
            "root",
            "page-about", "blk-name", "blk-age",
            "page-adult", "blk-smoker", "blk-cigarettes",
            "page-guardian", "blk-guardian-email",
            SUBMIT_ID,
        ]

    def test_kinds_and_labels(self, example_graph):
        assert example_graph.node("root").kind is FlowNodeKind.SECTION
        assert example_graph.node("page-about").label == "About you"
        assert example_graph.node("blk-age").label == "Your age"
        assert example_graph.node(START_ID).kind is FlowNodeKind.START
        assert example_graph.node(SUBMIT_ID).kind is FlowNodeKind.SUBMIT

    def test_parents(self, example_graph):
        assert example_graph.node("blk-age").parent_id == "page-about"
        assert example_graph.node("page-adult").parent_id == "root"
        assert example_graph.node("root").parent_id is None
        assert [b.id for b in example_graph.blocks_of("page-adult")] == ["blk-smoker", "blk-cigarettes"]

    def test_conditional_flags(self, example_graph):
        assert example_graph.node("blk-age").conditional
        assert not example_graph.node("blk-name").conditional
        assert example_graph.node("page-about").conditional
        assert not example_graph.node("page-guardian").conditional

    def test_bare_references_are_not_drawn(self, example_graph):
        assert example_graph.node("library-consent-block") is None


class TestSequentialEdges:

    def test_two_blocks_without_rules(self):
        graph = build_flow_graph(two_block_tree())
        sequential = graph.edges_of_kind(FlowEdgeKind.SEQUENTIAL)
        assert len(sequential) == 1
        edge = sequential[0]
        assert (edge.id, edge.source, edge.target) == ("seq-B1-B2", "B1", "B2")
        assert edge.conditional is False

    def test_rules_replace_sequential_edge(self):
        graph = build_flow_graph(two_block_tree([{"condition": "true", "target": "submit", "isDefault": True}]))
        assert graph.edges_of_kind(FlowEdgeKind.SEQUENTIAL) == []

    def test_example_sequential_edges(self, example_graph):
        assert [e.id for e in example_graph.edges_of_kind(FlowEdgeKind.SEQUENTIAL)] == [
            "seq-blk-name-blk-age",
        ]


class TestStructuralEdges:

    def test_start_edge_goes_to_first_page(self, example_graph):
        (edge,) = example_graph.edges_of_kind(FlowEdgeKind.START)
        assert (edge.source, edge.target) == (START_ID, "page-about")

    def test_start_edge_without_pages(self):
        tree = DocumentTree.from_dict({
            "uuid": "root", "type": "section", "items": [{"uuid": "b", "type": "text"}],
        })
        (edge,) = build_flow_graph(tree).edges_of_kind(FlowEdgeKind.START)
        assert edge.target == "b"

    def test_containment(self, example_graph):
        assert [e.id for e in example_graph.edges_of_kind(FlowEdgeKind.CONTAINMENT)] == [
            "contains-root-page-about",
            "contains-root-page-adult",
            "contains-root-page-guardian",
            "contains-page-about-blk-name",
            "contains-page-adult-blk-smoker",
            "contains-page-guardian-blk-guardian-email",
        ]


class TestNavigationEdges:

    def test_labels_and_flags(self, example_graph):
        edges = {e.id: e for e in example_graph.edges_of_kind(FlowEdgeKind.NAVIGATION)}
        conditional = edges["nav-blk-age-0-page-adult"]
        assert conditional.label == 'age >= "18"'
        assert conditional.conditional
        default = edges["nav-blk-age-1-page-guardian"]
        assert default.label == "default"
        assert not default.conditional

    def test_submit_targets_map_to_submit_node(self, example_graph):
        targets = [e.target for e in example_graph.edges_of_kind(FlowEdgeKind.NAVIGATION)
                   if e.source == "blk-smoker"]
        assert targets == ["blk-cigarettes", SUBMIT_ID]

    def test_dangling_target_has_no_edge(self, caplog):
        tree = remove_by_id(two_block_tree([{"condition": 'x == "1"', "target": "B2"}]), "B2")
        with caplog.at_level(logging.WARNING, logger="formflow.backends.flow_graph"):
            graph = build_flow_graph(tree)
        assert graph.edges_of_kind(FlowEdgeKind.NAVIGATION) == []
        assert "no edge drawn" in caplog.text

    def test_edge_label(self):
        assert edge_label(NavigationRule("x")) == "default"
        assert edge_label(NavigationRule("x", parse('a != "b"'))) == 'a != "b"'
        assert edge_label(NavigationRule("x", parse('a != "b"'), is_default=True)) == "default"


class TestSerializedShape:

    def test_to_dict_keys(self, example_graph):
        d = example_graph.to_dict()
        assert set(d) == {"nodes", "edges"}
        assert set(d["nodes"][0]) == {"id", "x", "y", "w", "h", "label", "conditional", "kind"}
        assert set(d["edges"][0]) == {"id", "source", "target", "label", "conditional"}

    def test_edge_count(self, example_graph):
        assert len(example_graph.edges) == 1 + 6 + 1 + 6
