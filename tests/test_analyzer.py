"""
Tests for the Document Analyzer.

Tests verify that the analyzer correctly:
    - Reports navigation cycles once each, by node name
    - Finds unreachable blocks and dangling targets
    - Inventories field names and validation coverage
    - Leaves the document usable (analysis is read-only)
"""

from formflow.analyzer import (
    analyze_document,
    detect_cycles,
    find_cycles,
    navigation_graph,
    reachable_blocks,
)
from formflow.examples import build_example_document
from formflow.tree import DocumentTree, remove_by_id, update_by_id


def chain_tree(links) -> DocumentTree:
    """One page of blocks named A, B, C...; `links` maps name -> [target names]."""
    names = sorted({n for pair in links.items() for n in [pair[0], *pair[1]]})
    blocks = []
    for name in names:
        block = {"uuid": name.lower(), "type": "textfield", "fieldName": name}
        targets = links.get(name, [])
        if targets:
            block["navigationRules"] = [
                {"condition": f'{name} == "go"', "target": t.lower()} for t in targets
            ]
        blocks.append(block)
    return DocumentTree.from_dict({
        "uuid": "root",
        "type": "section",
        "name": "Cycles",
        "items": [{"uuid": "page", "type": "page", "items": blocks}],
    })


def test_three_node_ring_reported_once():
    """A -> B -> C -> A is reported exactly once."""
    tree = chain_tree({"A": ["B"], "B": ["C"], "C": ["A"]})
    assert detect_cycles(tree) == ["A → B → C → A"]
    assert find_cycles(tree) == [["a", "b", "c", "a"]]


def test_two_disjoint_rings():
    tree = chain_tree({"A": ["B"], "B": ["A"], "C": ["D"], "D": ["C"]})
    assert detect_cycles(tree) == ["A → B → A", "C → D → C"]


def test_rings_sharing_nodes_are_all_reported():
    """A -> B -> C -> A and A -> C -> A share A and C; both are reported."""
    tree = chain_tree({"A": ["B", "C"], "B": ["C"], "C": ["A"]})
    assert detect_cycles(tree) == ["A → B → C → A", "A → C → A"]
    assert find_cycles(tree) == [["a", "b", "c", "a"], ["a", "c", "a"]]


def test_ring_entered_mid_way_is_rotated_to_smallest_id():
    tree = chain_tree({"A": ["B"], "B": ["C"], "C": ["B"]})
    assert find_cycles(tree) == [["b", "c", "b"]]


def test_self_loop():
    tree = chain_tree({"A": ["A"]})
    assert detect_cycles(tree) == ["A → A"]


def test_no_cycles_in_a_chain():
    tree = chain_tree({"A": ["B"], "B": ["C"]})
    assert detect_cycles(tree) == []


def test_navigation_graph_excludes_submit():
    tree = build_example_document().tree
    graph = navigation_graph(tree)
    assert graph["blk-smoker"] == ["blk-cigarettes"]
    assert "blk-cigarettes" not in graph


def test_example_document_is_clean():
    report = analyze_document(build_example_document().tree)

    assert report.document_name == "Health intake"
    assert report.total_sections == 1
    assert report.total_pages == 3
    assert report.total_blocks == 5
    assert report.total_navigation_rules == 6
    assert report.total_validation_rules == 8
    assert report.validation_coverage_percent == 100.0
    assert report.unreachable_blocks == []
    assert report.dangling_targets == []
    assert not report.has_cycles
    assert report.warnings == []


def test_cycle_is_a_warning_not_an_error():
    tree = chain_tree({"A": ["B"], "B": ["A"]})
    report = analyze_document(tree)
    assert report.has_cycles
    assert "Navigation cycle: A → B → A" in report.warnings
    assert len(tree) == 4


def test_dangling_target_reported():
    tree = remove_by_id(build_example_document().tree, "page-adult")
    report = analyze_document(tree)
    assert [(d.source_id, d.target) for d in report.dangling_targets] == [("blk-age", "page-adult")]
    assert "Dangling navigation targets: page-adult" in report.warnings


def test_unreachable_after_unconditional_rule():
    tree = DocumentTree.from_dict({
        "uuid": "root",
        "type": "section",
        "items": [{
            "uuid": "p",
            "type": "page",
            "items": [
                {
                    "uuid": "b1",
                    "type": "textfield",
                    "fieldName": "one",
                    "navigationRules": [{"condition": "true", "target": "submit", "isDefault": True}],
                },
                {"uuid": "b2", "type": "textfield", "fieldName": "two"},
            ],
        }],
    })
    assert reachable_blocks(tree) == {"b1"}
    report = analyze_document(tree)
    assert report.unreachable_blocks == ["b2"]
    assert "Unreachable blocks: b2" in report.warnings


def test_conditional_rules_keep_sequence_reachable():
    tree = chain_tree({"A": ["C"], "B": []})
    assert reachable_blocks(tree) == {"a", "b", "c"}


def test_field_name_inventory():
    tree = build_example_document().tree
    tree = update_by_id(tree, "blk-smoker", {"fieldName": "name"})
    tree = update_by_id(tree, "blk-cigarettes", {"fieldName": None})
    report = analyze_document(tree)
    assert report.duplicate_field_names == {"name": 2}
    assert report.blocks_without_field_name == ["blk-cigarettes"]
    assert "Duplicate fieldNames: name" in report.warnings
    assert "Blocks without fieldName: blk-cigarettes" in report.warnings


def test_unknown_operators_and_unparsed_conditions():
    tree = build_example_document().tree
    tree = update_by_id(tree, "blk-name", {
        "validationRules": [{"operator": "isPrime", "message": "x"}],
        "navigationRules": [{"condition": "a > 1 && b < 2", "target": "blk-age"}],
    })
    report = analyze_document(tree)
    assert report.unknown_operators == {"isPrime"}
    assert report.unparsed_conditions == 1
    assert "Unknown validation operators: isPrime" in report.warnings


def test_validation_coverage():
    tree = update_by_id(build_example_document().tree, "blk-name", {"validationRules": []})
    report = analyze_document(tree)
    assert report.blocks_with_validation == 4
    assert report.validation_coverage_percent == 80.0
