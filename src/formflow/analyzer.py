"""
Document Analyzer: navigation cycles and an inventory of form documents.

This module provides read-only analysis of a DocumentTree:
    - Navigation cycle detection
    - Reachability of blocks from the first block
    - Dangling navigation targets
    - Validation coverage and unknown operators
    - Warning flags for authoring problems

IMPORTANT: Cycles are advisory. A document with cycles stays usable;
nothing here modifies the tree.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from formflow.expressions import AlwaysTrue, UnparsedCondition
from formflow.model import SUBMIT, Node, NodeType
from formflow.navigation import NavigationEngine
from formflow.operators import OPERATORS
from formflow.tree import DanglingTarget, DocumentTree

CYCLE_SEPARATOR = " → "


def navigation_graph(tree: DocumentTree) -> Dict[str, List[str]]:
    """Node id -> navigation targets, submit excluded, in walk order."""
    graph: Dict[str, List[str]] = {}
    for node in tree.walk():
        targets = [r.target for r in node.navigation_rules if r.target and r.target != SUBMIT]
        if targets:
            graph[node.id] = targets
    return graph


def _find_cycles_dfs(graph: Dict[str, List[str]], node: str, visited: Set[str],
                     rec_stack: Set[str], path: List[str], found: List[List[str]]) -> None:
    """DFS recording every edge that closes back onto the recursion stack."""
    if node in rec_stack:
        cycle_start_idx = path.index(node)
        found.append(path[cycle_start_idx:] + [node])
        return
    if node in visited:
        return

    visited.add(node)
    rec_stack.add(node)
    path.append(node)
    for neighbor in graph.get(node, []):
        _find_cycles_dfs(graph, neighbor, visited, rec_stack, path, found)
    path.pop()
    rec_stack.remove(node)


def _canonical(cycle: List[str]) -> tuple:
    ring = cycle[:-1]
    pivot = ring.index(min(ring))
    return tuple(ring[pivot:] + ring[:pivot])


def find_cycles(tree: DocumentTree) -> List[List[str]]:
    """
    Every navigation cycle as an id path that ends where it starts.

    The search restarts from every node with fresh state, so rings that
    share nodes are all found. Each ring is reported once, rotated to start
    at its smallest id, in the order the searches first met it.
    """
    graph = navigation_graph(tree)
    found: List[List[str]] = []
    for node_id in graph:
        _find_cycles_dfs(graph, node_id, set(), set(), [], found)

    unique: List[List[str]] = []
    seen = set()
    for cycle in found:
        key = _canonical(cycle)
        if key not in seen:
            seen.add(key)
            unique.append(list(key) + [key[0]])
    return unique


def _cycle_name(tree: DocumentTree, node_id: str) -> str:
    node = tree.get(node_id)
    if node is None:
        return node_id
    return node.name or node.field_name or node.label or node_id


def detect_cycles(tree: DocumentTree) -> List[str]:
    """Navigation cycles rendered as "A → B → C → A" using node names."""
    return [
        CYCLE_SEPARATOR.join(_cycle_name(tree, node_id) for node_id in cycle)
        for cycle in find_cycles(tree)
    ]


@dataclass
class DocumentReport:
    """Analysis report for a form document."""

    document_name: str
    total_sections: int = 0
    total_pages: int = 0
    total_blocks: int = 0
    total_navigation_rules: int = 0
    total_validation_rules: int = 0

    # Navigation
    unreachable_blocks: List[str] = field(default_factory=list)
    dangling_targets: List[DanglingTarget] = field(default_factory=list)
    unparsed_conditions: int = 0
    cycles: List[str] = field(default_factory=list)

    # Fields and validation
    blocks_without_field_name: List[str] = field(default_factory=list)
    duplicate_field_names: Dict[str, int] = field(default_factory=dict)
    blocks_with_validation: int = 0
    validation_coverage_percent: float = 0.0
    unknown_operators: Set[str] = field(default_factory=set)

    warnings: List[str] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return bool(self.cycles)

    def add_warning(self, msg: str) -> None:
        if msg not in self.warnings:
            self.warnings.append(msg)


def reachable_blocks(tree: DocumentTree) -> Set[str]:
    """
    Blocks a respondent can reach from the first block.

    Successors of a block are its rule targets (a page target means its
    first block) plus, unless an unconditional rule exists, the next block
    in sequence.
    """
    engine = NavigationEngine(tree)
    blocks = tree.blocks()
    if not blocks:
        return set()

    def entry_of(target_id: str) -> Optional[str]:
        target = tree.get(target_id)
        if target is None:
            return None
        if target.type is NodeType.BLOCK:
            return target.id
        inner = next((n for n in tree.walk(target.id) if n.type is NodeType.BLOCK), None)
        return inner.id if inner is not None else None

    reached: Set[str] = set()
    stack = [blocks[0].id]
    while stack:
        block_id = stack.pop()
        if block_id in reached:
            continue
        reached.add(block_id)
        block = tree.get(block_id)
        successors = [r.target for r in block.navigation_rules if r.target != SUBMIT]
        unconditional = any(
            isinstance(r.effective_condition, AlwaysTrue) for r in block.navigation_rules
        )
        if not unconditional:
            following = engine.next_in_sequence(block_id)
            if following is not None and following != SUBMIT:
                successors.append(following)
        for target_id in successors:
            entry = entry_of(target_id)
            if entry is not None and entry not in reached:
                stack.append(entry)
    return reached


def analyze_document(tree: DocumentTree) -> DocumentReport:
    """
    Perform analysis of a form document.

    Checks for:
    - Navigation cycles, dangling targets and unreachable blocks
    - Legacy conditions outside the condition grammar
    - Blocks without field names, duplicated field names
    - Validation coverage and unknown validation operators

    Returns a DocumentReport with metrics and warnings.
    """
    report = DocumentReport(document_name=tree.root.display_name)
    nodes = list(tree.walk())
    blocks: List[Node] = [n for n in nodes if n.type is NodeType.BLOCK]

    report.total_sections = sum(1 for n in nodes if n.type is NodeType.SECTION)
    report.total_pages = sum(1 for n in nodes if n.type is NodeType.PAGE)
    report.total_blocks = len(blocks)

    for node in nodes:
        report.total_navigation_rules += len(node.navigation_rules)
        report.total_validation_rules += len(node.validation_rules)
        report.unparsed_conditions += sum(
            1 for r in node.navigation_rules if isinstance(r.condition, UnparsedCondition)
        )
        for rule in node.validation_rules:
            if rule.operator not in OPERATORS:
                report.unknown_operators.add(rule.operator)

    # Fields
    field_counts: Dict[str, int] = defaultdict(int)
    for block in blocks:
        if block.field_name:
            field_counts[block.field_name] += 1
        else:
            report.blocks_without_field_name.append(block.id)
        if block.validation_rules:
            report.blocks_with_validation += 1
    report.duplicate_field_names = {k: v for k, v in field_counts.items() if v > 1}
    if blocks:
        report.validation_coverage_percent = report.blocks_with_validation / len(blocks) * 100

    # Navigation
    report.dangling_targets = tree.dangling_targets()
    reached = reachable_blocks(tree)
    report.unreachable_blocks = [b.id for b in blocks if b.id not in reached]
    report.cycles = detect_cycles(tree)

    # Warnings
    if report.dangling_targets:
        report.add_warning(
            "Dangling navigation targets: "
            + ", ".join(sorted({d.target for d in report.dangling_targets}))
        )
    if report.unreachable_blocks:
        report.add_warning(f"Unreachable blocks: {', '.join(report.unreachable_blocks)}")
    for cycle in report.cycles:
        report.add_warning(f"Navigation cycle: {cycle}")
    if report.unparsed_conditions:
        report.add_warning(
            f"{report.unparsed_conditions} navigation condition(s) outside the condition grammar never match"
        )
    if report.blocks_without_field_name:
        report.add_warning(
            f"Blocks without fieldName: {', '.join(report.blocks_without_field_name)}"
        )
    if report.duplicate_field_names:
        report.add_warning(
            f"Duplicate fieldNames: {', '.join(sorted(report.duplicate_field_names))}"
        )
    if report.unknown_operators:
        report.add_warning(
            f"Unknown validation operators: {', '.join(sorted(report.unknown_operators))}"
        )
    return report
