"""
Flow graph derivation.

Turns a DocumentTree into the node/edge structure a graph-drawing host
renders:

    {
        "nodes": [{"id", "x", "y", "w", "h", "label", "conditional", "kind"}],
        "edges": [{"id", "source", "target", "label", "conditional"}]
    }

Nodes:
    - one per section, page and block of the tree
    - synthetic START and SUBMIT nodes

Edges:
    - start edge: START -> first page (or first block)
    - containment: section -> child page/section, page -> first block
    - sequential: block -> next block of the same page, only when the
      earlier block has no navigation rules
    - navigation: one per rule, labelled with the condition or "default";
      rules targeting "submit" point at SUBMIT; dangling targets get no edge

ARCHITECTURAL RULE:
    This module only derives structure. Sizes and positions are assigned
    by formflow.layout.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from formflow.conditions import condition_to_string
from formflow.debug import resolve_logger
from formflow.expressions import AlwaysTrue
from formflow.model import SUBMIT, NavigationRule, Node, NodeType
from formflow.tree import DocumentTree

START_ID = "start-node"
SUBMIT_ID = "submit-node"
DEFAULT_EDGE_LABEL = "default"


class FlowNodeKind(Enum):
    START = "start"
    SECTION = "section"
    PAGE = "page"
    BLOCK = "block"
    SUBMIT = "submit"


class FlowEdgeKind(Enum):
    START = "start"
    CONTAINMENT = "containment"
    SEQUENTIAL = "sequential"
    NAVIGATION = "navigation"


_KIND_BY_NODE_TYPE = {
    NodeType.SECTION: FlowNodeKind.SECTION,
    NodeType.PAGE: FlowNodeKind.PAGE,
    NodeType.BLOCK: FlowNodeKind.BLOCK,
}


@dataclass
class FlowNode:
    """
    A positioned box of the flow view.

    parent_id is the enclosing page for blocks and the enclosing section
    for pages and sections (None at the top).
    """

    id: str
    kind: FlowNodeKind
    label: str
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0
    conditional: bool = False
    parent_id: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "w": self.w,
            "h": self.h,
            "label": self.label,
            "conditional": self.conditional,
            "kind": self.kind.value,
        }


@dataclass
class FlowEdge:
    id: str
    source: str
    target: str
    kind: FlowEdgeKind
    label: str = ""
    conditional: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "conditional": self.conditional,
        }


@dataclass
class FlowGraph:
    nodes: List[FlowNode] = field(default_factory=list)
    edges: List[FlowEdge] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[FlowNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def of_kind(self, kind: FlowNodeKind) -> List[FlowNode]:
        return [n for n in self.nodes if n.kind is kind]

    def pages(self) -> List[FlowNode]:
        return self.of_kind(FlowNodeKind.PAGE)

    def blocks_of(self, page_id: str) -> List[FlowNode]:
        return [n for n in self.nodes if n.kind is FlowNodeKind.BLOCK and n.parent_id == page_id]

    def edges_of_kind(self, kind: FlowEdgeKind) -> List[FlowEdge]:
        return [e for e in self.edges if e.kind is kind]

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {n.id: n.position for n in self.nodes}

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }


def is_unconditional(rule: NavigationRule) -> bool:
    return isinstance(rule.effective_condition, AlwaysTrue)


def edge_label(rule: NavigationRule) -> str:
    if is_unconditional(rule):
        return DEFAULT_EDGE_LABEL
    return condition_to_string(rule.condition)


class FlowGraphBuilder:
    """
    Derives a FlowGraph from a tree snapshot.

    Args:
        logger: Injected logger (defaults to this module's logger)
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = resolve_logger(logger, __name__)

    def build(self, tree: DocumentTree) -> FlowGraph:
        graph = FlowGraph()
        graph.nodes.append(FlowNode(START_ID, FlowNodeKind.START, "Start"))
        for node in tree.walk():
            graph.nodes.append(self._flow_node(tree, node))
        graph.nodes.append(FlowNode(SUBMIT_ID, FlowNodeKind.SUBMIT, "Submit"))

        self._add_start_edge(tree, graph)
        for node in tree.walk():
            self._add_containment_edges(tree, node, graph)
        for page in tree.pages():
            self._add_sequential_edges(tree.blocks_of(page.id), graph)
        for node in tree.walk():
            self._add_navigation_edges(tree, node, graph)

        self.logger.debug(
            "Built flow graph: %d nodes, %d edges", len(graph.nodes), len(graph.edges)
        )
        return graph

    # -- nodes ----------------------------------------------------------------

    def _flow_node(self, tree: DocumentTree, node: Node) -> FlowNode:
        kind = _KIND_BY_NODE_TYPE[node.type]
        if kind is FlowNodeKind.BLOCK:
            page = tree.page_of(node.id)
            parent_id = page.id if page is not None else None
            conditional = self._has_conditions(node)
        else:
            parent_id = self._enclosing_section(tree, node.id)
            conditional = self._has_conditions(node) or (
                kind is FlowNodeKind.PAGE
                and any(self._has_conditions(b) for b in tree.blocks_of(node.id))
            )
        return FlowNode(
            id=node.id,
            kind=kind,
            label=node.display_name,
            conditional=conditional,
            parent_id=parent_id,
        )

    @staticmethod
    def _has_conditions(node: Node) -> bool:
        return any(not is_unconditional(r) for r in node.navigation_rules)

    @staticmethod
    def _enclosing_section(tree: DocumentTree, node_id: str) -> Optional[str]:
        for ancestor in reversed(tree.ancestors_of(node_id)):
            if ancestor.type is NodeType.SECTION:
                return ancestor.id
        return None

    # -- edges ----------------------------------------------------------------

    def _add_start_edge(self, tree: DocumentTree, graph: FlowGraph) -> None:
        pages = tree.pages()
        if pages:
            first = pages[0]
        else:
            blocks = tree.blocks()
            first = blocks[0] if blocks else tree.root
        graph.edges.append(FlowEdge(f"start-{first.id}", START_ID, first.id, FlowEdgeKind.START))

    def _add_containment_edges(self, tree: DocumentTree, node: Node, graph: FlowGraph) -> None:
        if node.type is NodeType.BLOCK:
            return
        children = tree.children_of(node.id)
        targets = []
        if node.type is NodeType.SECTION:
            targets.extend(c for c in children if c.type is not NodeType.BLOCK)
        first_block = next((c for c in children if c.type is NodeType.BLOCK), None)
        if first_block is not None:
            targets.append(first_block)
        for child in targets:
            graph.edges.append(
                FlowEdge(f"contains-{node.id}-{child.id}", node.id, child.id, FlowEdgeKind.CONTAINMENT)
            )

    def _add_sequential_edges(self, blocks: List[Node], graph: FlowGraph) -> None:
        for earlier, later in zip(blocks, blocks[1:]):
            if earlier.navigation_rules:
                continue
            graph.edges.append(
                FlowEdge(f"seq-{earlier.id}-{later.id}", earlier.id, later.id, FlowEdgeKind.SEQUENTIAL)
            )

    def _add_navigation_edges(self, tree: DocumentTree, node: Node, graph: FlowGraph) -> None:
        for index, rule in enumerate(node.navigation_rules):
            if rule.target == SUBMIT:
                target = SUBMIT_ID
            elif rule.target in tree:
                target = rule.target
            else:
                self.logger.warning(
                    "Navigation rule %d of %s targets missing node %r; no edge drawn",
                    index, node.display_name, rule.target,
                )
                continue
            graph.edges.append(
                FlowEdge(
                    id=f"nav-{node.id}-{index}-{target}",
                    source=node.id,
                    target=target,
                    kind=FlowEdgeKind.NAVIGATION,
                    label=edge_label(rule),
                    conditional=not is_unconditional(rule),
                )
            )


def build_flow_graph(tree: DocumentTree, logger: Optional[logging.Logger] = None) -> FlowGraph:
    """Unpositioned flow graph; see formflow.layout for placement."""
    return FlowGraphBuilder(logger).build(tree)
