"""
Graphviz DOT diagram generator for form flow graphs.

Converts a FlowGraph (see formflow.backends.flow_graph) into Graphviz DOT
format for visualization.

Supports multiple modes:
    - SIMPLE: Node flow, conditional edges dashed, no edge labels
    - DETAILED: Edge labels with the navigation conditions
    - MANAGEMENT: Blocks grouped as clusters inside their pages
"""

from enum import Enum
from typing import Dict, List

from formflow.backends.flow_graph import FlowEdgeKind, FlowGraph, FlowNodeKind


class DotMode(Enum):
    """Visualization modes for DOT output."""
    SIMPLE = "simple"          # Just node flow
    DETAILED = "detailed"      # Include condition labels
    MANAGEMENT = "management"  # Pages as clusters


_NODE_STYLE = {
    FlowNodeKind.START: 'shape=ellipse, fillcolor=lightgreen',
    FlowNodeKind.SUBMIT: 'shape=ellipse, fillcolor=lightpink',
    FlowNodeKind.SECTION: 'shape=folder, fillcolor=lightyellow',
    FlowNodeKind.PAGE: 'shape=box3d, fillcolor=lightgrey',
    FlowNodeKind.BLOCK: 'shape=box, fillcolor=lightblue',
}

MAX_LABEL = 40


def _escape_dot_string(s: str) -> str:
    """Escape special characters for DOT labels."""
    if not s:
        return '""'
    s = s.replace('\\', '\\\\')
    s = s.replace('"', '\\"')
    s = s.replace('\n', '\\n')
    return f'"{s}"'


def _escape_dot_id(identifier: str) -> str:
    """Quote an identifier unless it is a plain DOT name."""
    if identifier and not identifier[0].isdigit() and identifier.replace('_', '').isalnum():
        return identifier
    return _escape_dot_string(identifier)


def _shorten(label: str) -> str:
    if len(label) > MAX_LABEL:
        return label[:MAX_LABEL - 3] + "..."
    return label


def generate_dot(graph: FlowGraph, mode: DotMode = DotMode.SIMPLE) -> str:
    """
    Generate Graphviz DOT format for a flow graph.

    Args:
        graph: FlowGraph to visualize
        mode: Visualization mode (SIMPLE, DETAILED, MANAGEMENT)

    Returns:
        String containing DOT graph definition
    """
    lines = []

    # Header
    lines.append("digraph form {")
    lines.append("  rankdir=TB;")
    lines.append("  node [shape=box, style=filled, fillcolor=lightblue];")

    # =========================================================================
    # NODES
    # =========================================================================

    clustered = set()
    if mode == DotMode.MANAGEMENT:
        blocks_by_page: Dict[str, List[str]] = {}
        for node in graph.of_kind(FlowNodeKind.BLOCK):
            if node.parent_id is not None:
                blocks_by_page.setdefault(node.parent_id, []).append(node.id)

        for page in graph.pages():
            lines.append(f'  subgraph {_escape_dot_string("cluster_" + page.id)} {{')
            lines.append(f'    label={_escape_dot_string(page.label)};')
            lines.append('    style=filled;')
            lines.append('    color=lightgrey;')
            for block_id in blocks_by_page.get(page.id, []):
                block = graph.node(block_id)
                lines.append(
                    f'    {_escape_dot_id(block.id)} [{_NODE_STYLE[block.kind]}, '
                    f'label={_escape_dot_string(block.label)}];'
                )
                clustered.add(block_id)
            lines.append("  }")

    for node in graph.nodes:
        if node.id in clustered:
            continue
        lines.append(
            f'  {_escape_dot_id(node.id)} [{_NODE_STYLE[node.kind]}, '
            f'label={_escape_dot_string(node.label)}];'
        )

    # =========================================================================
    # EDGES
    # =========================================================================

    for edge in graph.edges:
        if mode == DotMode.MANAGEMENT and edge.kind is FlowEdgeKind.CONTAINMENT:
            continue
        attrs = []
        if edge.conditional:
            attrs.append("style=dashed")
        elif edge.kind is FlowEdgeKind.CONTAINMENT:
            attrs.append("style=dotted")
        if mode == DotMode.DETAILED and edge.label:
            attrs.append(f"label={_escape_dot_string(_shorten(edge.label))}")
        edge_attr = f" [{', '.join(attrs)}]" if attrs else ""
        lines.append(f"  {_escape_dot_id(edge.source)} -> {_escape_dot_id(edge.target)}{edge_attr};")

    # Footer
    lines.append("}")

    return "\n".join(lines)


def save_dot_file(graph: FlowGraph, filename: str, mode: DotMode = DotMode.SIMPLE) -> None:
    """
    Generate DOT and save to file.

    Args:
        graph: FlowGraph to visualize
        filename: Output file path (.dot extension recommended)
        mode: Visualization mode
    """
    dot = generate_dot(graph, mode=mode)
    with open(filename, 'w', encoding='utf-8') as f:
        f.write(dot)


__all__ = ["DotMode", "generate_dot", "save_dot_file"]
