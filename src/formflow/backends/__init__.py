"""Backends for formflow output generation (flow graph, DOT)."""

from .dot_generator import DotMode, generate_dot, save_dot_file
from .flow_graph import (
    FlowEdge,
    FlowEdgeKind,
    FlowGraph,
    FlowGraphBuilder,
    FlowNode,
    FlowNodeKind,
    build_flow_graph,
)

__all__ = [
    "DotMode",
    "FlowEdge",
    "FlowEdgeKind",
    "FlowGraph",
    "FlowGraphBuilder",
    "FlowNode",
    "FlowNodeKind",
    "build_flow_graph",
    "generate_dot",
    "save_dot_file",
]
