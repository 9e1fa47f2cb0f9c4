"""
Flow graph layout.

Placement is hierarchical: pages are assigned levels by a breadth-first
walk from the START node along navigation and sequential edges, pages of
one level are spread horizontally, and every page reserves a box large
enough for its blocks, which sit on a grid inside it.

Every page, section and terminal node is placed through
`find_available_position`: if its box (plus padding) overlaps a node
already placed, candidate positions are tried on circles of growing radius
at 45 degree steps. After `max_attempts` rings the preferred position is
used even if it overlaps, so placement always terminates.

`FlowLayout` keeps positions between edits:
    - first use, or a change in the number of pages: full layout
    - otherwise: only the block grids of pages that gained blocks are
      recomputed, every other position is kept
"""

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from formflow.backends.flow_graph import (
    START_ID,
    FlowEdgeKind,
    FlowGraph,
    FlowGraphBuilder,
    FlowNode,
    FlowNodeKind,
)
from formflow.debug import resolve_logger
from formflow.tree import DocumentTree

Point = Tuple[float, float]

_LEVEL_EDGES = (FlowEdgeKind.START, FlowEdgeKind.NAVIGATION, FlowEdgeKind.SEQUENTIAL)


@dataclass(frozen=True)
class LayoutConfig:
    """Layout tunables. Defaults reproduce the editor's flow view."""

    start_x: float = 400
    start_y: float = 100
    page_spacing_x: float = 450
    row_spacing: float = 400
    section_offset_x: float = 250

    block_offset: Point = (20, 60)
    block_spacing: Point = (160, 100)
    blocks_per_row: int = 2

    block_size: Point = (140, 80)
    page_min_size: Point = (350, 250)
    section_size: Point = (200, 60)
    terminal_size: Point = (80, 40)

    padding: float = 20
    search_step: float = 50
    max_attempts: int = 50
    angle_step: int = 45


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    w: float
    h: float
    id: Optional[str] = None

    @classmethod
    def of(cls, node: FlowNode) -> "Rect":
        return cls(node.x, node.y, node.w, node.h, node.id)


def check_collision(
    x: float,
    y: float,
    w: float,
    h: float,
    placed: Sequence[Rect],
    padding: float = 20,
    exclude_id: Optional[str] = None,
) -> bool:
    """True if the box (x, y, w, h) comes within `padding` of a placed box."""
    for other in placed:
        if exclude_id is not None and other.id == exclude_id:
            continue
        separated = (
            x + w + padding < other.x
            or x > other.x + other.w + padding
            or y + h + padding < other.y
            or y > other.y + other.h + padding
        )
        if not separated:
            return True
    return False


def find_available_position(
    preferred: Point,
    size: Point,
    placed: Sequence[Rect],
    config: Optional[LayoutConfig] = None,
    exclude_id: Optional[str] = None,
) -> Point:
    """
    Nearest free spot to `preferred` on the radial search pattern.

    Returns `preferred` itself when it is free or when the search is
    exhausted.
    """
    config = config or LayoutConfig()
    x, y = preferred
    w, h = size
    if not check_collision(x, y, w, h, placed, config.padding, exclude_id):
        return preferred

    for attempt in range(1, config.max_attempts + 1):
        radius = attempt * config.search_step
        for angle in range(0, 360, config.angle_step):
            radian = math.radians(angle)
            cx = x + math.cos(radian) * radius
            cy = y + math.sin(radian) * radius
            if not check_collision(cx, cy, w, h, placed, config.padding, exclude_id):
                return (cx, cy)
    return preferred


def page_size(block_count: int, config: Optional[LayoutConfig] = None) -> Point:
    """Box a page needs to hold `block_count` blocks on its grid."""
    config = config or LayoutConfig()
    min_w, min_h = config.page_min_size
    if block_count <= 0:
        return (min_w, min_h)
    block_w, block_h = config.block_size
    per_row = min(config.blocks_per_row, block_count)
    rows = math.ceil(block_count / per_row)
    width = max(min_w, per_row * block_w + (per_row - 1) * 20 + 60)
    height = max(min_h, 80 + rows * block_h + (rows - 1) * 20 + 40)
    return (width, height)


def block_position(page_origin: Point, index: int, count: int, config: Optional[LayoutConfig] = None) -> Point:
    config = config or LayoutConfig()
    per_row = max(1, min(config.blocks_per_row, count))
    row, col = divmod(index, per_row)
    return (
        page_origin[0] + config.block_offset[0] + col * config.block_spacing[0],
        page_origin[1] + config.block_offset[1] + row * config.block_spacing[1],
    )


def reposition_blocks_in_page(
    graph: FlowGraph,
    page_id: str,
    positions: Mapping[str, Point],
    config: Optional[LayoutConfig] = None,
) -> Dict[str, Point]:
    """
    Grid positions for every block of one page, from the page's position.

    Returns an empty dict when the page has no known position or no blocks.
    """
    origin = positions.get(page_id)
    if origin is None:
        return {}
    blocks = graph.blocks_of(page_id)
    return {
        block.id: block_position(origin, index, len(blocks), config)
        for index, block in enumerate(blocks)
    }


def assign_sizes(graph: FlowGraph, config: Optional[LayoutConfig] = None) -> None:
    config = config or LayoutConfig()
    for node in graph.nodes:
        if node.kind is FlowNodeKind.PAGE:
            node.w, node.h = page_size(len(graph.blocks_of(node.id)), config)
        elif node.kind is FlowNodeKind.BLOCK:
            node.w, node.h = config.block_size
        elif node.kind is FlowNodeKind.SECTION:
            node.w, node.h = config.section_size
        else:
            node.w, node.h = config.terminal_size


def apply_positions(graph: FlowGraph, positions: Mapping[str, Point]) -> None:
    for node in graph.nodes:
        if node.id in positions:
            node.x, node.y = positions[node.id]


# ---------------------------------------------------------------------------
# Full layout
# ---------------------------------------------------------------------------


def _unit_of(node: FlowNode, by_id: Mapping[str, FlowNode]) -> Optional[str]:
    """The page-level box a node is drawn in (a page, or a page-less block)."""
    if node.kind is FlowNodeKind.START:
        return START_ID
    if node.kind is FlowNodeKind.PAGE:
        return node.id
    if node.kind is FlowNodeKind.BLOCK:
        if node.parent_id is not None and node.parent_id in by_id:
            return node.parent_id
        return node.id
    return None


def assign_levels(graph: FlowGraph) -> Dict[int, List[str]]:
    """
    Level -> unit ids, by breadth-first search from START.

    Units not reached from START are appended one level each, in graph
    order.
    """
    by_id = {n.id: n for n in graph.nodes}
    units = [
        n.id for n in graph.nodes
        if n.kind is FlowNodeKind.PAGE
        or (n.kind is FlowNodeKind.BLOCK and _unit_of(n, by_id) == n.id)
    ]

    adjacency: Dict[str, List[str]] = {}
    for edge in graph.edges:
        if edge.kind not in _LEVEL_EDGES:
            continue
        source, target = by_id.get(edge.source), by_id.get(edge.target)
        if source is None or target is None:
            continue
        su, tu = _unit_of(source, by_id), _unit_of(target, by_id)
        if su is None or tu is None or su == tu:
            continue
        adjacency.setdefault(su, [])
        if tu not in adjacency[su]:
            adjacency[su].append(tu)

    levels: Dict[str, int] = {}
    queue = deque((unit, 0) for unit in adjacency.get(START_ID, []))
    if not queue and units:
        queue.append((units[0], 0))
    while queue:
        unit, level = queue.popleft()
        if unit in levels:
            continue
        levels[unit] = level
        for nxt in adjacency.get(unit, []):
            if nxt not in levels and nxt != START_ID:
                queue.append((nxt, level + 1))

    by_level: Dict[int, List[str]] = {}
    for unit in units:
        if unit not in levels:
            levels[unit] = max(levels.values(), default=-1) + 1
        by_level.setdefault(levels[unit], []).append(unit)
    return dict(sorted(by_level.items()))


def layout_graph(graph: FlowGraph, config: Optional[LayoutConfig] = None) -> FlowGraph:
    """Size and position every node of `graph` in place; returns it."""
    config = config or LayoutConfig()
    assign_sizes(graph, config)
    by_id = {n.id: n for n in graph.nodes}
    placed: List[Rect] = []

    def place(node: FlowNode, preferred: Point) -> None:
        node.x, node.y = find_available_position(preferred, (node.w, node.h), placed, config)
        placed.append(Rect.of(node))

    start = by_id.get(START_ID)
    if start is not None:
        place(start, (config.start_x, config.start_y - config.row_spacing / 2))

    levels = assign_levels(graph)
    for level, unit_ids in levels.items():
        y = config.start_y + level * config.row_spacing
        x = config.start_x - max(0, (len(unit_ids) - 1) * config.page_spacing_x) / 2
        for unit_id in unit_ids:
            unit = by_id[unit_id]
            place(unit, (x, y))
            if unit.kind is FlowNodeKind.PAGE:
                apply_positions(graph, reposition_blocks_in_page(graph, unit.id, {unit.id: unit.position}, config))
            x += config.page_spacing_x

    for node in graph.of_kind(FlowNodeKind.SECTION):
        members = [n for n in graph.nodes if n.parent_id == node.id and n.kind is FlowNodeKind.PAGE]
        if members:
            preferred = (
                min(m.x for m in members) - config.section_offset_x,
                min(m.y for m in members),
            )
        else:
            preferred = (config.start_x - 2 * config.section_offset_x, config.start_y)
        place(node, preferred)

    max_level = max(levels, default=-1)
    for node in graph.of_kind(FlowNodeKind.SUBMIT):
        place(node, (config.start_x, config.start_y + (max_level + 1) * config.row_spacing))
    return graph


def build_positioned_graph(
    tree: DocumentTree,
    config: Optional[LayoutConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> FlowGraph:
    """Derive the flow graph of `tree` and lay it out."""
    return layout_graph(FlowGraphBuilder(logger).build(tree), config)


# ---------------------------------------------------------------------------
# Incremental layout
# ---------------------------------------------------------------------------


class FlowLayout:
    """
    Layout state carried across edits of one document.

    Args:
        config: LayoutConfig
        logger: Injected logger (defaults to this module's logger)
    """

    def __init__(self, config: Optional[LayoutConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or LayoutConfig()
        self.logger = resolve_logger(logger, __name__)
        self.positions: Dict[str, Point] = {}
        self.page_count: Optional[int] = None

    def relayout(self, graph: FlowGraph) -> FlowGraph:
        """Position `graph` in place, reusing earlier positions where allowed."""
        assign_sizes(graph, self.config)
        page_count = len(graph.pages())

        if not self.positions or page_count != self.page_count:
            self.logger.debug("Full layout (%d pages, previously %s)", page_count, self.page_count)
            layout_graph(graph, self.config)
            self.positions = graph.positions()
        else:
            self._partial(graph)

        self.page_count = page_count
        return graph

    def _partial(self, graph: FlowGraph) -> None:
        live = {n.id for n in graph.nodes}
        self.positions = {k: v for k, v in self.positions.items() if k in live}
        new_nodes = [n for n in graph.nodes if n.id not in self.positions]

        affected: Set[str] = set()
        floating: List[FlowNode] = []
        for node in new_nodes:
            if node.kind is FlowNodeKind.BLOCK and node.parent_id in self.positions:
                affected.add(node.parent_id)
            else:
                floating.append(node)

        for page_id in sorted(affected):
            self.positions.update(
                reposition_blocks_in_page(graph, page_id, self.positions, self.config)
            )
        apply_positions(graph, self.positions)

        if floating:
            placed = [Rect.of(n) for n in graph.nodes if n.id in self.positions]
            lowest = max((r.y + r.h for r in placed), default=self.config.start_y)
            for node in floating:
                position = find_available_position(
                    (self.config.start_x, lowest + self.config.row_spacing / 2),
                    (node.w, node.h),
                    placed,
                    self.config,
                )
                node.x, node.y = position
                self.positions[node.id] = position
                placed.append(Rect.of(node))

        self.logger.debug(
            "Partial layout: %d page(s) regridded, %d node(s) placed",
            len(affected), len(floating),
        )
