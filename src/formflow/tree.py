"""
Document tree snapshots and the three mutation primitives.

A DocumentTree is an arena: the root id plus a read-only id -> Node
mapping. Parents reference children by id (ChildRef), so one lookup finds
any node and a mutation only rebuilds the nodes it touches:

    tree2 = add_child(tree, page_id, {"type": "textfield", "label": "Age"})
    tree3 = update_by_id(tree2, block_id, {"fieldName": "age"})
    tree4 = remove_by_id(tree3, block_id)

ARCHITECTURAL RULE:
    - Snapshots are never mutated; every operation returns a snapshot
    - An unknown id is not an error: the SAME snapshot object comes back
    - Node instances not touched by an operation are shared (`is`-identical)
      between the old and the new snapshot
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from functools import cached_property
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple, Union

from formflow.adapters import (
    IdFactory,
    DocumentFormatError,
    expand_node,
    flatten_node,
    navigation_rule_from_dict,
    new_id,
    node_type_from_raw,
    validation_rule_from_dict,
)
from formflow.model import SUBMIT, ChildRef, ChildSlot, NavigationRule, Node, NodeType

logger = logging.getLogger(__name__)

NodeData = Union[Node, Mapping[str, Any]]

# Document keys accepted by update_by_id, mapped to Node attributes.
_PARTIAL_KEYS = {
    "fieldName": "field_name",
    "navigationRules": "navigation_rules",
    "validationRules": "validation_rules",
}
_NODE_ATTRS = frozenset(f.name for f in dataclasses.fields(Node)) - {"id", "extra"}


@dataclass(frozen=True)
class DanglingTarget:
    """A navigation rule whose target id is not in the tree."""

    source_id: str
    rule_index: int
    target: str


@dataclass(frozen=True)
class DocumentTree:
    """
    Immutable snapshot of a form tree.

    Properties:
        root_id: Id of the single root node
        nodes: Read-only id -> Node mapping of every embedded node
    """

    root_id: str
    nodes: Mapping[str, Node] = field(repr=False)

    def __post_init__(self):
        if not isinstance(self.nodes, MappingProxyType):
            object.__setattr__(self, "nodes", MappingProxyType(dict(self.nodes)))
        if self.root_id not in self.nodes:
            raise ValueError(f"Root id {self.root_id!r} not among the tree's nodes")

    # -- construction -----------------------------------------------------

    @classmethod
    def from_dict(cls, d: Mapping[str, Any], id_factory: IdFactory = new_id) -> "DocumentTree":
        """Read a root node dict (document shape) into a snapshot."""
        nodes: Dict[str, Node] = {}
        root_id = flatten_node(d, nodes, id_factory)
        return cls._owning(root_id, nodes)

    @classmethod
    def from_nodes(cls, root: Node, *descendants: Node) -> "DocumentTree":
        nodes = {root.id: root}
        for node in descendants:
            if node.id in nodes:
                raise ValueError(f"Duplicate node id: {node.id}")
            nodes[node.id] = node
        return cls._owning(root.id, nodes)

    @classmethod
    def _owning(cls, root_id: str, nodes: Dict[str, Node]) -> "DocumentTree":
        # Wraps a dict the caller will not touch again; no copy.
        return cls(root_id, MappingProxyType(nodes))

    def to_dict(self) -> Dict[str, Any]:
        return expand_node(self.root_id, self.nodes)

    # -- reads --------------------------------------------------------------

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def children_of(self, node_id: str) -> List[Node]:
        """Resolvable children in order (items first, then nodes)."""
        node = self.nodes.get(node_id)
        if node is None:
            return []
        return [self.nodes[ref.node_id] for ref in node.children if ref.node_id in self.nodes]

    @cached_property
    def _parents(self) -> Dict[str, str]:
        parents: Dict[str, str] = {}
        bare: Dict[str, str] = {}
        for node in self.nodes.values():
            for ref in node.children:
                if ref.embedded:
                    parents.setdefault(ref.node_id, node.id)
                else:
                    bare.setdefault(ref.node_id, node.id)
        for child_id, parent_id in bare.items():
            parents.setdefault(child_id, parent_id)
        return parents

    def parent_of(self, node_id: str) -> Optional[Node]:
        parent_id = self._parents.get(node_id)
        return self.nodes.get(parent_id) if parent_id is not None else None

    def ancestors_of(self, node_id: str) -> List[Node]:
        """Ancestors from the root down to the direct parent."""
        chain: List[Node] = []
        seen = {node_id}
        parent = self.parent_of(node_id)
        while parent is not None and parent.id not in seen:
            chain.append(parent)
            seen.add(parent.id)
            parent = self.parent_of(parent.id)
        chain.reverse()
        return chain

    def walk(self, start_id: Optional[str] = None) -> Iterator[Node]:
        """
        Depth-first, pre-order traversal.

        Follows embedded children only; bare id references are skipped
        because they are not resolved locally.
        """
        start = self.root_id if start_id is None else start_id
        if start not in self.nodes:
            return
        stack = [start]
        seen: Set[str] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            node = self.nodes[current]
            yield node
            embedded = [
                ref.node_id for ref in node.children
                if ref.embedded and ref.node_id in self.nodes
            ]
            stack.extend(reversed(embedded))

    def pages(self) -> List[Node]:
        return [n for n in self.walk() if n.type is NodeType.PAGE]

    def sections(self) -> List[Node]:
        return [n for n in self.walk() if n.type is NodeType.SECTION]

    def blocks(self) -> List[Node]:
        return [n for n in self.walk() if n.type is NodeType.BLOCK]

    def blocks_of(self, page_id: str) -> List[Node]:
        """Direct block children of a page, in order."""
        return [n for n in self.children_of(page_id) if n.type is NodeType.BLOCK]

    def page_of(self, node_id: str) -> Optional[Node]:
        """Nearest enclosing page of a node."""
        for ancestor in reversed(self.ancestors_of(node_id)):
            if ancestor.type is NodeType.PAGE:
                return ancestor
        return None

    def find_by_field_name(self, field_name: str) -> Optional[Node]:
        return next((n for n in self.walk() if n.field_name == field_name), None)

    def dangling_targets(self) -> List[DanglingTarget]:
        """Navigation rule targets that resolve to no node (submit excluded)."""
        found = []
        for node in self.walk():
            for index, rule in enumerate(node.navigation_rules):
                if rule.target != SUBMIT and rule.target not in self.nodes:
                    found.append(DanglingTarget(node.id, index, rule.target))
        return found

    def prune_dangling_rules(self) -> "DocumentTree":
        """Drop every navigation rule whose target does not resolve."""
        dangling = self.dangling_targets()
        if not dangling:
            return self
        doomed: Dict[str, Set[int]] = {}
        for entry in dangling:
            doomed.setdefault(entry.source_id, set()).add(entry.rule_index)
        nodes = dict(self.nodes)
        for source_id, indexes in doomed.items():
            node = nodes[source_id]
            kept = tuple(r for i, r in enumerate(node.navigation_rules) if i not in indexes)
            nodes[source_id] = dataclasses.replace(node, navigation_rules=kept)
            logger.info(
                "Pruned %d dangling navigation rule(s) from %s", len(indexes), node.display_name
            )
        return DocumentTree._owning(self.root_id, nodes)

    # -- mutations ------------------------------------------------------------

    def add_child(self, parent_id: str, node_data: NodeData, **kwargs) -> "DocumentTree":
        return add_child(self, parent_id, node_data, **kwargs)

    def update_by_id(self, node_id: str, partial: Mapping[str, Any]) -> "DocumentTree":
        return update_by_id(self, node_id, partial)

    def remove_by_id(self, node_id: str) -> "DocumentTree":
        return remove_by_id(self, node_id)


@dataclass(frozen=True)
class FormDocument:
    """A whole stored form: the tree plus presentation data carried verbatim."""

    tree: DocumentTree
    localizations: Dict[str, Any] = field(default_factory=dict)
    theme: Dict[str, Any] = field(default_factory=dict)

    def with_tree(self, tree: DocumentTree) -> "FormDocument":
        if tree is self.tree:
            return self
        return dataclasses.replace(self, tree=tree)


# ---------------------------------------------------------------------------
# Mutation primitives
# ---------------------------------------------------------------------------


def _stage(
    data: NodeData,
    existing: Mapping[str, Node],
    id_factory: IdFactory,
) -> Tuple[str, Dict[str, Node]]:
    """Turn node data into (id, new nodes) with ids that do not collide."""
    if isinstance(data, Node):
        node = data
        if not node.id or node.id in existing:
            if node.id:
                logger.warning("Node id %s already in tree; assigning a new id", node.id)
            node = dataclasses.replace(node, id=id_factory())
        return node.id, {node.id: node}

    staged: Dict[str, Node] = {}
    child_id = flatten_node(data, staged, id_factory, default_type=NodeType.BLOCK.value)
    if staged.keys() & existing.keys():
        logger.warning("Node data reuses ids already in the tree; assigning new ids")
        staged = {}
        child_id = flatten_node(
            data, staged, id_factory, default_type=NodeType.BLOCK.value, keep_ids=False
        )
    return child_id, staged


def add_child(
    tree: DocumentTree,
    parent_id: str,
    node_data: NodeData,
    id_factory: IdFactory = new_id,
    slot: ChildSlot = ChildSlot.NODES,
) -> DocumentTree:
    """
    Append a child to the node `parent_id`.

    Args:
        tree: Current snapshot
        parent_id: Id of the parent
        node_data: A Node, or a dict in document shape (may nest children)
        id_factory: Id source for nodes that carry none
        slot: Child list to append to

    Returns:
        New snapshot, or `tree` itself when the parent does not exist
    """
    parent = tree.nodes.get(parent_id)
    if parent is None:
        logger.debug("add_child: parent %s not found", parent_id)
        return tree

    child_id, staged = _stage(node_data, tree.nodes, id_factory)
    nodes = dict(tree.nodes)
    nodes.update(staged)
    nodes[parent_id] = dataclasses.replace(
        parent, children=parent.children + (ChildRef(child_id, slot, embedded=True),)
    )
    logger.debug("Added %s under %s", child_id, parent_id)
    return DocumentTree._owning(tree.root_id, nodes)


def _subtree_ids(nodes: Mapping[str, Node], node_id: str) -> Set[str]:
    found: Set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        if current in found or current not in nodes:
            continue
        found.add(current)
        stack.extend(ref.node_id for ref in nodes[current].children if ref.embedded)
    return found


def _convert_partial(key: str, value: Any) -> Tuple[str, Any]:
    attr = _PARTIAL_KEYS.get(key, key)
    if attr == "navigation_rules":
        value = tuple(
            r if isinstance(r, NavigationRule) else navigation_rule_from_dict(r) for r in value
        )
    elif attr == "validation_rules":
        value = tuple(
            r if not isinstance(r, Mapping) else validation_rule_from_dict(r) for r in value
        )
    elif attr == "children":
        value = tuple(value)
    return attr, value


def update_by_id(tree: DocumentTree, node_id: str, partial: Mapping[str, Any]) -> DocumentTree:
    """
    Merge `partial` onto the node `node_id`, keeping its id.

    `partial` may use Node attribute names (`field_name`) or document keys
    (`fieldName`, `navigationRules`, ...). A string `type` updates both the
    kind and the stored type string. `items` / `nodes` replace that child
    list; embedded children dropped by the replacement leave the tree.
    Unknown keys are merged into `extra`.

    Returns:
        New snapshot, or `tree` itself when the id is absent or nothing changed
    """
    node = tree.nodes.get(node_id)
    if node is None:
        logger.debug("update_by_id: %s not found", node_id)
        return tree

    changes: Dict[str, Any] = {}
    extra_updates: Dict[str, Any] = {}
    slot_updates: Dict[ChildSlot, List[Any]] = {}

    for key, value in partial.items():
        if key in ("id", "uuid"):
            continue
        if key == "type" and isinstance(value, str):
            changes["type"] = node_type_from_raw(value)
            changes["raw_type"] = value
            continue
        if key in (ChildSlot.ITEMS.value, ChildSlot.NODES.value):
            slot_updates[ChildSlot(key)] = list(value or [])
            continue
        attr, converted = _convert_partial(key, value)
        if attr in _NODE_ATTRS:
            changes[attr] = converted
        else:
            extra_updates[key] = value

    if extra_updates:
        changes["extra"] = {**node.extra, **extra_updates}

    nodes = dict(tree.nodes)
    if slot_updates:
        changes["children"] = _replace_slots(node, slot_updates, nodes)

    updated = dataclasses.replace(node, **changes)
    if updated == node and not slot_updates:
        return tree
    nodes[node_id] = updated
    return DocumentTree._owning(tree.root_id, nodes)


def _replace_slots(
    node: Node,
    slot_updates: Mapping[ChildSlot, List[Any]],
    nodes: Dict[str, Node],
) -> Tuple[ChildRef, ...]:
    """Swap whole child lists of `node`, editing `nodes` in place."""
    for slot in slot_updates:
        for ref in node.children:
            if ref.slot is slot and ref.embedded:
                for doomed in _subtree_ids(nodes, ref.node_id):
                    nodes.pop(doomed, None)

    children: List[ChildRef] = []
    for slot in (ChildSlot.ITEMS, ChildSlot.NODES):
        if slot not in slot_updates:
            children.extend(ref for ref in node.children if ref.slot is slot)
            continue
        for entry in slot_updates[slot]:
            if isinstance(entry, str):
                children.append(ChildRef(entry, slot, embedded=False))
                continue
            child_id, staged = _stage(entry, nodes, new_id)
            nodes.update(staged)
            children.append(ChildRef(child_id, slot, embedded=True))
    return tuple(children)


def remove_by_id(tree: DocumentTree, node_id: str) -> DocumentTree:
    """
    Remove a node, its subtree and every reference to them.

    References are dropped from both child lists at every level, whether
    embedded or bare. Navigation rules that target the removed node are
    left alone (see `DocumentTree.prune_dangling_rules`).

    Returns:
        New snapshot, or `tree` itself for an absent id or the root
    """
    if node_id not in tree.nodes:
        logger.debug("remove_by_id: %s not found", node_id)
        return tree
    if node_id == tree.root_id:
        logger.warning("remove_by_id: the root node cannot be removed")
        return tree

    removed = _subtree_ids(tree.nodes, node_id)
    nodes = {k: v for k, v in tree.nodes.items() if k not in removed}
    for parent_id, parent in list(nodes.items()):
        if any(ref.node_id in removed for ref in parent.children):
            nodes[parent_id] = dataclasses.replace(
                parent,
                children=tuple(ref for ref in parent.children if ref.node_id not in removed),
            )
    logger.debug("Removed %s (%d node(s))", node_id, len(removed))
    return DocumentTree._owning(tree.root_id, nodes)


__all__ = [
    "DanglingTarget",
    "DocumentFormatError",
    "DocumentTree",
    "FormDocument",
    "add_child",
    "remove_by_id",
    "update_by_id",
]
