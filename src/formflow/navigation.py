"""
Navigation resolution: which node comes after the current block.

A block's navigation rules are scanned in list order and the first rule
whose condition holds decides the next node:

    rules = (
        NavigationRule(target="adult-page", condition=parse('age >= "18"'), is_page=True),
        NavigationRule(target="submit", is_default=True),
    )
    resolve_next(rules, {"age": 20}).target   # "adult-page"

IMPORTANT:
    - Order is authoritative. Default rules are NOT moved to the end;
      `is_default` only makes the condition always true.
    - Without a tree, targets are returned as written (even dangling ones).
    - With a tree, a rule whose target is missing from it is skipped with a
      warning, and scanning continues with the next rule.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Tuple

from formflow.conditions import evaluate
from formflow.debug import resolve_logger
from formflow.model import SUBMIT, NavigationRule
from formflow.tree import DocumentTree


@dataclass(frozen=True)
class NavigationResult:
    """
    Outcome of resolving a rule list.

    Properties:
        matched: A rule matched
        target: Next node id, "submit", or None
        is_page: Target is a page
        terminal: Target is "submit"
        rule_index: Index of the matching rule; None for no match or for a
            sequential fallback produced by `step`
        skipped_targets: Dangling targets passed over during the scan
    """

    matched: bool
    target: Optional[str] = None
    is_page: bool = False
    terminal: bool = False
    rule_index: Optional[int] = None
    skipped_targets: Tuple[str, ...] = ()

    @classmethod
    def no_match(cls, skipped_targets: Tuple[str, ...] = ()) -> "NavigationResult":
        return cls(matched=False, skipped_targets=skipped_targets)


class NavigationEngine:
    """
    Resolves navigation for one tree snapshot (or for bare rule lists).

    Args:
        tree: Snapshot used to check targets; None disables the check
        logger: Injected logger (defaults to this module's logger)
    """

    def __init__(self, tree: Optional[DocumentTree] = None, logger: Optional[logging.Logger] = None):
        self.tree = tree
        self.logger = resolve_logger(logger, __name__)

    def _holds(self, rule: NavigationRule, index: int, context: Mapping[str, Any]) -> bool:
        try:
            return evaluate(rule.effective_condition, context)
        except Exception:
            self.logger.exception(
                "Navigation rule %d (target %s) failed to evaluate; treated as no match",
                index, rule.target,
            )
            return False

    def _resolves(self, target: str) -> bool:
        return self.tree is None or target == SUBMIT or target in self.tree

    def resolve(self, rules: Sequence[NavigationRule], context: Mapping[str, Any]) -> NavigationResult:
        skipped = []
        for index, rule in enumerate(rules):
            if not self._holds(rule, index, context):
                continue
            if not self._resolves(rule.target):
                self.logger.warning(
                    "Navigation rule %d targets missing node %r; skipping", index, rule.target
                )
                skipped.append(rule.target)
                continue
            self.logger.debug("Navigation rule %d matched -> %s", index, rule.target)
            return NavigationResult(
                matched=True,
                target=rule.target,
                is_page=rule.is_page,
                terminal=rule.is_terminal,
                rule_index=index,
                skipped_targets=tuple(skipped),
            )
        return NavigationResult.no_match(tuple(skipped))

    def _require_tree(self) -> DocumentTree:
        if self.tree is None:
            raise ValueError("This operation needs a NavigationEngine built with a tree")
        return self.tree

    def resolve_for_block(self, block_id: str, context: Mapping[str, Any]) -> NavigationResult:
        """Resolve the rules of one block of the tree; unknown blocks never match."""
        node = self._require_tree().get(block_id)
        if node is None:
            self.logger.debug("resolve_for_block: %s not found", block_id)
            return NavigationResult.no_match()
        return self.resolve(node.navigation_rules, context)

    def next_in_sequence(self, block_id: str) -> Optional[str]:
        """
        Id of the block after `block_id` in document order.

        Returns "submit" after the last block, None when `block_id` is not a
        block of the tree.
        """
        block_ids = [b.id for b in self._require_tree().blocks()]
        if block_id not in block_ids:
            return None
        position = block_ids.index(block_id)
        if position + 1 < len(block_ids):
            return block_ids[position + 1]
        return SUBMIT

    def step(self, block_id: str, context: Mapping[str, Any]) -> NavigationResult:
        """Rule resolution, falling back to the next block in sequence."""
        result = self.resolve_for_block(block_id, context)
        if result.matched:
            return result
        following = self.next_in_sequence(block_id)
        if following is None:
            return result
        return NavigationResult(
            matched=False,
            target=following,
            terminal=following == SUBMIT,
            skipped_targets=result.skipped_targets,
        )


def resolve_next(
    rules: Sequence[NavigationRule],
    context: Mapping[str, Any],
    tree: Optional[DocumentTree] = None,
    logger: Optional[logging.Logger] = None,
) -> NavigationResult:
    """First rule, in list order, whose condition holds for `context`."""
    return NavigationEngine(tree, logger).resolve(rules, context)


def resolve_for_block(
    tree: DocumentTree,
    block_id: str,
    context: Mapping[str, Any],
    logger: Optional[logging.Logger] = None,
) -> NavigationResult:
    return NavigationEngine(tree, logger).resolve_for_block(block_id, context)


def next_in_sequence(tree: DocumentTree, block_id: str) -> Optional[str]:
    return NavigationEngine(tree).next_in_sequence(block_id)


def step(
    tree: DocumentTree,
    block_id: str,
    context: Mapping[str, Any],
    logger: Optional[logging.Logger] = None,
) -> NavigationResult:
    return NavigationEngine(tree, logger).step(block_id, context)
