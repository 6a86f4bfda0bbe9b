"""Removal of ancestor-level duplicates among text changes.

When a leaf's text changes, every ancestor whose text aggregates it changes
too. This pass keeps the most specific record and drops the aggregates.

The ancestor test is string containment on normalized selectors, not real
tree ancestry. ``.item`` is treated as an ancestor of ``.item-wrapper``, and
two selectors that share no text are never related even when the elements
are nested.
"""

import re

import structlog

from .models import ChangeRecord, ChangeType

logger = structlog.get_logger()

_INDEXED_PSEUDO_RE = re.compile(r":nth-(?:child|of-type|last-child|last-of-type)\([^)]*\)")
_WHITESPACE_RE = re.compile(r"\s+")

# Leaf pass only considers short texts; long prose produces spurious containment.
LEAF_TEXT_MAX_LENGTH = 60


def normalize_selector(selector: str | None) -> str:
    """Strip indexed pseudo-classes and collapse whitespace."""
    if not selector:
        return ""
    without_index = _INDEXED_PSEUDO_RE.sub("", selector)
    return _WHITESPACE_RE.sub(" ", without_index).strip()


def is_selector_ancestor(ancestor: str | None, descendant: str | None) -> bool:
    """Heuristic ancestor test on normalized selectors."""
    a = normalize_selector(ancestor)
    b = normalize_selector(descendant)
    if not a:
        return False
    return a in b or b.startswith(a + ">") or b.startswith(a + " ")


def _texts(change: ChangeRecord) -> tuple[str, str]:
    return change.old_value or "", change.new_value or ""


def _is_aggregate_of(outer: ChangeRecord, inner: ChangeRecord) -> bool:
    outer_old, outer_new = _texts(outer)
    inner_old, inner_new = _texts(inner)
    return (
        inner_old in outer_old
        and inner_new in outer_new
        and (len(outer_old) > len(inner_old) or len(outer_new) > len(inner_new))
    )


def _contains_leaf(outer: ChangeRecord, leaf: ChangeRecord) -> bool:
    outer_old, outer_new = _texts(outer)
    leaf_old, leaf_new = _texts(leaf)
    if not leaf_old or not leaf_new or len(leaf_old) > LEAF_TEXT_MAX_LENGTH:
        return False
    return leaf_old in outer_old and len(outer_old) > len(leaf_old) and leaf_new in outer_new


def prune_ancestor_duplicates(changes: list[ChangeRecord]) -> list[ChangeRecord]:
    """Drop text changes that aggregate a more specific text change.

    Non-text records are passed through untouched and in order. Running the
    pass on its own output removes nothing further.

    Args:
        changes: Records from one detection run

    Returns:
        New list without the redundant ancestor records
    """
    text_changes = [c for c in changes if c.change_type == ChangeType.TEXT]
    if len(text_changes) < 2:
        return list(changes)

    pruned: set[int] = set()

    # Selector-related pairs
    for i, first in enumerate(text_changes):
        for j, second in enumerate(text_changes):
            if i == j:
                continue
            if is_selector_ancestor(first.element, second.element) and _is_aggregate_of(first, second):
                pruned.add(i)

    # Leaf pass over survivors, regardless of selectors
    survivors = [i for i in range(len(text_changes)) if i not in pruned]
    leaf_pruned: set[int] = set()
    for i in survivors:
        for j in survivors:
            if i != j and _contains_leaf(text_changes[j], text_changes[i]):
                leaf_pruned.add(j)
    pruned |= leaf_pruned

    if not pruned:
        return list(changes)

    removed = {id(text_changes[i]) for i in pruned}
    logger.info(
        "Pruned ancestor duplicate text changes",
        pruned=len(pruned),
        remaining=len(changes) - len(pruned),
    )
    return [c for c in changes if id(c) not in removed]
