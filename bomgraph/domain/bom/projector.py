"""
BOM Domain - Tree Projector.

Turns a tree plus a caller-owned set of expanded line ids into the ordered
list of visible lines. Every function here is pure; expansion state is a
plain ``frozenset`` that callers keep wherever they like.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, FrozenSet, Iterable, List, Optional, Sequence, Union

from .entities import BOMComponentNode
from .tree import BOMTree, build_tree


@dataclass(frozen=True)
class VisibleNode:
    index: int  # Position in the projected list
    node: BOMComponentNode
    depth: int  # Distance from the root, independent of the configured root level
    has_children: bool
    is_expanded: bool

    @property
    def id(self) -> str:
        return self.node.id


TreeSource = Union[BOMTree, Iterable[BOMComponentNode]]


def _as_tree(source: TreeSource) -> BOMTree:
    if isinstance(source, BOMTree):
        return source
    return build_tree(source, include_inactive_items=True)


def project(source: TreeSource, expanded_ids: AbstractSet[str] = frozenset()) -> List[VisibleNode]:
    """
    Depth-first pre-order list of visible lines.

    A line is visible when it is a root or every ancestor is expanded, so
    ``project(tree, frozenset())`` yields the roots only. Expanded ids that
    are not in the tree are ignored.
    """
    tree = _as_tree(source)
    visible: List[VisibleNode] = []
    stack = [(i, 0) for i in reversed(tree.roots)]
    while stack:
        position, depth = stack.pop()
        node = tree.nodes[position]
        kids = tree.children[position]
        expanded = node.id in expanded_ids
        visible.append(VisibleNode(len(visible), node, depth, bool(kids), expanded and bool(kids)))
        if expanded:
            stack.extend((k, depth + 1) for k in reversed(kids))
    return visible


# =============================================================================
# EXPANSION STATE
# =============================================================================

def expand_all(source: TreeSource) -> FrozenSet[str]:
    """Every line that has children."""
    tree = _as_tree(source)
    return frozenset(n.id for i, n in enumerate(tree.nodes) if tree.children[i])


def collapse_all() -> FrozenSet[str]:
    return frozenset()


def expand_to_level(source: TreeSource, level: int) -> FrozenSet[str]:
    """Every line with ``level <= level``, so lines one level deeper become visible."""
    tree = _as_tree(source)
    return frozenset(n.id for n in tree.nodes if n.level <= level)


def expand(expanded_ids: AbstractSet[str], node_id: str) -> FrozenSet[str]:
    return frozenset(expanded_ids) | {node_id}


def collapse(source: TreeSource, expanded_ids: AbstractSet[str], node_id: str) -> FrozenSet[str]:
    """Collapse ``node_id`` and forget the expansion of everything below it."""
    tree = _as_tree(source)
    removed = {node_id} | {n.id for n in tree.descendants_of(node_id)}
    return frozenset(expanded_ids) - removed


def toggle(source: TreeSource, expanded_ids: AbstractSet[str], node_id: str) -> FrozenSet[str]:
    if node_id in expanded_ids:
        return collapse(source, expanded_ids, node_id)
    return expand(expanded_ids, node_id)


# =============================================================================
# KEYBOARD NAVIGATION
# =============================================================================

class FocusMove(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    HOME = "HOME"
    END = "END"
    PARENT = "PARENT"


def move_focus(
    visible: Sequence[VisibleNode],
    current_id: Optional[str],
    move: FocusMove,
) -> Optional[VisibleNode]:
    """
    Next focused line in a projected list. UP and DOWN stop at the edges;
    with no current focus, UP/DOWN/PARENT behave like HOME.
    """
    if not visible:
        return None
    move = FocusMove(move)
    if move is FocusMove.HOME:
        return visible[0]
    if move is FocusMove.END:
        return visible[-1]

    current = next((v for v in visible if v.id == current_id), None)
    if current is None:
        return visible[0]

    if move is FocusMove.UP:
        return visible[max(current.index - 1, 0)]
    if move is FocusMove.DOWN:
        return visible[min(current.index + 1, len(visible) - 1)]

    parent_id = current.node.parent_id
    if current.depth == 0 or parent_id is None:
        return current
    return next((v for v in visible[:current.index] if v.id == parent_id), current)
