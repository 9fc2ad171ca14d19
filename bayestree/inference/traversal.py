"""
bayestree/inference/traversal.py

Explicit-stack traversals over cliques.

Bayes trees of long trajectories can be thousands of cliques deep, so none
of these use native recursion.
"""

from __future__ import annotations

from typing import Callable, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


def depth_first_preorder(
    after: Callable[[T], Iterable[T]], root: Optional[T]
) -> Iterator[T]:
    """
    Depth-first preorder traversal, parents before children, left to right.

    Args:
        after: Returns the children to descend into; returning nothing prunes
        root: Node to start from; None yields nothing

    Yields:
        Each reached node once
    """
    if root is None:
        return
    stack: List[T] = [root]
    while stack:
        current = stack.pop()
        yield current
        # Reverse so the first child is visited first
        stack.extend(reversed(list(after(current))))


def path_to_root(node: T, up: Callable[[T], Optional[T]]) -> List[T]:
    """Nodes from node (inclusive) up to the root (inclusive)."""
    path = [node]
    current = up(node)
    while current is not None:
        path.append(current)
        current = up(current)
    return path
