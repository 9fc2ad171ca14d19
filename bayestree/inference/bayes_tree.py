"""
bayestree/inference/bayes_tree.py

Bayes tree: a forest of cliques indexed by frontal key.

The tree owns its root cliques (and through them every clique). It is the
caller of the clique algorithms: tree-wide counts, cache invalidation and
single-variable marginals.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

import networkx as nx

from bayestree.core.errors import MalformedTreeError
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys
from bayestree.inference.capability import Conditional, EliminateFunction
from bayestree.inference.clique import Clique, eliminate_reduced
from bayestree.inference.traversal import depth_first_preorder, path_to_root

logger = logging.getLogger(__name__)


class BayesTree:
    """
    Forest of cliques.

    Attributes:
        roots: Root cliques, one per connected component
        nodes: Frontal key -> clique holding it
    """

    def __init__(self):
        self.roots: List[Clique] = []
        self.nodes: Dict[Key, Clique] = {}

    def add_clique(self, conditional: Conditional, parent: Optional[Clique] = None) -> Clique:
        """
        Create a clique for conditional and attach it under parent (or as a new root).

        Raises:
            MalformedTreeError: If a frontal key is already in the tree, or the
                separator is not contained in the parent clique
        """
        frontals = tuple(conditional.frontals)
        duplicates = [k for k in frontals if k in self.nodes]
        if duplicates:
            raise MalformedTreeError(f"Frontal keys [{format_keys(duplicates)}] already in the tree")

        clique = Clique(conditional)
        if parent is None:
            if conditional.parents:
                raise MalformedTreeError(
                    f"Root clique must have an empty separator, got [{format_keys(conditional.parents)}]"
                )
            self.roots.append(clique)
        else:
            clique.check_separator(parent)
            parent.add_child(clique)

        for k in frontals:
            self.nodes[k] = clique
        return clique

    def clique(self, key: Key) -> Clique:
        """Clique whose frontal variables include key."""
        if key not in self.nodes:
            raise KeyError(f"Key {key} not in Bayes tree")
        return self.nodes[key]

    def __contains__(self, key: Key) -> bool:
        return key in self.nodes

    def __iter__(self) -> Iterator[Clique]:
        """All cliques, root by root, in preorder."""
        for root in self.roots:
            yield from depth_first_preorder(lambda c: c.children, root)

    def find_root(self, clique: Clique) -> Clique:
        """
        Root of the tree containing clique.

        Raises:
            MalformedTreeError: If a parent link on the way up has expired
        """
        return path_to_root(clique, _parent_of)[-1]

    # ------------------------------------------------------------------
    # Tree-wide queries
    # ------------------------------------------------------------------

    def size(self) -> int:
        return sum(root.tree_size() for root in self.roots)

    def num_cached_separator_marginals(self) -> int:
        return sum(root.num_cached_separator_marginals() for root in self.roots)

    def delete_cached_shortcuts(self) -> None:
        for root in self.roots:
            root.delete_cached_shortcuts()

    def marginal_factor(self, key: Key, eliminate: EliminateFunction) -> Conditional:
        """
        Marginal density of a single variable.

        Takes the joint over the clique holding key (separator marginal plus
        the clique's conditional) and eliminates everything else.
        """
        clique = self.clique(key)
        root = self.find_root(clique)
        p_C = clique.marginal2(root, eliminate)
        conditional, _ = eliminate_reduced(p_C, (key,), 1, eliminate)
        return conditional

    def remove_subtree(self, clique: Clique) -> List[Clique]:
        """
        Detach clique and its descendants from the tree.

        Ancestors keep their caches: shortcuts only depend on cliques closer
        to the root.

        Returns:
            The removed cliques, in preorder
        """
        removed = list(depth_first_preorder(lambda c: c.children, clique))
        if clique.is_root:
            self.roots = [r for r in self.roots if r is not clique]
        else:
            parent = clique.require_parent()
            parent.children = [c for c in parent.children if c is not clique]
            clique.set_parent(None)
        for c in removed:
            for k in c.frontals:
                if self.nodes.get(k) is c:
                    del self.nodes[k]
        logger.debug(f"removed subtree of {len(removed)} clique(s) at {clique!r}")
        return removed

    # ------------------------------------------------------------------
    # Structure checks and diagnostics
    # ------------------------------------------------------------------

    def to_networkx(self, key_formatter: KeyFormatter = default_key_formatter) -> nx.DiGraph:
        """
        Directed parent -> child graph of the forest.

        Nodes are clique ids (id()) with 'label', 'frontals', 'separator' and
        'cached' attributes.
        """
        g = nx.DiGraph()
        for clique in self:
            g.add_node(
                id(clique),
                label=format_keys(clique.frontals, key_formatter),
                frontals=clique.frontals,
                separator=clique.separator,
                cached=clique.cached_separator_marginal is not None,
            )
            for child in clique.children:
                g.add_edge(id(clique), id(child))
        return g

    def check_invariants(self) -> None:
        """
        Verify the forest shape, parent links, running intersection and key index.

        Raises:
            MalformedTreeError: On the first violation found
        """
        g = self.to_networkx()
        if g.number_of_nodes() and not nx.is_branching(g):
            raise MalformedTreeError("Bayes tree cliques do not form a forest")

        seen: Dict[Key, Clique] = {}
        for clique in self:
            for child in clique.children:
                if child.parent is not clique:
                    raise MalformedTreeError(f"Child {child!r} does not point back to {clique!r}")
                child.check_separator(clique)
            for k in clique.frontals:
                if k in seen:
                    raise MalformedTreeError(f"Key {k} is frontal in more than one clique")
                seen[k] = clique
                if self.nodes.get(k) is not clique:
                    raise MalformedTreeError(f"Key index is stale for key {k}")
        if len(seen) != len(self.nodes):
            raise MalformedTreeError("Key index holds keys of removed cliques")

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(f"{s}: cliques: {self.size()}, variables: {len(self.nodes)}")
        for root in self.roots:
            stack = [(root, 0)]
            while stack:
                clique, depth = stack.pop()
                clique.print("  " * depth + "- ", key_formatter)
                stack.extend((c, depth + 1) for c in reversed(clique.children))

    def __repr__(self) -> str:
        return f"BayesTree(roots={len(self.roots)}, cliques={self.size()}, variables={len(self.nodes)})"


def _parent_of(clique: Clique) -> Optional[Clique]:
    return None if clique.is_root else clique.require_parent()
