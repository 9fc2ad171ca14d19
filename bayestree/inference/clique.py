"""
bayestree/inference/clique.py

Clique of a Bayes tree and the recursive algorithms over it.

Each clique holds a conditional P(F|S) over its frontal variables F given
its separator S, a weak link to its parent and owned links to its children.
The separator marginal P(S) relative to a reference clique R (normally the
root) is computed on demand from the parent:

    P(S) = \\int P(Fp|Sp) P(Sp)   over everything in the parent not in S

and cached on every clique along the path, so later requests on that path
or on siblings are cache hits. delete_cached_shortcuts walks top-down and
stops wherever a cache is absent: a request always fills the whole chain up
to R, so no clique below an empty cache can hold one that passed through it.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import List, Optional, Sequence, Tuple

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.errors import EliminationError, MalformedTreeError, ReductionError
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys
from bayestree.core.reduction import KeyReduction
from bayestree.inference.capability import Conditional, EliminateFunction
from bayestree.inference.factor_graph import FactorGraph
from bayestree.inference.traversal import depth_first_preorder

logger = logging.getLogger(__name__)


class Clique:
    """
    A node of a Bayes tree.

    Attributes:
        conditional: P(frontals | separator); None only for a placeholder
        children: Owned child cliques, in insertion order
        cached_separator_marginal: P(separator) relative to the reference
            clique, or None when not computed
    """

    def __init__(self, conditional: Optional[Conditional] = None, parent: Optional["Clique"] = None):
        self.conditional = conditional
        self.children: List[Clique] = []
        self.cached_separator_marginal: Optional[FactorGraph] = None
        self._parent: Optional[weakref.ReferenceType] = None
        self._lock = threading.RLock()
        if parent is not None:
            parent.add_child(self)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def frontals(self) -> Tuple[Key, ...]:
        if self.conditional is None:
            return ()
        return tuple(self.conditional.frontals)

    @property
    def separator(self) -> Tuple[Key, ...]:
        if self.conditional is None:
            return ()
        return tuple(self.conditional.parents)

    def keys(self) -> Tuple[Key, ...]:
        """Frontal keys followed by separator keys."""
        return self.frontals + self.separator

    @property
    def parent(self) -> Optional["Clique"]:
        """The parent clique, or None for a root or an expired link."""
        if self._parent is None:
            return None
        return self._parent()

    @property
    def is_root(self) -> bool:
        return self._parent is None

    def set_parent(self, parent: Optional["Clique"]) -> None:
        self._parent = weakref.ref(parent) if parent is not None else None

    def require_parent(self) -> "Clique":
        """
        Resolve the parent link of a non-root clique.

        Raises:
            MalformedTreeError: If the clique has no parent or the parent is gone
        """
        if self._parent is None:
            raise MalformedTreeError(f"Clique {self!r} has no parent but is not the reference clique")
        parent = self._parent()
        if parent is None:
            raise MalformedTreeError(f"Parent of clique {self!r} no longer exists")
        return parent

    def add_child(self, child: "Clique") -> None:
        """Append child and point its parent link here."""
        self.children.append(child)
        child.set_parent(self)

    def check_separator(self, parent: "Clique") -> None:
        """
        Running intersection: the separator must lie inside the parent clique.

        Raises:
            MalformedTreeError: If a separator key is missing from the parent
        """
        parent_keys = set(parent.keys())
        missing = [k for k in self.separator if k not in parent_keys]
        if missing:
            raise MalformedTreeError(
                f"Separator keys {tuple(missing)} of clique {self!r} are not in parent clique {parent!r}"
            )

    # ------------------------------------------------------------------
    # Equality and diagnostics
    # ------------------------------------------------------------------

    def equals(self, other: "Clique", tol: float = DEFAULT_TOL) -> bool:
        """Compare conditionals only; tree structure is ignored."""
        if self.conditional is None or other.conditional is None:
            return self.conditional is None and other.conditional is None
        return self.conditional.equals(other.conditional, tol)

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        if self.conditional is None:
            print(s)
            return
        self.conditional.print(s, key_formatter)

    def __repr__(self) -> str:
        return f"Clique(frontals=[{format_keys(self.frontals)}], separator=[{format_keys(self.separator)}])"

    # ------------------------------------------------------------------
    # Counting
    # ------------------------------------------------------------------

    def tree_size(self) -> int:
        """Number of cliques in the subtree rooted here."""
        return sum(1 for _ in depth_first_preorder(_children, self))

    def num_cached_separator_marginals(self) -> int:
        """
        Count cached separator marginals in this subtree.

        Returns 0 without visiting children when this clique has no cache;
        otherwise 1 plus the same count over each child.
        """
        count = 0
        for clique in depth_first_preorder(_cached_children, self):
            if clique.cached_separator_marginal is not None:
                count += 1
        return count

    # ------------------------------------------------------------------
    # Separator marginal
    # ------------------------------------------------------------------

    def separator_marginal(self, root: "Clique", eliminate: EliminateFunction) -> FactorGraph:
        """
        Marginal P(S) over this clique's separator relative to root.

        Fills the cache on this clique and on every clique between it and
        root that was not cached yet.

        Args:
            root: Reference clique, an ancestor of this clique (or itself)
            eliminate: Elimination capability used on cache misses

        Returns:
            Factor graph over the separator; its first factor is a conditional
            whose frontals are exactly self.separator. Empty for root.

        Raises:
            MalformedTreeError: If the path to root is broken, including when
                root is not an ancestor of this clique
            EliminationError: If eliminate reports failure
        """
        # Walk up to the first clique whose marginal is known
        path: List[Clique] = []
        clique = self
        while True:
            with clique._lock:
                cached = clique.cached_separator_marginal
                if cached is None and clique is root:
                    cached = FactorGraph()
                    clique.cached_separator_marginal = cached
            if cached is not None:
                break
            parent = clique.require_parent()
            if not clique.separator:
                # Nothing to marginalize onto, but the link above must exist
                with clique._lock:
                    if clique.cached_separator_marginal is None:
                        clique.cached_separator_marginal = FactorGraph()
                    cached = clique.cached_separator_marginal
                break
            path.append(clique)
            clique = parent

        if not path:
            logger.debug(f"separator marginal cache hit at {self!r}")
            return cached

        logger.debug(f"separator marginal cache miss at {self!r}, computing {len(path)} clique(s)")

        # Compute downward, closest-to-root first
        p_Sp = cached
        for clique in reversed(path):
            with clique._lock:
                if clique.cached_separator_marginal is None:
                    parent = clique.require_parent()
                    clique.check_separator(parent)
                    clique.cached_separator_marginal = clique._marginalize_from_parent(p_Sp, parent, eliminate)
                p_Sp = clique.cached_separator_marginal
        return p_Sp

    def _marginalize_from_parent(
        self,
        p_Sp: FactorGraph,
        parent: "Clique",
        eliminate: EliminateFunction,
    ) -> FactorGraph:
        """P(S) = \\int P(Fp|Sp) P(Sp), eliminating everything but S."""
        p_Cp = p_Sp.copy()
        p_Cp.push_back(parent.conditional.to_factor())

        indices_S = self.separator
        conditional, remaining = eliminate_reduced(p_Cp, indices_S, len(indices_S), eliminate)

        if tuple(conditional.frontals) != indices_S:
            raise ReductionError(
                f"Marginal frontals [{format_keys(conditional.frontals)}] do not match "
                f"separator [{format_keys(indices_S)}] of {self!r}"
            )

        marginal = FactorGraph([conditional])
        marginal.push_back_all(f for f in remaining if f.keys)
        return marginal

    def marginal2(self, root: "Clique", eliminate: EliminateFunction) -> FactorGraph:
        """
        Joint P(F, S) over this clique's variables relative to root.

        Separator marginal followed by this clique's own conditional.
        """
        p_C = self.separator_marginal(root, eliminate).copy()
        p_C.push_back(self.conditional.to_factor())
        return p_C

    # ------------------------------------------------------------------
    # Shortcut
    # ------------------------------------------------------------------

    def separator_setminus_b(self, B: "Clique") -> Tuple[Key, ...]:
        """Separator keys that are not variables of clique B, in separator order."""
        keys_B = set(B.keys())
        return tuple(k for k in self.separator if k not in keys_B)

    def shortcut(self, B: "Clique", eliminate: EliminateFunction) -> FactorGraph:
        """
        Conditional P(S \\ B | B) of this clique's separator given clique B.

        B must be an ancestor. Not cached. Empty when this clique is B or
        when the whole separator lies in B.

        Raises:
            MalformedTreeError: If the path to B is broken
            EliminationError: If eliminate reports failure
        """
        # Cliques from here up to (excluding) the first one needing no shortcut
        path: List[Clique] = []
        clique = self
        while clique is not B and clique.separator_setminus_b(B):
            path.append(clique)
            clique = clique.require_parent()

        p_Sp_B = FactorGraph()
        keys_B = B.keys()
        for clique in reversed(path):
            parent = clique.require_parent()
            clique.check_separator(parent)

            p_Cp_B = p_Sp_B.copy()
            p_Cp_B.push_back(parent.conditional.to_factor())

            all_keys = set(p_Cp_B.keys())
            S_setminus_B = tuple(k for k in clique.separator_setminus_b(B) if k in all_keys)
            keep = S_setminus_B + tuple(k for k in keys_B if k in all_keys)

            conditional, _ = eliminate_reduced(p_Cp_B, keep, len(S_setminus_B), eliminate)
            p_Sp_B = FactorGraph([conditional])
        return p_Sp_B

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def delete_cached_shortcuts(self) -> None:
        """
        Clear cached separator marginals in this subtree.

        Descends only through cliques that hold a cache.
        """
        # Collect first: clearing a cache while traversing would prune its children
        cached = list(depth_first_preorder(_cached_children, self))
        cleared = 0
        for clique in cached:
            with clique._lock:
                if clique.cached_separator_marginal is not None:
                    clique.cached_separator_marginal = None
                    cleared += 1
        if cleared:
            logger.debug(f"cleared {cleared} cached separator marginal(s) below {self!r}")


def _children(clique: Clique) -> List[Clique]:
    return clique.children


def _cached_children(clique: Clique) -> Sequence[Clique]:
    if clique.cached_separator_marginal is None:
        return ()
    return clique.children


def eliminate_reduced(
    graph: FactorGraph,
    keep: Sequence[Key],
    nr_frontals: int,
    eliminate: EliminateFunction,
):
    """
    Run eliminate on a graph renumbered to compact keys and map the result back.

    Returns:
        (conditional, remaining) with original keys

    Raises:
        EliminationError: If eliminate reports failure; its keys are the
            requested keep keys in original numbering
    """
    reduction = KeyReduction.build(graph.keys())
    reduced = FactorGraph(reduction.reduce(f) for f in graph)
    reduced_keep = reduction.reduce_keys(keep)

    result = eliminate(reduced, reduced_keep, nr_frontals)
    if not result.ok:
        logger.debug(f"elimination failed onto [{format_keys(keep)}]: {result.reason}")
        raise EliminationError(result.reason, tuple(keep))
    conditional, remaining = result.unwrap()

    conditional = reduction.restore(conditional)
    remaining = FactorGraph(reduction.restore(f) for f in remaining)

    restored_keys = tuple(conditional.frontals) + tuple(conditional.parents)
    if not set(restored_keys) <= set(keep):
        raise ReductionError(
            f"Restored conditional keys [{format_keys(restored_keys)}] escape keep [{format_keys(keep)}]"
        )
    return conditional, remaining
