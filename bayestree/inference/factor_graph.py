"""
bayestree/inference/factor_graph.py

Ordered collection of factors.

A FactorGraph is the currency passed between cliques and elimination
capabilities: separator marginals, shortcuts and clique joints are all
factor graphs. An empty graph is a valid value (the marginal over an empty
separator) and is distinct from "no graph".
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter


class FactorGraph:
    """
    Insertion-ordered list of factors.

    Factors only need the `keys` attribute and `equals`/`print` methods of
    the Factor protocol.
    """

    def __init__(self, factors: Iterable = ()):
        self.factors: List = list(factors)

    def push_back(self, factor) -> None:
        """Append a single factor."""
        self.factors.append(factor)

    def push_back_all(self, factors: Iterable) -> None:
        """Append every factor of another graph or iterable."""
        self.factors.extend(factors)

    def keys(self) -> Tuple[Key, ...]:
        """Sorted, de-duplicated keys of all factors."""
        out = set()
        for f in self.factors:
            out.update(f.keys)
        return tuple(sorted(out))

    def copy(self) -> "FactorGraph":
        """Shallow copy; factors are shared."""
        return FactorGraph(self.factors)

    def size(self) -> int:
        return len(self.factors)

    def empty(self) -> bool:
        return not self.factors

    def equals(self, other: "FactorGraph", tol: float = DEFAULT_TOL) -> bool:
        """Element-wise equality with tolerance."""
        if len(self.factors) != len(other.factors):
            return False
        return all(a.equals(b, tol) for a, b in zip(self.factors, other.factors))

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(f"{s}size: {len(self.factors)}")
        for i, f in enumerate(self.factors):
            f.print(f"factor {i}: ", key_formatter)

    def __len__(self) -> int:
        return len(self.factors)

    def __iter__(self) -> Iterator:
        return iter(self.factors)

    def __getitem__(self, i):
        return self.factors[i]

    def __repr__(self) -> str:
        return f"FactorGraph(factors={len(self.factors)}, keys={len(self.keys())})"
