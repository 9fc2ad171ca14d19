"""
bayestree/discrete/conditional.py

Discrete conditional P(F|S) as a normalized table.

Keys are ordered frontals first, then parents. For every parent assignment
the table sums to one over the frontal axes; assignments with zero mass keep
an all-zero slice.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys
from bayestree.discrete.factor import DiscreteFactor


def normalize_frontals(table: np.ndarray, nr_frontals: int) -> np.ndarray:
    """Normalize over the leading nr_frontals axes; zero sums are left as zeros."""
    axes = tuple(range(nr_frontals))
    s = np.sum(table, axis=axes, keepdims=True)
    s = np.where(s == 0.0, 1.0, s)
    return table / s


@dataclass(frozen=True, eq=False)
class DiscreteConditional(DiscreteFactor):
    """
    Conditional table P(frontals | parents).

    Attributes:
        keys: Frontal keys followed by parent keys
        table: Table in keys order, normalized over the frontal axes
        nr_frontals: Number of leading frontal keys
    """
    nr_frontals: int = 1

    def __post_init__(self):
        super().__post_init__()
        if self.nr_frontals < 0 or self.nr_frontals > len(self.keys):
            raise ValueError(
                f"nr_frontals={self.nr_frontals} out of range for {len(self.keys)} keys"
            )

    @staticmethod
    def from_factor(factor: DiscreteFactor, frontals: Sequence[Key]) -> "DiscreteConditional":
        """
        Condition a factor on everything that is not a frontal key.

        Args:
            factor: Unnormalized joint table
            frontals: Frontal keys, in the order they should appear
        """
        frontals = tuple(frontals)
        parents = tuple(k for k in factor.keys if k not in frontals)
        aligned = factor.align(frontals + parents)
        return DiscreteConditional(
            aligned.keys,
            normalize_frontals(aligned.table, len(frontals)),
            nr_frontals=len(frontals),
        )

    @staticmethod
    def from_table(
        frontals: Sequence[Key],
        parents: Sequence[Key],
        table,
    ) -> "DiscreteConditional":
        """Build from a raw table laid out frontals first, normalizing it."""
        keys = tuple(frontals) + tuple(parents)
        data = np.asarray(table, dtype=np.float64)
        return DiscreteConditional(keys, normalize_frontals(data, len(frontals)), nr_frontals=len(frontals))

    @property
    def frontals(self) -> Tuple[Key, ...]:
        return self.keys[:self.nr_frontals]

    @property
    def parents(self) -> Tuple[Key, ...]:
        return self.keys[self.nr_frontals:]

    def to_factor(self) -> DiscreteFactor:
        return DiscreteFactor(self.keys, self.table)

    def rekey(self, mapping: Dict[Key, Key]) -> "DiscreteConditional":
        return DiscreteConditional(
            tuple(mapping[k] for k in self.keys), self.table, nr_frontals=self.nr_frontals
        )

    def equals(self, other, tol: float = DEFAULT_TOL) -> bool:
        if not isinstance(other, DiscreteConditional):
            return False
        return self.nr_frontals == other.nr_frontals and super().equals(other, tol)

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        frontals = format_keys(self.frontals, key_formatter)
        if self.parents:
            print(f"{s}P( {frontals} | {format_keys(self.parents, key_formatter)} ):")
        else:
            print(f"{s}P( {frontals} ):")
        print(self.table)
