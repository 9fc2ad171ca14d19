"""
bayestree/linear/conditional.py

Gaussian conditional  R x_F + S x_P = d  with R upper triangular.

Keys are frontals first, then parents, and blocks follow the same order, so
a GaussianConditional is also a JacobianFactor over all of its keys.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple

import numpy as np
import scipy.linalg

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys
from bayestree.linear.jacobian import JacobianFactor


@dataclass(frozen=True, eq=False)
class GaussianConditional(JacobianFactor):
    """
    Linear-Gaussian conditional density.

    Attributes:
        keys: Frontal keys followed by parent keys
        blocks: R blocks for frontals, S blocks for parents
        b: The right-hand side d
        nr_frontals: Number of leading frontal keys
    """
    nr_frontals: int = 1

    def __post_init__(self):
        super().__post_init__()
        if self.nr_frontals < 1 or self.nr_frontals > len(self.keys):
            raise ValueError(
                f"nr_frontals={self.nr_frontals} out of range for {len(self.keys)} keys"
            )
        R = self.R
        if R.shape[0] != R.shape[1]:
            raise ValueError(f"GaussianConditional R must be square, got {R.shape}")
        if not np.allclose(R, np.triu(R)):
            raise ValueError("GaussianConditional R must be upper triangular")

    @property
    def frontals(self) -> Tuple[Key, ...]:
        return self.keys[:self.nr_frontals]

    @property
    def parents(self) -> Tuple[Key, ...]:
        return self.keys[self.nr_frontals:]

    @property
    def R(self) -> np.ndarray:
        return np.hstack(self.blocks[:self.nr_frontals])

    @property
    def S(self) -> np.ndarray:
        if not self.parents:
            return np.zeros((self.rows, 0))
        return np.hstack(self.blocks[self.nr_frontals:])

    @property
    def d(self) -> np.ndarray:
        return self.b

    def to_factor(self) -> JacobianFactor:
        return JacobianFactor(self.keys, self.blocks, self.b)

    def rekey(self, mapping: Dict[Key, Key]) -> "GaussianConditional":
        return GaussianConditional(
            tuple(mapping[k] for k in self.keys), self.blocks, self.b, nr_frontals=self.nr_frontals
        )

    def solve(self, parent_values: Dict[Key, np.ndarray]) -> np.ndarray:
        """Stacked frontal solution x_F = R^-1 (d - S x_P)."""
        rhs = self.d.copy()
        for k, s in zip(self.parents, self.blocks[self.nr_frontals:]):
            rhs -= s @ np.atleast_1d(parent_values[k])
        return scipy.linalg.solve_triangular(self.R, rhs, lower=False)

    def covariance(self) -> np.ndarray:
        """
        Covariance (R^T R)^-1 of a parentless conditional.

        Raises:
            ValueError: If the conditional has parents
        """
        if self.parents:
            raise ValueError("covariance() is only defined for a conditional without parents")
        Rinv = scipy.linalg.solve_triangular(self.R, np.eye(self.R.shape[0]), lower=False)
        return Rinv @ Rinv.T

    def equals(self, other, tol: float = DEFAULT_TOL) -> bool:
        if not isinstance(other, GaussianConditional):
            return False
        return self.nr_frontals == other.nr_frontals and super().equals(other, tol)

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        frontals = format_keys(self.frontals, key_formatter)
        if self.parents:
            print(f"{s}p( {frontals} | {format_keys(self.parents, key_formatter)} ):")
        else:
            print(f"{s}p( {frontals} ):")
        for k, a in zip(self.keys, self.blocks):
            label = "R" if k in self.frontals else "S"
            print(f"  {label}[{key_formatter(k)}] =\n{a}")
        print(f"  d = {self.d}")
