"""
bayestree/linear/jacobian.py

Whitened linear factors  0.5 * || sum_j A_j x_j - b ||^2.

Each key owns one column block; all blocks share the factor's rows. Noise
is folded into A and b at construction time (prior/between divide by the
standard deviations), so the factor itself is always unit-weighted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys


def _as_matrix(block) -> np.ndarray:
    m = np.asarray(block, dtype=np.float64)
    if m.ndim == 1:
        m = m.reshape(-1, 1)
    if m.ndim != 2:
        raise ValueError(f"Jacobian block must be 2-D, got shape {m.shape}")
    return m


@dataclass(frozen=True, eq=False)
class JacobianFactor:
    """
    Linear factor over an ordered tuple of keys.

    Attributes:
        keys: Ordered keys, one column block each
        blocks: Column blocks A_j, each (rows x dim_j)
        b: Right-hand side, shape (rows,)
    """
    keys: Tuple[Key, ...]
    blocks: Tuple[np.ndarray, ...]
    b: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(int(k) for k in self.keys))
        object.__setattr__(self, "blocks", tuple(_as_matrix(a) for a in self.blocks))
        object.__setattr__(self, "b", np.asarray(self.b, dtype=np.float64).reshape(-1))
        if len(self.keys) != len(self.blocks):
            raise ValueError(
                f"JacobianFactor keys/blocks mismatch: {len(self.keys)} keys but {len(self.blocks)} blocks"
            )
        if len(set(self.keys)) != len(self.keys):
            raise ValueError(f"JacobianFactor has duplicate keys: {self.keys}")
        for k, a in zip(self.keys, self.blocks):
            if a.shape[0] != self.b.shape[0]:
                raise ValueError(
                    f"JacobianFactor block for key {k} has {a.shape[0]} rows, b has {self.b.shape[0]}"
                )

    @staticmethod
    def prior(key: Key, mean, sigmas) -> "JacobianFactor":
        """Prior x ~ N(mean, diag(sigmas^2)) on one key."""
        mean = np.atleast_1d(np.asarray(mean, dtype=np.float64))
        sigmas = np.broadcast_to(np.asarray(sigmas, dtype=np.float64), mean.shape)
        return JacobianFactor((key,), (np.diag(1.0 / sigmas),), mean / sigmas)

    @staticmethod
    def between(key1: Key, key2: Key, delta, sigmas) -> "JacobianFactor":
        """Relative measurement x2 - x1 ~ N(delta, diag(sigmas^2))."""
        delta = np.atleast_1d(np.asarray(delta, dtype=np.float64))
        sigmas = np.broadcast_to(np.asarray(sigmas, dtype=np.float64), delta.shape)
        W = np.diag(1.0 / sigmas)
        return JacobianFactor((key1, key2), (-W, W), delta / sigmas)

    @property
    def rows(self) -> int:
        return self.b.shape[0]

    @property
    def dims(self) -> Dict[Key, int]:
        return {k: a.shape[1] for k, a in zip(self.keys, self.blocks)}

    def block(self, key: Key) -> np.ndarray:
        return self.blocks[self.keys.index(key)]

    def rekey(self, mapping: Dict[Key, Key]) -> "JacobianFactor":
        return JacobianFactor(tuple(mapping[k] for k in self.keys), self.blocks, self.b)

    def augmented(self, ordering: Sequence[Key], dims: Dict[Key, int]) -> np.ndarray:
        """Dense [A | b] with column blocks laid out in ordering."""
        offsets = column_offsets(ordering, dims)
        Ab = np.zeros((self.rows, offsets[-1] + 1))
        for k, a in zip(self.keys, self.blocks):
            j = ordering.index(k)
            Ab[:, offsets[j]:offsets[j + 1]] = a
        Ab[:, -1] = self.b
        return Ab

    def information(self, ordering: Optional[Sequence[Key]] = None) -> Tuple[np.ndarray, np.ndarray]:
        """Dense information matrix A^T A and vector A^T b over ordering (default: keys)."""
        ordering = list(self.keys) if ordering is None else list(ordering)
        Ab = self.augmented(ordering, self.dims)
        A, b = Ab[:, :-1], Ab[:, -1]
        return A.T @ A, A.T @ b

    def error(self, values: Dict[Key, np.ndarray]) -> float:
        r = -self.b.copy()
        for k, a in zip(self.keys, self.blocks):
            r += a @ np.atleast_1d(values[k])
        return 0.5 * float(r @ r)

    def equals(self, other, tol: float = DEFAULT_TOL) -> bool:
        """Same keys, shapes and entries within absolute tolerance."""
        if not isinstance(other, JacobianFactor) or self.keys != other.keys:
            return False
        if self.b.shape != other.b.shape:
            return False
        for a1, a2 in zip(self.blocks, other.blocks):
            if a1.shape != a2.shape or not np.allclose(a1, a2, rtol=0.0, atol=tol):
                return False
        return bool(np.allclose(self.b, other.b, rtol=0.0, atol=tol))

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(f"{s}Jacobian on [ {format_keys(self.keys, key_formatter)} ]:")
        for k, a in zip(self.keys, self.blocks):
            print(f"  A[{key_formatter(k)}] =\n{a}")
        print(f"  b = {self.b}")


def column_offsets(ordering: Sequence[Key], dims: Dict[Key, int]) -> List[int]:
    """Starting column of each key in ordering, plus the total width at the end."""
    offsets = [0]
    for k in ordering:
        offsets.append(offsets[-1] + dims[k])
    return offsets


def collect_dims(factors: Iterable[JacobianFactor]) -> Dict[Key, int]:
    """
    Dimension of every key across factors.

    Raises:
        ValueError: If two factors disagree on a key's dimension
    """
    dims: Dict[Key, int] = {}
    for f in factors:
        for k, d in f.dims.items():
            if dims.setdefault(k, d) != d:
                raise ValueError(f"Dimension mismatch for key {k}: {dims[k]} vs {d}")
    return dims
