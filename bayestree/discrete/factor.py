"""
bayestree/discrete/factor.py

Discrete factors: nonnegative tables over named, finite-domain variables.

A DiscreteFactor associates each key with one table axis. Domain order is
semantic: axis i of `table` belongs to `keys[i]`.

Key operations:
  - product: pointwise product aligned on the (sorted) union of keys
  - sum_out: marginalize keys away
  - align: permute axes into a requested key order
  - rekey: pure relabelling of keys (used for compact renumbering)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from bayestree.core.config import DEFAULT_TOL
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, format_keys


@dataclass(frozen=True, eq=False)
class DiscreteFactor:
    """
    A nonnegative table over an ordered tuple of keys.

    Attributes:
        keys: Ordered keys (axis labels)
        table: ndarray whose shape is the keys' cardinalities, in keys order
    """
    keys: Tuple[Key, ...]
    table: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "keys", tuple(int(k) for k in self.keys))
        object.__setattr__(self, "table", np.asarray(self.table, dtype=np.float64))
        if len(self.keys) != self.table.ndim:
            raise ValueError(
                f"DiscreteFactor keys/table mismatch: {len(self.keys)} keys "
                f"but {self.table.ndim} dims"
            )
        if len(set(self.keys)) != len(self.keys):
            raise ValueError(f"DiscreteFactor has duplicate keys: {self.keys}")
        if np.any(self.table < 0):
            raise ValueError("DiscreteFactor table must be nonnegative")

    @property
    def cardinalities(self) -> Dict[Key, int]:
        return {k: self.table.shape[i] for i, k in enumerate(self.keys)}

    def cardinality(self, key: Key) -> int:
        return self.table.shape[self.keys.index(key)]

    def align(self, target_keys: Sequence[Key]) -> "DiscreteFactor":
        """
        Permute axes into target_keys order.

        target_keys must be a permutation of keys.
        """
        target = tuple(target_keys)
        if target == self.keys:
            return self
        if sorted(target) != sorted(self.keys):
            raise ValueError(f"align target {target} is not a permutation of {self.keys}")
        pos = {k: i for i, k in enumerate(self.keys)}
        return DiscreteFactor(target, np.transpose(self.table, axes=[pos[k] for k in target]))

    def _broadcast_to(self, target_keys: Tuple[Key, ...]) -> np.ndarray:
        """View of the table with axes in target order and singleton axes for missing keys."""
        pos = {k: i for i, k in enumerate(self.keys)}
        present = [pos[k] for k in target_keys if k in pos]
        data = np.transpose(self.table, axes=present) if present else self.table.reshape(())
        shape = []
        j = 0
        for k in target_keys:
            if k in pos:
                shape.append(data.shape[j])
                j += 1
            else:
                shape.append(1)
        return data.reshape(shape)

    def sum_out(self, elim_keys: Iterable[Key]) -> "DiscreteFactor":
        """Marginalize the given keys away; keys not in this factor are ignored."""
        elim = set(elim_keys)
        axes = tuple(i for i, k in enumerate(self.keys) if k in elim)
        if not axes:
            return self
        keep = tuple(k for k in self.keys if k not in elim)
        return DiscreteFactor(keep, np.sum(self.table, axis=axes))

    def rekey(self, mapping: Dict[Key, Key]) -> "DiscreteFactor":
        return DiscreteFactor(tuple(mapping[k] for k in self.keys), self.table)

    def total(self) -> float:
        return float(np.sum(self.table))

    def equals(self, other, tol: float = DEFAULT_TOL) -> bool:
        """Same keys in the same order and tables within absolute tolerance."""
        if not isinstance(other, DiscreteFactor):
            return False
        if self.keys != other.keys or self.table.shape != other.table.shape:
            return False
        return bool(np.allclose(self.table, other.table, rtol=0.0, atol=tol))

    def print(self, s: str = "", key_formatter: KeyFormatter = default_key_formatter) -> None:
        print(f"{s}f( {format_keys(self.keys, key_formatter)} ):")
        print(self.table)


def product(factors: Sequence[DiscreteFactor], keys: Optional[Sequence[Key]] = None) -> DiscreteFactor:
    """
    Pointwise product of factors.

    Args:
        factors: Factors to multiply
        keys: Key order of the result; defaults to the sorted union

    Returns:
        DiscreteFactor over the union of all keys
    """
    if not factors:
        raise ValueError("product needs at least one factor")

    cards: Dict[Key, int] = {}
    for f in factors:
        for k, c in f.cardinalities.items():
            if cards.setdefault(k, c) != c:
                raise ValueError(f"Cardinality mismatch for key {k}: {cards[k]} vs {c}")

    target = tuple(sorted(cards)) if keys is None else tuple(keys)
    if set(target) != set(cards):
        raise ValueError(f"product keys {target} do not match factor keys {tuple(sorted(cards))}")

    shape = tuple(cards[k] for k in target)
    acc = np.ones(shape, dtype=np.float64)
    for f in factors:
        acc = acc * f._broadcast_to(target)
    return DiscreteFactor(target, acc)
