"""
bayestree/core/reduction.py

Compact key renumbering for elimination.

Keys in a joint factor graph can be sparse and large (symbol keys live in
the top byte of a 64-bit integer). Before handing a graph to an elimination
capability the keys are renumbered to 0..n-1; results are mapped back
afterwards. The mapping must be a bijection, anything else is a bug.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

from bayestree.core.errors import ReductionError
from bayestree.core.keys import Key


@dataclass(frozen=True)
class KeyReduction:
    """
    Invertible renumbering of a set of keys onto 0..n-1.

    Attributes:
        key_to_index: Original key -> compact index
        index_to_key: Compact index -> original key
    """
    key_to_index: Dict[Key, int]
    index_to_key: Tuple[Key, ...]

    @staticmethod
    def build(keys: Iterable[Key]) -> "KeyReduction":
        """
        Build a reduction from a collection of keys.

        Compact indices follow sorted key order, so the reduction is
        deterministic for a given key set.

        Raises:
            ReductionError: If keys contains duplicates
        """
        key_list: List[Key] = list(keys)
        ordered = tuple(sorted(set(key_list)))
        if len(ordered) != len(key_list):
            raise ReductionError(f"Duplicate keys in reduction: {sorted(key_list)}")

        reduction = KeyReduction(
            key_to_index={k: i for i, k in enumerate(ordered)},
            index_to_key=ordered,
        )
        reduction.check_bijection()
        return reduction

    def __len__(self) -> int:
        return len(self.index_to_key)

    def check_bijection(self) -> None:
        """Verify both maps are mutually inverse."""
        if len(self.key_to_index) != len(self.index_to_key):
            raise ReductionError(
                f"Reduction size mismatch: {len(self.key_to_index)} keys, "
                f"{len(self.index_to_key)} indices"
            )
        for i, k in enumerate(self.index_to_key):
            if self.key_to_index.get(k) != i:
                raise ReductionError(f"Reduction is not a bijection at key {k} / index {i}")

    def reduce_key(self, key: Key) -> int:
        if key not in self.key_to_index:
            raise ReductionError(f"Key {key} is not part of the reduction")
        return self.key_to_index[key]

    def restore_key(self, index: int) -> Key:
        if index < 0 or index >= len(self.index_to_key):
            raise ReductionError(f"Index {index} is outside the reduction (size {len(self)})")
        return self.index_to_key[index]

    def reduce_keys(self, keys: Sequence[Key]) -> Tuple[int, ...]:
        return tuple(self.reduce_key(k) for k in keys)

    def restore_keys(self, indices: Sequence[int]) -> Tuple[Key, ...]:
        return tuple(self.restore_key(i) for i in indices)

    def reduce(self, factor):
        """Return a copy of a factor with keys renumbered to compact indices."""
        for k in factor.keys:
            if k not in self.key_to_index:
                raise ReductionError(f"Factor key {k} is not part of the reduction")
        return factor.rekey(self.key_to_index)

    def restore(self, factor):
        """Return a copy of a reduced factor with its original keys."""
        mapping = {i: k for i, k in enumerate(self.index_to_key)}
        for k in factor.keys:
            if k not in mapping:
                raise ReductionError(f"Factor key {k} is outside the reduction (size {len(self)})")
        return factor.rekey(mapping)
