"""
bayestree/inference/capability.py

Contracts between the clique engine and the factor algebra it drives.

The engine never looks inside a factor. It needs:
- Factor: keys, pure re-keying, equality with tolerance, printing
- Conditional: a Factor over frontals given parents, convertible to a plain factor
- EliminateFunction: marginalize a graph onto kept keys and split the result
  into a conditional plus remaining factors

Elimination reports failure through EliminationResult rather than by
raising, so a degenerate system surfaces as a tagged result with a reason.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple

from bayestree.core.errors import EliminationError
from bayestree.core.keys import Key, KeyFormatter
from bayestree.inference.factor_graph import FactorGraph


class Factor(Protocol):
    """Protocol for factors handled by the engine."""
    keys: Tuple[Key, ...]

    def rekey(self, mapping: Dict[Key, Key]) -> "Factor": ...
    def equals(self, other: "Factor", tol: float = ...) -> bool: ...
    def print(self, s: str = ..., key_formatter: KeyFormatter = ...) -> None: ...


class Conditional(Factor, Protocol):
    """Protocol for a conditional density P(frontals | parents)."""
    nr_frontals: int

    @property
    def frontals(self) -> Tuple[Key, ...]: ...

    @property
    def parents(self) -> Tuple[Key, ...]: ...

    def to_factor(self) -> Factor: ...


@dataclass(frozen=True)
class EliminationResult:
    """
    Outcome of an elimination call.

    Attributes:
        conditional: P(first nr_frontals keep keys | remaining keep keys), None on failure
        remaining: Factors over the non-frontal keep keys
        reason: Diagnostic message, None on success
    """
    conditional: Optional[Conditional]
    remaining: FactorGraph = field(default_factory=FactorGraph)
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @staticmethod
    def failure(reason: str) -> "EliminationResult":
        return EliminationResult(conditional=None, remaining=FactorGraph(), reason=reason)

    def unwrap(self) -> Tuple[Conditional, FactorGraph]:
        """
        Return (conditional, remaining) or raise.

        Raises:
            EliminationError: If the elimination failed
        """
        if self.reason is not None:
            raise EliminationError(self.reason)
        if self.conditional is None:
            raise EliminationError("elimination returned no conditional")
        return self.conditional, self.remaining


EliminateFunction = Callable[[FactorGraph, Sequence[Key], int], EliminationResult]


def check_elimination_request(
    graph_keys: Sequence[Key],
    keep: Sequence[Key],
    nr_frontals: int,
) -> Optional[str]:
    """
    Validate arguments shared by every elimination capability.

    Returns:
        None if valid, else a reason string suitable for EliminationResult.failure
    """
    if not keep:
        return "nothing to keep: keep is empty"
    if len(set(keep)) != len(keep):
        return f"duplicate keys in keep: {tuple(keep)}"
    if nr_frontals < 0 or nr_frontals > len(keep):
        return f"nr_frontals={nr_frontals} inconsistent with {len(keep)} keep keys"
    present = set(graph_keys)
    missing = [k for k in keep if k not in present]
    if missing:
        return f"keep keys {tuple(missing)} not present in factors"
    return None
