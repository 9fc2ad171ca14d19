"""
bayestree/linear/eliminate.py

Elimination capability for linear-Gaussian factor graphs.

All factors are stacked into one dense augmented matrix [A | b] with column
blocks ordered [eliminated..., keep...] and reduced by a QR factorization.
The rows of R that belong to eliminated columns are a conditional on the
eliminated variables given the kept ones; dropping them integrates those
variables out. The next rows are the conditional on the frontal keep keys
and whatever follows is a factor over the remaining keep keys.

Keys are expected to be compact (see KeyReduction); the dense matrix has
one column per scalar dimension of every key in the graph.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
import scipy.linalg

from bayestree.core.config import DEFAULT_RANK_TOL
from bayestree.core.keys import Key
from bayestree.inference.capability import EliminationResult, check_elimination_request
from bayestree.inference.factor_graph import FactorGraph
from bayestree.linear.conditional import GaussianConditional
from bayestree.linear.jacobian import JacobianFactor, collect_dims, column_offsets

logger = logging.getLogger(__name__)


def eliminate_qr(
    graph: FactorGraph,
    keep: Sequence[Key],
    nr_frontals: int,
    rank_tol: float = DEFAULT_RANK_TOL,
) -> EliminationResult:
    """
    Marginalize a Gaussian factor graph onto keep with dense QR.

    Args:
        graph: JacobianFactors (conditionals are accepted as factors)
        keep: Keys to keep, in the order the result should use
        nr_frontals: Number of leading keep keys that become frontal (>= 1)
        rank_tol: Smallest accepted |R[i, i]| on eliminated and frontal columns

    Returns:
        EliminationResult with a GaussianConditional whose rows have a
        nonnegative diagonal, and a JacobianFactor over keep[nr_frontals:]
        when any information about those keys remains
    """
    keep = tuple(keep)
    reason = check_elimination_request(graph.keys(), keep, nr_frontals)
    if reason is not None:
        return EliminationResult.failure(reason)
    if nr_frontals == 0:
        return EliminationResult.failure("Gaussian elimination needs at least one frontal key")

    for f in graph:
        if not isinstance(f, JacobianFactor):
            return EliminationResult.failure(f"not a Jacobian factor: {type(f).__name__}")

    try:
        dims = collect_dims(graph)
    except ValueError as e:
        return EliminationResult.failure(str(e))

    keep_set = set(keep)
    eliminated = [k for k in graph.keys() if k not in keep_set]
    ordering = eliminated + list(keep)
    offsets = column_offsets(ordering, dims)

    Ab = np.vstack([f.augmented(ordering, dims) for f in graph])
    R = scipy.linalg.qr(Ab, mode="r")[0]
    R = R[:min(R.shape)]

    n_front = offsets[len(eliminated) + nr_frontals]
    if R.shape[0] < n_front:
        return EliminationResult.failure(
            f"indeterminant system: {Ab.shape[0]} rows for {n_front} eliminated/frontal dimensions"
        )
    diag = np.abs(np.diag(R[:n_front, :n_front]))
    if np.any(diag < rank_tol):
        col = int(np.argmin(diag))
        return EliminationResult.failure(
            f"indeterminant system: |R[{col},{col}]| = {diag[col]:.3e} below rank_tol={rank_tol:g}"
        )

    # Canonical sign: nonnegative diagonal
    for i in range(min(R.shape[0], offsets[-1])):
        if R[i, i] < 0.0:
            R[i, :] = -R[i, :]

    first_keep = len(eliminated)
    r0 = offsets[first_keep]
    blocks = [
        R[r0:n_front, offsets[first_keep + j]:offsets[first_keep + j + 1]]
        for j in range(len(keep))
    ]
    conditional = GaussianConditional(keep, blocks, R[r0:n_front, -1], nr_frontals=nr_frontals)

    remaining = FactorGraph()
    rest = keep[nr_frontals:]
    if rest:
        tail = R[n_front:, :]
        rest_cols = slice(n_front, offsets[-1])
        informative = np.any(np.abs(tail[:, rest_cols]) > 0.0, axis=1)
        tail = tail[informative]
        if tail.shape[0] > 0:
            rest_blocks = [
                tail[:, offsets[first_keep + j]:offsets[first_keep + j + 1]]
                for j in range(nr_frontals, len(keep))
            ]
            remaining.push_back(JacobianFactor(rest, rest_blocks, tail[:, -1]))

    logger.debug(
        f"QR eliminated {len(eliminated)} key(s) from a {Ab.shape[0]}x{Ab.shape[1]} system, "
        f"kept {len(keep)}"
    )
    return EliminationResult(conditional=conditional, remaining=remaining)
