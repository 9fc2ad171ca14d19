"""
bayestree/discrete/eliminate.py

Elimination capability for discrete factor graphs.

Multiplies every factor into one joint table, sums out everything not kept,
and splits the kept marginal into P(first nr_frontals keep keys | rest) and
the marginal over the rest. Exact, and exponential in the number of joint
keys, which is fine at clique scale.
"""

from __future__ import annotations

import logging
from typing import Sequence

from bayestree.core.keys import Key
from bayestree.discrete.conditional import DiscreteConditional
from bayestree.discrete.factor import DiscreteFactor, product
from bayestree.inference.capability import EliminationResult, check_elimination_request
from bayestree.inference.factor_graph import FactorGraph

logger = logging.getLogger(__name__)


def eliminate_discrete(graph: FactorGraph, keep: Sequence[Key], nr_frontals: int) -> EliminationResult:
    """
    Marginalize a discrete factor graph onto keep.

    Args:
        graph: Discrete factors (conditionals are accepted as factors)
        keep: Keys to keep, in the order the result should use
        nr_frontals: Number of leading keep keys that become frontal

    Returns:
        EliminationResult with a DiscreteConditional and, when
        nr_frontals < len(keep), the marginal over the remaining keep keys
    """
    keep = tuple(keep)
    reason = check_elimination_request(graph.keys(), keep, nr_frontals)
    if reason is not None:
        return EliminationResult.failure(reason)

    for f in graph:
        if not isinstance(f, DiscreteFactor):
            return EliminationResult.failure(f"not a discrete factor: {type(f).__name__}")

    try:
        joint = product(list(graph))
    except ValueError as e:
        return EliminationResult.failure(str(e))

    marginal = joint.sum_out(k for k in joint.keys if k not in keep).align(keep)
    if marginal.total() <= 0.0:
        return EliminationResult.failure(f"degenerate: zero total mass over {keep}")

    frontals = keep[:nr_frontals]
    conditional = DiscreteConditional.from_factor(marginal, frontals)

    remaining = FactorGraph()
    if nr_frontals < len(keep):
        remaining.push_back(marginal.sum_out(frontals))

    logger.debug(f"eliminated {len(joint.keys) - len(keep)} key(s), kept {len(keep)}")
    return EliminationResult(conditional=conditional, remaining=remaining)
