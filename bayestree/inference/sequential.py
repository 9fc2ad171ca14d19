"""
bayestree/inference/sequential.py

One-key-at-a-time elimination of a factor graph into conditionals.

Used to turn a small factor graph into the conditionals of a chain-shaped
Bayes tree. It is not an ordering algorithm: the caller supplies the order.
"""

from __future__ import annotations

import logging
from typing import Dict, Sequence

from bayestree.core.keys import Key, format_keys
from bayestree.inference.capability import Conditional, EliminateFunction
from bayestree.inference.clique import eliminate_reduced
from bayestree.inference.factor_graph import FactorGraph

logger = logging.getLogger(__name__)


def eliminate_sequential(
    graph: FactorGraph,
    ordering: Sequence[Key],
    eliminate: EliminateFunction,
) -> Dict[Key, Conditional]:
    """
    Eliminate keys in ordering, one frontal key per step.

    Each step gathers the factors touching the key, eliminates it given the
    other keys of those factors (sorted), and puts the remaining factors back.

    Args:
        graph: Factor graph to eliminate
        ordering: Elimination order; every key must appear in graph
        eliminate: Elimination capability

    Returns:
        Key -> conditional P(key | separator), in elimination order

    Raises:
        KeyError: If a key in ordering touches no remaining factor
        EliminationError: If eliminate reports failure
    """
    factors = list(graph)
    conditionals: Dict[Key, Conditional] = {}
    for key in ordering:
        involved = [f for f in factors if key in f.keys]
        if not involved:
            raise KeyError(f"Key {key} is not in any remaining factor")
        factors = [f for f in factors if key not in f.keys]
        separator = sorted({k for f in involved for k in f.keys} - {key})
        conditional, remaining = eliminate_reduced(FactorGraph(involved), [key] + separator, 1, eliminate)
        conditionals[key] = conditional
        factors.extend(remaining)
        logger.debug(f"eliminated {format_keys([key])} given [{format_keys(separator)}]")
    return conditionals
