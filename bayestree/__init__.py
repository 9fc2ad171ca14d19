"""
bayestree: clique recursion for Bayes trees

Memoized separator marginals, shortcuts, tree counting and cache
invalidation over a tree of cliques, driven by a pluggable elimination
function.

Key components:
- core: keys, default tolerances, errors and compact key renumbering
- inference: factor graphs, capability contracts, cliques and Bayes trees
- discrete: table factors and exact discrete elimination
- linear: whitened Jacobian factors and QR-based Gaussian elimination
"""

__version__ = "1.0.0"
__author__ = "bayestree developers"

from bayestree.core.config import DEFAULT_RANK_TOL, DEFAULT_TOL
from bayestree.core.errors import (
    BayesTreeError,
    EliminationError,
    MalformedTreeError,
    ReductionError,
)
from bayestree.core.keys import Key, KeyFormatter, default_key_formatter, symbol
from bayestree.core.reduction import KeyReduction
from bayestree.inference.factor_graph import FactorGraph
from bayestree.inference.capability import EliminateFunction, EliminationResult
from bayestree.inference.clique import Clique
from bayestree.inference.bayes_tree import BayesTree
from bayestree.inference.sequential import eliminate_sequential
from bayestree.discrete import DiscreteConditional, DiscreteFactor, eliminate_discrete
from bayestree.linear import GaussianConditional, JacobianFactor, eliminate_qr

__all__ = [
    # Settings and errors
    "DEFAULT_TOL",
    "DEFAULT_RANK_TOL",
    "BayesTreeError",
    "EliminationError",
    "MalformedTreeError",
    "ReductionError",
    # Keys
    "Key",
    "KeyFormatter",
    "default_key_formatter",
    "symbol",
    "KeyReduction",
    # Inference
    "FactorGraph",
    "EliminateFunction",
    "EliminationResult",
    "Clique",
    "BayesTree",
    "eliminate_sequential",
    # Discrete
    "DiscreteFactor",
    "DiscreteConditional",
    "eliminate_discrete",
    # Linear
    "JacobianFactor",
    "GaussianConditional",
    "eliminate_qr",
]
