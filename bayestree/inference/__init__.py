"""
Inference module: factor graphs, capability contracts, cliques and Bayes trees.
"""

from bayestree.inference.factor_graph import FactorGraph
from bayestree.inference.capability import (
    Conditional,
    EliminateFunction,
    EliminationResult,
    Factor,
    check_elimination_request,
)
from bayestree.inference.traversal import depth_first_preorder, path_to_root
from bayestree.inference.clique import Clique, eliminate_reduced
from bayestree.inference.bayes_tree import BayesTree
from bayestree.inference.sequential import eliminate_sequential

__all__ = [
    "FactorGraph",
    "Conditional",
    "EliminateFunction",
    "EliminationResult",
    "Factor",
    "check_elimination_request",
    "depth_first_preorder",
    "path_to_root",
    "Clique",
    "eliminate_reduced",
    "BayesTree",
    "eliminate_sequential",
]
