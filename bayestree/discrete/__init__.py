"""
Discrete module: table factors, conditionals and exact elimination.
"""

from bayestree.discrete.factor import DiscreteFactor, product
from bayestree.discrete.conditional import DiscreteConditional, normalize_frontals
from bayestree.discrete.eliminate import eliminate_discrete

__all__ = [
    "DiscreteFactor",
    "product",
    "DiscreteConditional",
    "normalize_frontals",
    "eliminate_discrete",
]
