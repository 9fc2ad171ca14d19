"""
Core module: keys, settings, errors and key renumbering.
"""

from bayestree.core.config import DEFAULT_RANK_TOL, DEFAULT_TOL
from bayestree.core.errors import (
    BayesTreeError,
    EliminationError,
    MalformedTreeError,
    ReductionError,
)
from bayestree.core.keys import (
    Key,
    KeyFormatter,
    default_key_formatter,
    format_keys,
    symbol,
    symbol_chr,
    symbol_index,
)
from bayestree.core.reduction import KeyReduction

__all__ = [
    "DEFAULT_TOL",
    "DEFAULT_RANK_TOL",
    "BayesTreeError",
    "EliminationError",
    "MalformedTreeError",
    "ReductionError",
    "Key",
    "KeyFormatter",
    "default_key_formatter",
    "format_keys",
    "symbol",
    "symbol_chr",
    "symbol_index",
    "KeyReduction",
]
