"""
bayestree/core/errors.py

Error taxonomy for the clique engine.

- MalformedTreeError: structural inconsistency in a Bayes tree
- EliminationError: an elimination capability could not produce a result
- ReductionError: key renumbering was not a bijection
"""

from __future__ import annotations

from typing import Optional

from bayestree.core.keys import format_keys


class BayesTreeError(Exception):
    """Base class for all bayestree errors."""


class MalformedTreeError(BayesTreeError, ValueError):
    """A clique's parent link or separator is inconsistent with the tree."""


class EliminationError(BayesTreeError, RuntimeError):
    """Raised when an elimination capability reports failure."""

    def __init__(self, reason: str, keys: Optional[tuple] = None):
        self.reason = reason
        self.keys = keys
        if keys is not None:
            super().__init__(f"{reason} (keep=[{format_keys(keys)}])")
        else:
            super().__init__(reason)


class ReductionError(BayesTreeError, AssertionError):
    """Key renumbering before/after elimination is not a bijection."""
