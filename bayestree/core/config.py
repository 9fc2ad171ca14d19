"""
bayestree/core/config.py

Default numerical settings. Functions take these as keyword defaults;
elimination functions can be configured with functools.partial.
"""

# Absolute tolerance used by equals() on cliques, factors and conditionals
DEFAULT_TOL: float = 1e-9

# Smallest |R[i, i]| accepted on an eliminated or frontal column in QR elimination
DEFAULT_RANK_TOL: float = 1e-9
