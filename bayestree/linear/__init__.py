"""
Linear module: whitened Jacobian factors, Gaussian conditionals and QR elimination.
"""

from bayestree.linear.jacobian import JacobianFactor, collect_dims, column_offsets
from bayestree.linear.conditional import GaussianConditional
from bayestree.linear.eliminate import eliminate_qr

__all__ = [
    "JacobianFactor",
    "collect_dims",
    "column_offsets",
    "GaussianConditional",
    "eliminate_qr",
]
