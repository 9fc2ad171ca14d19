"""
Shared fixtures: small Bayes trees and an elimination call counter.
"""

import threading

import numpy as np
import pytest

from bayestree import (
    BayesTree,
    DiscreteConditional,
    FactorGraph,
    JacobianFactor,
    eliminate_qr,
    eliminate_sequential,
    symbol,
)

X = [symbol("x", i) for i in range(8)]

# P(child | parent), child axis first
TRANSITION = np.array([[0.9, 0.2], [0.1, 0.8]])


class CountingEliminate:
    """Elimination wrapper that records every call."""

    def __init__(self, eliminate):
        self.eliminate = eliminate
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, graph, keep, nr_frontals):
        with self._lock:
            self.calls += 1
        return self.eliminate(graph, keep, nr_frontals)


def build_discrete_chain(n):
    """Chain root(x0) - x1|x0 - ... - x(n-1)|x(n-2)."""
    keys = [symbol("x", i) for i in range(n)]
    tree = BayesTree()
    cliques = [tree.add_clique(DiscreteConditional.from_table([keys[0]], [], [0.6, 0.4]))]
    for i in range(1, n):
        cliques.append(tree.add_clique(
            DiscreteConditional.from_table([keys[i]], [keys[i - 1]], TRANSITION), cliques[-1]
        ))
    return tree, cliques


@pytest.fixture
def counter():
    """Factory for counting wrappers around an elimination function."""
    return CountingEliminate


@pytest.fixture
def discrete_four():
    """
    Four-clique tree root(x0) - A(x1|x0) - B(x2|x1) - C(x3|x1).

    C is a leaf whose separator is A's single frontal variable.
    """
    tree = BayesTree()
    root = tree.add_clique(DiscreteConditional.from_table([X[0]], [], [0.6, 0.4]))
    a = tree.add_clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), root)
    b = tree.add_clique(DiscreteConditional.from_table([X[2]], [X[1]], [[0.3, 0.5], [0.7, 0.5]]), a)
    c = tree.add_clique(DiscreteConditional.from_table([X[3]], [X[1]], [[0.25, 0.6], [0.75, 0.4]]), b)
    return tree, root, a, b, c


@pytest.fixture
def gaussian_graph():
    """2-D odometry factors: prior on x0, x0-x1, x1-x2, x1-x3."""
    return FactorGraph([
        JacobianFactor.prior(X[0], [0.0, 0.0], [0.1, 0.1]),
        JacobianFactor.between(X[0], X[1], [1.0, 0.0], [0.2, 0.2]),
        JacobianFactor.between(X[1], X[2], [1.0, 0.5], [0.3, 0.3]),
        JacobianFactor.between(X[1], X[3], [0.0, 1.0], [0.4, 0.4]),
    ])


@pytest.fixture
def gaussian_four(gaussian_graph):
    """Gaussian version of discrete_four, eliminated from gaussian_graph."""
    p = eliminate_sequential(gaussian_graph, [X[3], X[2], X[1], X[0]], eliminate_qr)
    tree = BayesTree()
    root = tree.add_clique(p[X[0]])
    a = tree.add_clique(p[X[1]], root)
    b = tree.add_clique(p[X[2]], a)
    c = tree.add_clique(p[X[3]], b)
    return tree, root, a, b, c


def dense_covariance(graph, ordering):
    """Full joint covariance of a whitened Gaussian graph."""
    dims = {}
    for f in graph:
        dims.update(f.dims)
    A = np.vstack([f.augmented(list(ordering), dims)[:, :-1] for f in graph])
    return np.linalg.inv(A.T @ A)
