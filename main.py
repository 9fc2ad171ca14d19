#!/usr/bin/env python3
"""
bayestree: clique recursion for Bayes trees

Command-line demos of memoized separator marginals on small Bayes trees.

Usage:
    # Run demos
    python main.py demo --example discrete
    python main.py demo --example gaussian --debug

    # Show info
    python main.py info
"""

from __future__ import annotations

import argparse
import logging
import sys
from functools import partial
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np

# Handle imports whether running as package or directly
try:
    from bayestree import (
        BayesTree,
        DiscreteConditional,
        FactorGraph,
        JacobianFactor,
        __version__,
        eliminate_discrete,
        eliminate_qr,
        eliminate_sequential,
        symbol,
    )
except ImportError:
    sys.path.insert(0, str(Path(__file__).parent))
    from bayestree import (
        BayesTree,
        DiscreteConditional,
        FactorGraph,
        JacobianFactor,
        __version__,
        eliminate_discrete,
        eliminate_qr,
        eliminate_sequential,
        symbol,
    )

logger = logging.getLogger("bayestree.main")


class CountingEliminate:
    """Wraps an elimination function and counts calls."""

    def __init__(self, eliminate):
        self.eliminate = eliminate
        self.calls = 0

    def __call__(self, graph, keep, nr_frontals):
        self.calls += 1
        return self.eliminate(graph, keep, nr_frontals)


def build_discrete_chain() -> Tuple[BayesTree, Tuple]:
    """Root(x0) - A(x1|x0) - B(x2|x1) - C(x3|x1), binary variables."""
    x0, x1, x2, x3 = (symbol("x", i) for i in range(4))
    tree = BayesTree()
    root = tree.add_clique(DiscreteConditional.from_table([x0], [], [0.6, 0.4]))
    a = tree.add_clique(DiscreteConditional.from_table([x1], [x0], [[0.9, 0.2], [0.1, 0.8]]), root)
    b = tree.add_clique(DiscreteConditional.from_table([x2], [x1], [[0.3, 0.5], [0.7, 0.5]]), a)
    c = tree.add_clique(DiscreteConditional.from_table([x3], [x1], [[0.25, 0.6], [0.75, 0.4]]), b)
    return tree, (root, a, b, c)


def build_gaussian_chain() -> Tuple[BayesTree, Tuple, FactorGraph]:
    """2-D odometry chain x0 - x1 - {x2, x3} eliminated into four cliques."""
    x0, x1, x2, x3 = (symbol("x", i) for i in range(4))
    graph = FactorGraph([
        JacobianFactor.prior(x0, [0.0, 0.0], [0.1, 0.1]),
        JacobianFactor.between(x0, x1, [1.0, 0.0], [0.2, 0.2]),
        JacobianFactor.between(x1, x2, [1.0, 0.5], [0.3, 0.3]),
        JacobianFactor.between(x1, x3, [0.0, 1.0], [0.4, 0.4]),
    ])
    p = eliminate_sequential(graph, [x3, x2, x1, x0], eliminate_qr)

    tree = BayesTree()
    root = tree.add_clique(p[x0])
    a = tree.add_clique(p[x1], root)
    b = tree.add_clique(p[x2], a)
    c = tree.add_clique(p[x3], b)
    return tree, (root, a, b, c), graph


def demo_discrete() -> bool:
    """Demo: discrete chain, separator marginal of the leaf."""
    print("=" * 60)
    print("Demo: Discrete Bayes tree  root(x0) - A(x1) - B(x2) - C(x3|x1)")
    print("=" * 60)

    tree, (root, a, b, c) = build_discrete_chain()
    tree.print("\nBayes tree")

    eliminate = CountingEliminate(eliminate_discrete)
    marginal = c.separator_marginal(root, eliminate)
    print(f"\nP(x1) via separator marginal: {marginal[0].table}")
    print(f"Elimination calls: {eliminate.calls}, cached marginals: {tree.num_cached_separator_marginals()}")

    again = c.separator_marginal(root, eliminate)
    print(f"Repeat query elimination calls: {eliminate.calls} (cache hit: {again is marginal})")

    p_x0 = root.conditional.table
    p_x1_x0 = a.conditional.table
    brute = p_x1_x0 @ p_x0
    match = bool(np.allclose(marginal[0].table, brute))
    print(f"\nVerification (brute force): P(x1) = {brute}")
    print(f"Match: {match}")

    tree.delete_cached_shortcuts()
    print(f"After invalidation, cached marginals: {tree.num_cached_separator_marginals()}")
    return match


def demo_gaussian(tol: float = 1e-9) -> bool:
    """Demo: Gaussian odometry chain, marginal covariance of x1."""
    print("=" * 60)
    print("Demo: Gaussian Bayes tree from a 2-D odometry chain")
    print("=" * 60)

    tree, (root, a, b, c), graph = build_gaussian_chain()
    eliminate = CountingEliminate(partial(eliminate_qr, rank_tol=tol))

    marginal = c.separator_marginal(root, eliminate)
    cov = marginal[0].covariance()
    print(f"\nCov(x1) via separator marginal:\n{cov}")
    print(f"Elimination calls: {eliminate.calls}, cached marginals: {tree.num_cached_separator_marginals()}")

    x1 = symbol("x", 1)
    ordering = list(graph.keys())
    full_cov = np.linalg.inv(_dense_information(graph, ordering))
    i = ordering.index(x1) * 2
    brute = full_cov[i:i + 2, i:i + 2]
    match = bool(np.allclose(cov, brute, atol=1e-8))
    print(f"\nVerification (dense inverse):\n{brute}")
    print(f"Match: {match}")
    return match


def _dense_information(graph: FactorGraph, ordering: Sequence[int]) -> np.ndarray:
    dims = {}
    for f in graph:
        dims.update(f.dims)
    A = np.vstack([f.augmented(list(ordering), dims)[:, :-1] for f in graph])
    return A.T @ A


def cmd_demo(args) -> int:
    demos = {
        "discrete": demo_discrete,
        "gaussian": partial(demo_gaussian, tol=args.tol),
    }
    names = list(demos) if args.example == "all" else [args.example]
    ok = True
    for name in names:
        logger.debug(f"Running demo: {name}")
        ok = demos[name]() and ok
        print()
    return 0 if ok else 1


def cmd_info(args) -> int:
    print(f"bayestree {__version__}")
    print(f"numpy {np.__version__}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="bayestree",
        description="bayestree: clique recursion for Bayes trees",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run demos
  bayestree demo --example discrete
  bayestree demo --example all --debug

  # Show info
  bayestree info
"""
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"bayestree {__version__}"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    demo_parser = subparsers.add_parser("demo", help="Run demonstration examples")
    demo_parser.add_argument(
        "--example", "-e",
        choices=["discrete", "gaussian", "all"],
        default="all",
        help="Which example to run (default: all)"
    )
    demo_parser.add_argument(
        "--tol",
        type=float,
        default=1e-9,
        help="Rank tolerance for QR elimination (default: 1e-9)"
    )

    subparsers.add_parser("info", help="Show version information")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "demo":
        return cmd_demo(args)
    elif args.command == "info":
        return cmd_info(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
