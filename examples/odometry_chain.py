"""
Example: Gaussian Bayes tree from a 2-D odometry chain.

Poses x0..x5 linked by relative measurements, with a prior on x0. The
chain is eliminated last-to-first, giving one clique per pose.
"""

import numpy as np
from bayestree import (
    BayesTree,
    FactorGraph,
    JacobianFactor,
    default_key_formatter,
    eliminate_qr,
    eliminate_sequential,
    symbol,
)


def main():
    n = 6
    x = [symbol("x", i) for i in range(n)]

    graph = FactorGraph([JacobianFactor.prior(x[0], [0.0, 0.0], [0.05, 0.05])])
    for i in range(n - 1):
        graph.push_back(JacobianFactor.between(x[i], x[i + 1], [1.0, 0.0], [0.1, 0.1]))

    # Eliminate x5, x4, ..., x0: each step gives P(x_i | x_{i-1})
    conditionals = eliminate_sequential(graph, list(reversed(x)), eliminate_qr)

    tree = BayesTree()
    parent = None
    for key in x:
        parent = tree.add_clique(conditionals[key], parent)

    print(f"Bayes tree with {tree.size()} cliques")

    print("\nMarginal standard deviations:")
    for key in x:
        p = tree.marginal_factor(key, eliminate_qr)
        sigmas = np.sqrt(np.diag(p.covariance()))
        print(f"  {default_key_formatter(key)}: {sigmas}")

    print(f"\nCached separator marginals: {tree.num_cached_separator_marginals()}")


if __name__ == "__main__":
    main()
