"""
Example: Discrete Bayes tree.

root(x0) - A(x1|x0) - B(x2|x1) - C(x3|x1), binary variables.
"""

import numpy as np
from bayestree import BayesTree, DiscreteConditional, default_key_formatter, eliminate_discrete, symbol


def main():
    x0, x1, x2, x3 = (symbol("x", i) for i in range(4))

    # Conditionals, frontal axis first
    tree = BayesTree()
    root = tree.add_clique(DiscreteConditional.from_table([x0], [], [0.6, 0.4]))
    a = tree.add_clique(DiscreteConditional.from_table([x1], [x0], [[0.9, 0.2], [0.1, 0.8]]), root)
    b = tree.add_clique(DiscreteConditional.from_table([x2], [x1], [[0.3, 0.5], [0.7, 0.5]]), a)
    c = tree.add_clique(DiscreteConditional.from_table([x3], [x1], [[0.25, 0.6], [0.75, 0.4]]), b)

    tree.print("Bayes tree")

    # Separator marginal of the leaf fills caches on B and A as well
    marginal = c.separator_marginal(root, eliminate_discrete)
    marginal.print("\nP(x1): ")
    print(f"\nCached separator marginals: {tree.num_cached_separator_marginals()}")

    # Single-variable marginals
    print("\nMarginal distributions:")
    for key in (x0, x1, x2, x3):
        p = tree.marginal_factor(key, eliminate_discrete)
        print(f"  P({default_key_formatter(key)}) = {p.table}")

    # Verify by brute force
    print("\n--- Verification by brute force ---")
    p_x1 = a.conditional.table @ root.conditional.table
    print(f"P(x1) (brute force) = {p_x1}")
    print(f"Match: {np.allclose(p_x1, marginal[0].table)}")

    tree.delete_cached_shortcuts()
    print(f"\nAfter invalidation: {tree.num_cached_separator_marginals()} cached")


if __name__ == "__main__":
    main()
