"""
Tests for BayesTree: construction, lookup, structure checks and marginals.
"""

import gc

import numpy as np
import pytest

from bayestree import BayesTree, Clique, DiscreteConditional, MalformedTreeError, eliminate_discrete

from conftest import TRANSITION, X


class TestConstruction:
    def test_add_clique_indexes_frontals(self, discrete_four):
        tree, root, a, b, c = discrete_four

        assert tree.roots == [root]
        assert tree.clique(X[0]) is root
        assert tree.clique(X[3]) is c
        assert X[2] in tree
        assert X[7] not in tree

    def test_duplicate_frontal_rejected(self, discrete_four):
        tree, root, _, _, _ = discrete_four

        with pytest.raises(MalformedTreeError):
            tree.add_clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), root)

    def test_root_with_separator_rejected(self):
        tree = BayesTree()

        with pytest.raises(MalformedTreeError):
            tree.add_clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION))
        assert tree.size() == 0

    def test_separator_outside_parent_rejected(self, discrete_four):
        tree, _, _, _, c = discrete_four

        with pytest.raises(MalformedTreeError):
            tree.add_clique(DiscreteConditional.from_table([X[4]], [X[0]], TRANSITION), c)
        assert X[4] not in tree
        assert c.children == []

    def test_missing_key_lookup(self, discrete_four):
        tree = discrete_four[0]

        with pytest.raises(KeyError):
            tree.clique(X[7])

    def test_iteration_is_preorder(self, discrete_four):
        tree, root, a, b, c = discrete_four

        assert list(tree) == [root, a, b, c]
        assert tree.size() == 4

    def test_forest(self, discrete_four):
        tree, root, _, _, c = discrete_four
        other = tree.add_clique(DiscreteConditional.from_table([X[5]], [], [0.5, 0.5]))
        leaf = tree.add_clique(DiscreteConditional.from_table([X[6]], [X[5]], TRANSITION), other)

        assert len(tree.roots) == 2
        assert tree.size() == 6
        assert tree.find_root(c) is root
        assert tree.find_root(leaf) is other
        assert tree.find_root(root) is root

    def test_find_root_with_expired_link(self):
        parent = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        child = Clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), parent)
        del parent
        gc.collect()

        with pytest.raises(MalformedTreeError):
            BayesTree().find_root(child)


class TestCaches:
    def test_tree_wide_count_and_delete(self, discrete_four):
        tree, root, _, _, c = discrete_four
        other = tree.add_clique(DiscreteConditional.from_table([X[5]], [], [0.5, 0.5]))
        leaf = tree.add_clique(DiscreteConditional.from_table([X[6]], [X[5]], TRANSITION), other)

        c.separator_marginal(root, eliminate_discrete)
        leaf.separator_marginal(other, eliminate_discrete)
        assert tree.num_cached_separator_marginals() == 6

        tree.delete_cached_shortcuts()
        assert tree.num_cached_separator_marginals() == 0

    def test_remove_subtree_keeps_ancestor_caches(self, discrete_four):
        tree, root, a, b, c = discrete_four
        c.separator_marginal(root, eliminate_discrete)

        removed = tree.remove_subtree(b)

        assert removed == [b, c]
        assert a.children == []
        assert b.is_root
        assert X[2] not in tree and X[3] not in tree
        assert a.cached_separator_marginal is not None
        assert tree.num_cached_separator_marginals() == 2
        tree.check_invariants()

    def test_remove_root(self, discrete_four):
        tree, root, _, _, _ = discrete_four

        removed = tree.remove_subtree(root)

        assert len(removed) == 4
        assert tree.roots == []
        assert tree.nodes == {}


class TestMarginalFactor:
    def test_discrete_marginals_match_brute_force(self, discrete_four):
        tree, root, a, b, c = discrete_four
        p0 = np.array([0.6, 0.4])
        p1 = TRANSITION @ p0
        p2 = b.conditional.table @ p1
        p3 = c.conditional.table @ p1

        for key, expected in zip(X[:4], (p0, p1, p2, p3)):
            marginal = tree.marginal_factor(key, eliminate_discrete)
            assert marginal.frontals == (key,)
            assert marginal.parents == ()
            assert np.allclose(marginal.table, expected)

    def test_marginal_fills_caches(self, discrete_four, counter):
        tree, root, a, b, c = discrete_four
        eliminate = counter(eliminate_discrete)

        tree.marginal_factor(X[3], eliminate)

        # Three separator marginals plus the final projection onto x3
        assert eliminate.calls == 4
        assert tree.num_cached_separator_marginals() == 4

    def test_missing_key(self, discrete_four):
        tree = discrete_four[0]

        with pytest.raises(KeyError):
            tree.marginal_factor(X[7], eliminate_discrete)


class TestStructureChecks:
    def test_valid_tree(self, discrete_four):
        discrete_four[0].check_invariants()

    def test_to_networkx(self, discrete_four):
        tree, root, _, _, c = discrete_four
        c.separator_marginal(root, eliminate_discrete)

        g = tree.to_networkx()

        assert g.number_of_nodes() == 4
        assert g.number_of_edges() == 3
        assert g.nodes[id(c)]["label"] == "x3"
        assert g.nodes[id(c)]["separator"] == (X[1],)
        assert all(g.nodes[n]["cached"] for n in g.nodes)
        assert list(g.successors(id(root))) == [id(tree.clique(X[1]))]

    def test_child_without_back_link(self, discrete_four):
        tree, _, _, b, _ = discrete_four
        b.children.append(Clique(DiscreteConditional.from_table([X[5]], [X[2]], TRANSITION)))

        with pytest.raises(MalformedTreeError):
            tree.check_invariants()

    def test_stale_index(self, discrete_four):
        tree, _, _, _, c = discrete_four
        tree.nodes[X[7]] = c

        with pytest.raises(MalformedTreeError):
            tree.check_invariants()


def test_print(discrete_four, capsys):
    tree = discrete_four[0]

    tree.print("tree")
    out = capsys.readouterr().out

    assert out.splitlines()[0] == "tree: cliques: 4, variables: 4"
    assert "P( x3 | x1 ):" in out
    assert repr(tree) == "BayesTree(roots=1, cliques=4, variables=4)"
