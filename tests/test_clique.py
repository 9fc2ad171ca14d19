"""
Tests for Clique: counting, separator marginals, invalidation and errors.
"""

import gc
import threading

import numpy as np
import pytest

from bayestree import (
    Clique,
    DiscreteConditional,
    EliminationError,
    EliminationResult,
    FactorGraph,
    MalformedTreeError,
    eliminate_discrete,
)
from bayestree.inference.clique import eliminate_reduced

from conftest import TRANSITION, X, build_discrete_chain


class TestStructure:
    def test_frontals_and_separator(self, discrete_four):
        _, root, a, b, c = discrete_four

        assert root.frontals == (X[0],)
        assert root.separator == ()
        assert c.frontals == (X[3],)
        assert c.separator == (X[1],)
        assert b.keys() == (X[2], X[1])

    def test_parent_links(self, discrete_four):
        _, root, a, b, c = discrete_four

        assert root.is_root
        assert root.parent is None
        assert c.parent is b
        assert b.children == [c]
        assert not c.is_root

    def test_placeholder(self):
        clique = Clique()

        assert clique.frontals == ()
        assert clique.separator == ()
        assert clique.cached_separator_marginal is None

    def test_constructor_links_parent(self):
        parent = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        child = Clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), parent)

        assert child.parent is parent
        assert parent.children == [child]


class TestEquality:
    def test_reflexive(self, discrete_four):
        _, root, a, b, c = discrete_four

        for clique in (root, a, b, c):
            assert clique.equals(clique, 0.0)
            assert clique.equals(clique)

    def test_tolerance(self):
        table = np.array([[0.9, 0.2], [0.1, 0.8]])
        c1 = Clique(DiscreteConditional((X[1], X[0]), table, nr_frontals=1))
        c2 = Clique(DiscreteConditional((X[1], X[0]), table + 1e-6, nr_frontals=1))

        assert c1.equals(c2, 1e-5)
        assert not c1.equals(c2, 1e-7)

    def test_structure_not_compared(self):
        conditional = DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION)
        parent = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        attached = Clique(conditional, parent)
        detached = Clique(conditional)

        assert attached.equals(detached)

    def test_placeholders(self):
        real = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))

        assert Clique().equals(Clique())
        assert not Clique().equals(real)
        assert not real.equals(Clique())

    def test_print_delegates_to_conditional(self, discrete_four, capsys):
        _, _, a, _, _ = discrete_four

        a.print("clique: ")
        out = capsys.readouterr().out

        assert out.startswith("clique: P( x1 | x0 ):")


class TestCounting:
    def test_tree_size(self, discrete_four):
        _, root, a, b, c = discrete_four

        assert root.tree_size() == 4
        assert a.tree_size() == 3
        assert c.tree_size() == 1

    def test_tree_size_branching(self):
        root = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        for i in range(1, 4):
            child = Clique(DiscreteConditional.from_table([X[i]], [X[0]], TRANSITION), root)
            Clique(DiscreteConditional.from_table([X[i + 4]], [X[i]], TRANSITION), child)

        assert root.tree_size() == 1 + sum(child.tree_size() for child in root.children)
        assert root.tree_size() == 7

    def test_no_cache_counts_zero(self, discrete_four):
        _, root, a, b, c = discrete_four

        for clique in (root, a, b, c):
            assert clique.num_cached_separator_marginals() == 0

    def test_absent_cache_stops_count(self, discrete_four):
        _, root, a, b, c = discrete_four
        c.cached_separator_marginal = FactorGraph()

        assert root.num_cached_separator_marginals() == 0
        assert c.num_cached_separator_marginals() == 1


class TestSeparatorMarginal:
    def test_root_is_empty_without_elimination(self, discrete_four, counter):
        _, root, _, _, _ = discrete_four
        eliminate = counter(eliminate_discrete)

        marginal = root.separator_marginal(root, eliminate)

        assert isinstance(marginal, FactorGraph)
        assert marginal.empty()
        assert eliminate.calls == 0
        assert root.cached_separator_marginal is not None

    def test_end_to_end_chain(self, discrete_four, counter):
        _, root, a, b, c = discrete_four
        eliminate = counter(eliminate_discrete)

        marginal = c.separator_marginal(root, eliminate)

        assert eliminate.calls == 3
        for clique in (a, b, c):
            assert clique.cached_separator_marginal is not None

        p_x1 = marginal[0]
        assert p_x1.frontals == c.separator
        assert p_x1.parents == ()
        expected = TRANSITION @ np.array([0.6, 0.4])
        assert np.allclose(p_x1.table, expected)

    def test_second_request_is_cache_hit(self, discrete_four, counter):
        _, root, _, _, c = discrete_four
        eliminate = counter(eliminate_discrete)

        first = c.separator_marginal(root, eliminate)
        calls = eliminate.calls
        second = c.separator_marginal(root, eliminate)

        assert eliminate.calls == calls
        assert second is first
        assert second.equals(first, 0.0)

    def test_sibling_reuses_cached_ancestor(self, discrete_four, counter):
        _, root, a, b, c = discrete_four
        d = Clique(DiscreteConditional.from_table([X[4]], [X[2]], TRANSITION), b)
        eliminate = counter(eliminate_discrete)

        c.separator_marginal(root, eliminate)
        calls = eliminate.calls
        d.separator_marginal(root, eliminate)

        assert eliminate.calls == calls + 1

    def test_reference_is_inner_ancestor(self, discrete_four, counter):
        _, root, a, b, c = discrete_four
        eliminate = counter(eliminate_discrete)

        marginal = c.separator_marginal(a, eliminate)

        # Relative to A only A's own conditional is integrated
        expected, _ = eliminate_reduced(
            FactorGraph([a.conditional.to_factor()]), (X[1],), 1, eliminate_discrete
        )
        assert marginal[0].equals(expected, 1e-12)
        assert np.allclose(marginal[0].table, TRANSITION.sum(axis=1) / 2.0)
        assert eliminate.calls == 2
        assert a.cached_separator_marginal.empty()
        assert b.cached_separator_marginal is not None
        assert root.cached_separator_marginal is None
        assert a.num_cached_separator_marginals() == 3
        assert root.num_cached_separator_marginals() == 0

    def test_path_population(self):
        tree, cliques = build_discrete_chain(6)
        root, leaf = cliques[0], cliques[-1]

        leaf.separator_marginal(root, eliminate_discrete)

        for clique in cliques[1:]:
            assert clique.cached_separator_marginal is not None
        assert root.num_cached_separator_marginals() == 6

    def test_matches_direct_elimination(self):
        tree, cliques = build_discrete_chain(5)
        root, leaf = cliques[0], cliques[-1]

        marginal = leaf.separator_marginal(root, eliminate_discrete)

        joint = FactorGraph(c.conditional.to_factor() for c in cliques)
        direct, _ = eliminate_reduced(joint, leaf.separator, 1, eliminate_discrete)
        assert marginal[0].equals(direct, 1e-12)

    def test_marginal2(self, discrete_four, counter):
        _, root, a, b, c = discrete_four
        eliminate = counter(eliminate_discrete)

        joint = c.marginal2(root, eliminate)

        assert len(joint) == 2
        assert set(joint.keys()) == {X[1], X[3]}
        assert len(c.cached_separator_marginal) == 1

        calls = eliminate.calls
        c.marginal2(root, eliminate)
        assert eliminate.calls == calls

    def test_deep_chain(self):
        tree, cliques = build_discrete_chain(2500)
        root, leaf = cliques[0], cliques[-1]

        marginal = leaf.separator_marginal(root, eliminate_discrete)

        assert root.tree_size() == 2500
        assert root.num_cached_separator_marginals() == 2500
        assert np.isclose(marginal[0].table.sum(), 1.0)

        root.delete_cached_shortcuts()
        assert root.num_cached_separator_marginals() == 0

    def test_concurrent_requests_single_flight(self, discrete_four, counter):
        _, root, _, _, c = discrete_four
        eliminate = counter(eliminate_discrete)
        results = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            results.append(c.separator_marginal(root, eliminate))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert eliminate.calls == 3
        assert all(r is results[0] for r in results)


class TestShortcut:
    def test_shortcut_to_root(self):
        tree, cliques = build_discrete_chain(4)
        root, leaf = cliques[0], cliques[-1]

        shortcut = leaf.shortcut(root, eliminate_discrete)

        conditional = shortcut[0]
        assert conditional.frontals == (X[2],)
        assert conditional.parents == (X[0],)
        assert np.allclose(conditional.table, TRANSITION @ TRANSITION)
        assert leaf.cached_separator_marginal is None

    def test_empty_when_separator_in_b(self, discrete_four):
        _, root, a, b, c = discrete_four

        assert c.shortcut(c, eliminate_discrete).empty()
        assert c.shortcut(b, eliminate_discrete).empty()
        assert a.shortcut(root, eliminate_discrete).empty()

    def test_shortcut_matches_parent_conditional(self, discrete_four):
        _, root, a, b, c = discrete_four

        shortcut = c.shortcut(root, eliminate_discrete)

        assert shortcut[0].equals(a.conditional, 1e-12)


class TestInvalidation:
    def test_delete_clears_subtree(self, discrete_four):
        tree, root, a, b, c = discrete_four
        c.separator_marginal(root, eliminate_discrete)

        root.delete_cached_shortcuts()

        assert root.num_cached_separator_marginals() == 0
        for clique in (root, a, b, c):
            assert clique.cached_separator_marginal is None

    def test_delete_keeps_ancestors(self, discrete_four):
        _, root, a, b, c = discrete_four
        c.separator_marginal(root, eliminate_discrete)

        b.delete_cached_shortcuts()

        assert b.cached_separator_marginal is None
        assert c.cached_separator_marginal is None
        assert a.cached_separator_marginal is not None
        assert root.num_cached_separator_marginals() == 2

    def test_delete_is_noop_without_cache(self, discrete_four):
        _, root, a, b, c = discrete_four
        c.cached_separator_marginal = FactorGraph()

        b.delete_cached_shortcuts()

        assert c.cached_separator_marginal is not None

    def test_recompute_after_delete(self, discrete_four, counter):
        _, root, _, _, c = discrete_four
        eliminate = counter(eliminate_discrete)
        first = c.separator_marginal(root, eliminate)

        root.delete_cached_shortcuts()
        second = c.separator_marginal(root, eliminate)

        assert eliminate.calls == 6
        assert second is not first
        assert second.equals(first, 1e-12)


class TestErrors:
    def test_parent_missing(self):
        root = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        orphan = Clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION))

        with pytest.raises(MalformedTreeError):
            orphan.separator_marginal(root, eliminate_discrete)

    def test_parent_expired(self):
        root = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        parent = Clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), root)
        child = Clique(DiscreteConditional.from_table([X[2]], [X[1]], TRANSITION), parent)
        root.children.clear()
        del parent
        gc.collect()

        assert child.parent is None
        assert not child.is_root
        with pytest.raises(MalformedTreeError):
            child.separator_marginal(root, eliminate_discrete)

    def test_reference_not_an_ancestor(self, discrete_four):
        tree, root, a, b, c = discrete_four
        other = tree.add_clique(DiscreteConditional.from_table([X[5]], [], [0.5, 0.5]))

        with pytest.raises(MalformedTreeError, match="not the reference clique"):
            c.separator_marginal(other, eliminate_discrete)

        assert tree.num_cached_separator_marginals() == 0
        for clique in (root, a, b, c, other):
            assert clique.cached_separator_marginal is None

    def test_expired_parent_with_empty_separator(self):
        root = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        parent = Clique(DiscreteConditional.from_table([X[1]], [X[0]], TRANSITION), root)
        child = Clique(DiscreteConditional.from_table([X[5]], [], [0.5, 0.5]), parent)
        root.children.clear()
        del parent
        gc.collect()

        assert not child.is_root
        assert child.parent is None
        with pytest.raises(MalformedTreeError):
            child.separator_marginal(root, eliminate_discrete)
        assert child.cached_separator_marginal is None

    def test_empty_separator_under_live_parent(self, discrete_four, counter):
        _, root, a, _, _ = discrete_four
        child = Clique(DiscreteConditional.from_table([X[5]], [], [0.5, 0.5]), a)
        eliminate = counter(eliminate_discrete)

        marginal = child.separator_marginal(root, eliminate)

        assert marginal.empty()
        assert eliminate.calls == 0
        assert child.cached_separator_marginal is marginal

    def test_separator_outside_parent(self):
        root = Clique(DiscreteConditional.from_table([X[0]], [], [0.5, 0.5]))
        bad = Clique(DiscreteConditional.from_table([X[2]], [X[5]], TRANSITION), root)

        with pytest.raises(MalformedTreeError):
            bad.separator_marginal(root, eliminate_discrete)
        assert bad.cached_separator_marginal is None

    def test_elimination_failure_propagates_without_caching(self, discrete_four):
        _, root, a, b, c = discrete_four

        def failing(graph, keep, nr_frontals):
            return EliminationResult.failure("singular system")

        with pytest.raises(EliminationError, match="singular system"):
            c.separator_marginal(root, failing)

        for clique in (a, b, c):
            assert clique.cached_separator_marginal is None

    def test_failure_midway_keeps_completed_ancestors(self, discrete_four):
        _, root, a, b, c = discrete_four
        calls = []

        def fail_second(graph, keep, nr_frontals):
            calls.append(keep)
            if len(calls) == 2:
                return EliminationResult.failure("degenerate")
            return eliminate_discrete(graph, keep, nr_frontals)

        with pytest.raises(EliminationError):
            c.separator_marginal(root, fail_second)

        assert a.cached_separator_marginal is not None
        assert b.cached_separator_marginal is None
        assert c.cached_separator_marginal is None
