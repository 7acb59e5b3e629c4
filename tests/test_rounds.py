"""
Tests for single commitment rounds.
"""

import random

import pytest

from zk_sudoku.errors import InvalidEdgeError, NodeNotInGraphError, RoundAlreadySpentError
from zk_sudoku.rounds import CommitmentRound, Opening, random_permutation
from zk_sudoku.utils import KEY_SIZE, commit, value_from_bytes, verify_commitment


class TestGenerate:
    """Commitments produced by a round."""

    def test_one_commitment_per_node(self, solution_graph, rng):
        rnd = CommitmentRound.generate(solution_graph, rng)
        assert len(rnd.commitments) == 81
        assert all(len(c) == 32 for c in rnd.commitments)
        assert not rnd.spent

    def test_permuted_values_differ_on_every_edge(self, solution_graph):
        for _ in range(5):
            rnd = CommitmentRound.generate(solution_graph)
            assert all(rnd.permuted_value(u) != rnd.permuted_value(v) for u, v in solution_graph.edges())

    def test_permutation_is_a_bijection(self, rng):
        perm = random_permutation(range(1, 10), rng)
        assert sorted(perm) == list(range(1, 10))
        assert sorted(perm.values()) == list(range(1, 10))

    def test_seeded_rounds_are_reproducible(self, solution_graph):
        a = CommitmentRound.generate(solution_graph, random.Random(7))
        b = CommitmentRound.generate(solution_graph, random.Random(7))
        assert a.commitments == b.commitments

    def test_rounds_share_no_commitment(self, solution_graph):
        a = CommitmentRound.generate(solution_graph)
        b = CommitmentRound.generate(solution_graph)
        assert not set(a.commitments) & set(b.commitments)

    def test_permutations_vary(self, solution_graph):
        first_row = range(9)
        perms = {tuple(CommitmentRound.generate(solution_graph).permuted_value(i) for i in first_row)
                 for _ in range(20)}
        assert len(perms) > 1

    def test_graph_without_values(self, public_graph):
        with pytest.raises(ValueError):
            CommitmentRound.generate(public_graph)


class TestReveal:
    """Opening one edge of a round."""

    def test_opening_matches_commitments(self, solution_graph, rng):
        rnd = CommitmentRound.generate(solution_graph, rng)
        u, v = solution_graph.edges()[123]
        opening = rnd.reveal((u, v))
        assert isinstance(opening, Opening)
        assert len(opening.key_a) == len(opening.key_b) == KEY_SIZE
        assert commit(opening.value_a, opening.key_a) == rnd.commitments[u]
        assert verify_commitment(rnd.commitments[v], opening.value_b, opening.key_b)
        assert opening.value_a != opening.value_b

    def test_binding_on_every_edge(self, solution_graph, rng):
        for u, v in solution_graph.edges()[::37]:
            rnd = CommitmentRound.generate(solution_graph, rng)
            expected = rnd.permuted_value(u), rnd.permuted_value(v)
            opening = rnd.reveal((u, v))
            assert (value_from_bytes(opening.value_a), value_from_bytes(opening.value_b)) == expected
            assert commit(opening.value_a, opening.key_a) == rnd.commitments[u]
            assert commit(opening.value_b, opening.key_b) == rnd.commitments[v]

    def test_keys_are_fresh_across_rounds(self, solution_graph):
        edge = solution_graph.edges()[0]
        keys = set()
        for _ in range(50):
            opening = CommitmentRound.generate(solution_graph).reveal(edge)
            keys.update((opening.key_a, opening.key_b))
        assert len(keys) == 100

    def test_second_reveal_fails(self, solution_graph, rng):
        rnd = CommitmentRound.generate(solution_graph, rng)
        rnd.reveal(solution_graph.edges()[0])
        assert rnd.spent
        with pytest.raises(RoundAlreadySpentError):
            rnd.reveal(solution_graph.edges()[1])

    def test_out_of_range_edge_does_not_spend(self, solution_graph, rng):
        rnd = CommitmentRound.generate(solution_graph, rng)
        with pytest.raises(NodeNotInGraphError):
            rnd.reveal((0, 99))
        assert not rnd.spent
        rnd.reveal((0, 1))

    def test_non_edge_is_refused(self, solution_graph, rng):
        rnd = CommitmentRound.generate(solution_graph, rng)
        with pytest.raises(InvalidEdgeError):
            rnd.reveal((0, 30))

    def test_conflicting_solution_shows_equal_values(self, bad_graph, rng):
        opening = CommitmentRound.generate(bad_graph, rng).reveal((0, 1))
        assert opening.value_a == opening.value_b
