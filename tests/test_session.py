"""
Tests for the prover session state machine and the session store.
"""

import threading

import pytest

from zk_sudoku.errors import (InvalidCountError, InvalidEdgeError, LengthMismatchError,
                              RoundAlreadySpentError, StatePrecedenceError)
from zk_sudoku.session import IDLE, READY, ProverSession, SessionStore
from zk_sudoku.utils import commit


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestProverSession:
    """Idle -> Ready(N) -> Idle."""

    def test_starts_idle(self, solution_graph):
        session = ProverSession(solution_graph)
        assert session.state == IDLE
        assert len(session.id) == 32

    def test_default_count_is_edge_count(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        commitments = session.request_commitments()
        assert len(commitments) == 810
        assert session.state == READY
        assert session.count == 810

    def test_request_and_reveal(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        commitments = session.request_commitments(3)
        edges = list(solution_graph.edges()[:3])
        openings = session.reveal_edges(edges)
        assert len(openings) == 3
        for c, (u, v), o in zip(commitments, edges, openings):
            assert commit(o.value_a, o.key_a) == c[u]
            assert commit(o.value_b, o.key_b) == c[v]
        assert session.state == IDLE

    @pytest.mark.parametrize('count', [0, -1, 1.5, '3', True])
    def test_invalid_count(self, solution_graph, count):
        session = ProverSession(solution_graph)
        with pytest.raises(InvalidCountError):
            session.request_commitments(count)
        assert session.state == IDLE

    def test_count_above_limit(self, solution_graph):
        session = ProverSession(solution_graph, max_count=5)
        with pytest.raises(InvalidCountError):
            session.request_commitments(6)

    def test_reveal_before_request(self, solution_graph):
        session = ProverSession(solution_graph)
        with pytest.raises(StatePrecedenceError):
            session.reveal_edges([(0, 1)])

    def test_second_reveal_fails(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        session.request_commitments(2)
        session.reveal_edges([(0, 1), (0, 2)])
        with pytest.raises(RoundAlreadySpentError):
            session.reveal_edges([(0, 1), (0, 2)])

    def test_length_mismatch_keeps_batch(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        session.request_commitments(2)
        with pytest.raises(LengthMismatchError):
            session.reveal_edges([(0, 1)])
        assert session.state == READY
        assert len(session.reveal_edges([(0, 1), (1, 2)])) == 2

    def test_bad_edge_spends_nothing(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        session.request_commitments(2)
        with pytest.raises(InvalidEdgeError):
            session.reveal_edges([(0, 1), (0, 30)])
        assert session.state == READY
        session.reveal_edges([(0, 1), (0, 2)])

    def test_new_request_replaces_batch(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        first = session.request_commitments(2)
        second = session.request_commitments(1)
        assert first[0] != second[0]
        with pytest.raises(LengthMismatchError):
            session.reveal_edges([(0, 1), (0, 2)])

    def test_new_request_after_reveal(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        session.request_commitments(1)
        session.reveal_edges([(0, 1)])
        session.request_commitments(1)
        assert len(session.reveal_edges([(0, 1)])) == 1

    def test_reset(self, solution_graph, rng):
        session = ProverSession(solution_graph, rng=rng)
        session.request_commitments(1)
        session.reset()
        assert session.state == IDLE
        with pytest.raises(StatePrecedenceError):
            session.reveal_edges([(0, 1)])

    def test_successive_batches_do_not_repeat(self, solution_graph):
        session = ProverSession(solution_graph)
        a = session.request_commitments(10)
        b = session.request_commitments(10)
        assert not {c for rnd in a for c in rnd} & {c for rnd in b for c in rnd}

    def test_concurrent_reveals_open_once(self, solution_graph):
        session = ProverSession(solution_graph)
        session.request_commitments(50)
        edges = list(solution_graph.edges()[:50])
        outcomes = []
        barrier = threading.Barrier(8)

        def reveal():
            barrier.wait()
            try:
                session.reveal_edges(edges)
                outcomes.append('ok')
            except RoundAlreadySpentError:
                outcomes.append('spent')

        threads = [threading.Thread(target=reveal) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count('ok') == 1
        assert outcomes.count('spent') == 7


class TestSessionStore:
    """Sessions of concurrent verifiers."""

    def test_request_creates_session(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid, commitments = store.request_commitments(count=1)
        assert sid in store
        assert len(commitments) == 1

    def test_sessions_are_isolated(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid_a, _ = store.request_commitments(count=1)
        sid_b, _ = store.request_commitments(count=2)
        assert sid_a != sid_b
        store.reveal_edges(sid_a, [(0, 1)])
        assert len(store.reveal_edges(sid_b, [(0, 1), (0, 2)])) == 2

    def test_existing_session_is_refilled(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid, _ = store.request_commitments(count=1)
        same, _ = store.request_commitments(sid, count=2)
        assert same == sid
        assert len(store) == 1

    def test_unknown_session(self, solution_graph):
        store = SessionStore(solution_graph)
        with pytest.raises(StatePrecedenceError):
            store.reveal_edges('nope', [(0, 1)])
        with pytest.raises(StatePrecedenceError):
            store.reveal_edges(None, [(0, 1)])

    def test_replay_against_spent_session(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid, _ = store.request_commitments(count=1)
        store.reveal_edges(sid, [(0, 1)])
        with pytest.raises(RoundAlreadySpentError):
            store.reveal_edges(sid, [(0, 1)])

    def test_invalid_count_leaves_no_session(self, solution_graph):
        store = SessionStore(solution_graph)
        with pytest.raises(InvalidCountError):
            store.request_commitments(count=0)
        assert len(store) == 0

    def test_sessions_expire(self, solution_graph, rng):
        clock = FakeClock()
        store = SessionStore(solution_graph, ttl=10, rng=rng, clock=clock)
        sid, _ = store.request_commitments(count=1)
        clock.now = 11
        with pytest.raises(StatePrecedenceError):
            store.reveal_edges(sid, [(0, 1)])
        assert len(store) == 0

    def test_use_extends_lifetime(self, solution_graph, rng):
        clock = FakeClock()
        store = SessionStore(solution_graph, ttl=10, rng=rng, clock=clock)
        sid, _ = store.request_commitments(count=1)
        clock.now = 8
        store.request_commitments(sid, count=1)
        clock.now = 16
        assert len(store.reveal_edges(sid, [(0, 1)])) == 1

    def test_oldest_session_evicted_at_limit(self, solution_graph, rng):
        store = SessionStore(solution_graph, max_sessions=2, rng=rng)
        first, _ = store.request_commitments(count=1)
        second, _ = store.request_commitments(count=1)
        third, _ = store.request_commitments(count=1)
        assert first not in store
        assert second in store and third in store

    def test_completed_session_is_removed(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid, _ = store.request_commitments(count=1)
        store.reveal_edges(sid, [(0, 1)])
        assert sid not in store
        assert len(store) == 0
        with pytest.raises(RoundAlreadySpentError):
            store.request_commitments(sid, count=1)

    def test_completed_ids_expire(self, solution_graph, rng):
        clock = FakeClock()
        store = SessionStore(solution_graph, ttl=10, rng=rng, clock=clock)
        sid, _ = store.request_commitments(count=1)
        store.reveal_edges(sid, [(0, 1)])
        clock.now = 11
        with pytest.raises(StatePrecedenceError):
            store.reveal_edges(sid, [(0, 1)])

    def test_completed_ids_are_bounded(self, solution_graph, rng):
        store = SessionStore(solution_graph, max_sessions=2, rng=rng)
        sids = []
        for _ in range(3):
            sid, _ = store.request_commitments(count=1)
            store.reveal_edges(sid, [(0, 1)])
            sids.append(sid)
        with pytest.raises(StatePrecedenceError):
            store.reveal_edges(sids[0], [(0, 1)])
        with pytest.raises(RoundAlreadySpentError):
            store.reveal_edges(sids[2], [(0, 1)])

    def test_failed_reveal_keeps_session(self, solution_graph, rng):
        store = SessionStore(solution_graph, rng=rng)
        sid, _ = store.request_commitments(count=2)
        with pytest.raises(LengthMismatchError):
            store.reveal_edges(sid, [(0, 1)])
        assert sid in store
