"""
Prover-side state.

A ProverSession holds the rounds of its latest batch of commitments until the
verifier challenges them; the SessionStore keeps the sessions of concurrent
verifiers apart and evicts them once they expire.
"""

import logging
import random
import threading
import time
from collections import OrderedDict
from secrets import token_hex
from typing import Callable, List, Optional, Sequence, Tuple

from .errors import (InvalidCountError, LengthMismatchError, RoundAlreadySpentError,
                     StatePrecedenceError, ZkSudokuError)
from .graph import ConstraintGraph, Edge
from .rounds import CommitmentRound, Opening
from .utils import default_rng

logger = logging.getLogger(__name__)

IDLE = 'idle'
READY = 'ready'

DEFAULT_SESSION_TTL = 60.0
DEFAULT_MAX_SESSIONS = 1024
DEFAULT_MAX_COUNT = 10000


class ProverSession:
    """
    State machine `idle -> ready(N) -> idle`.

    `request_commitments` generates N fresh rounds; `reveal_edges` opens one
    edge per round and discards the whole batch. Both run under the session's
    lock, so concurrent calls can never open the same round twice.
    """

    def __init__(self, graph: ConstraintGraph, session_id: Optional[str] = None,
                 rng: Optional[random.Random] = None, max_count: Optional[int] = DEFAULT_MAX_COUNT,
                 clock: Callable[[], float] = time.monotonic):
        self.graph = graph
        self.id = session_id or token_hex(16)
        self.max_count = max_count
        self._rng = rng if rng is not None else default_rng()
        self._clock = clock
        self._lock = threading.Lock()
        self._rounds: List[CommitmentRound] = []
        self._spent = False
        self.last_used = clock()

    @property
    def state(self) -> str:
        return READY if self._rounds else IDLE

    @property
    def count(self) -> int:
        return len(self._rounds)

    def _check_count(self, count) -> int:
        if count is None:
            return len(self.graph.edges())
        if isinstance(count, bool) or not isinstance(count, int):
            raise InvalidCountError(f'count must be an integer, got {count!r}')
        if count <= 0:
            raise InvalidCountError(f'count must be positive, got {count}')
        if self.max_count is not None and count > self.max_count:
            raise InvalidCountError(f'count must be at most {self.max_count}, got {count}')
        return count

    def request_commitments(self, count: Optional[int] = None) -> List[Tuple[bytes, ...]]:
        count = self._check_count(count)
        with self._lock:
            self.last_used = self._clock()
            if self._rounds:
                logger.info('Session %s: discarding %d unchallenged rounds', self.id, len(self._rounds))
            self._rounds = [CommitmentRound.generate(self.graph, self._rng) for _ in range(count)]
            self._spent = False
            logger.info('Session %s: generated %d rounds', self.id, count)
            return [rnd.commitments for rnd in self._rounds]

    def reveal_edges(self, selections: Sequence[Edge]) -> List[Opening]:
        with self._lock:
            self.last_used = self._clock()
            if not self._rounds:
                if self._spent:
                    raise RoundAlreadySpentError(f'session {self.id}: batch has already been opened')
                raise StatePrecedenceError(f'session {self.id}: no commitments were requested')
            if len(selections) != len(self._rounds):
                raise LengthMismatchError(
                    f'expected {len(self._rounds)} edges, got {len(selections)}')

            # Validate the whole batch before opening anything
            edges = [rnd.check(edge) for rnd, edge in zip(self._rounds, selections)]
            openings = [rnd.reveal(edge) for rnd, edge in zip(self._rounds, edges)]

            self._rounds = []
            self._spent = True
            logger.info('Session %s: opened %d rounds', self.id, len(openings))
            return openings

    def reset(self):
        with self._lock:
            self._rounds = []
            self._spent = False


class SessionStore:
    """
    The live sessions of one prover, bounded in number and lifetime.

    A session expires `ttl` seconds after its last use. When `max_sessions`
    is reached, the least recently used session is evicted. A session is also
    removed as soon as its batch has been opened; its id is remembered (with
    the same bounds) so that a replay is answered with RoundAlreadySpentError.
    """

    def __init__(self, graph: ConstraintGraph, ttl: float = DEFAULT_SESSION_TTL,
                 max_sessions: int = DEFAULT_MAX_SESSIONS, max_count: Optional[int] = DEFAULT_MAX_COUNT,
                 rng: Optional[random.Random] = None, clock: Callable[[], float] = time.monotonic):
        self.graph = graph
        self.ttl = ttl
        self.max_sessions = max_sessions
        self.max_count = max_count
        self._rng = rng
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: 'OrderedDict[str, ProverSession]' = OrderedDict()
        self._completed: 'OrderedDict[str, float]' = OrderedDict()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id):
        with self._lock:
            return session_id in self._sessions

    def _evict_expired(self):
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if now - s.last_used > self.ttl]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info('Evicted %d expired sessions', len(expired))
        while self._completed and now - next(iter(self._completed.values())) > self.ttl:
            self._completed.popitem(last=False)

    def evict_expired(self):
        with self._lock:
            self._evict_expired()

    def create(self) -> ProverSession:
        with self._lock:
            self._evict_expired()
            while len(self._sessions) >= self.max_sessions:
                sid, _ = self._sessions.popitem(last=False)
                logger.warning('Session limit reached, evicting %s', sid)
            session = ProverSession(self.graph, rng=self._rng, max_count=self.max_count, clock=self._clock)
            self._sessions[session.id] = session
            logger.info('Created session %s', session.id)
            return session

    def get(self, session_id: Optional[str]) -> ProverSession:
        with self._lock:
            self._evict_expired()
            session = self._sessions.get(session_id) if session_id else None
            if session is None and session_id in self._completed:
                raise RoundAlreadySpentError(f'session {session_id}: batch has already been opened')
            if session is None:
                raise StatePrecedenceError(f'unknown or expired session {session_id!r}')
            self._sessions.move_to_end(session_id)
            return session

    def request_commitments(self, session_id: Optional[str] = None,
                            count: Optional[int] = None) -> Tuple[str, List[Tuple[bytes, ...]]]:
        session = self.get(session_id) if session_id else self.create()
        try:
            return session.id, session.request_commitments(count)
        except ZkSudokuError:
            if session_id is None:
                self.discard(session.id)
            raise

    def reveal_edges(self, session_id: Optional[str], selections: Sequence[Edge]) -> List[Opening]:
        session = self.get(session_id)
        openings = session.reveal_edges(selections)
        with self._lock:
            # Only drop the session if it was not refilled in the meantime
            if self._sessions.get(session.id) is session and session.state == IDLE:
                del self._sessions[session.id]
                self._completed[session.id] = self._clock()
                while len(self._completed) > self.max_sessions:
                    self._completed.popitem(last=False)
                logger.info('Session %s completed', session.id)
        return openings

    def discard(self, session_id: str):
        with self._lock:
            self._sessions.pop(session_id, None)
