#!/usr/bin/env python3
"""
Honest verifier for the zero-knowledge Sudoku proof.

One pass requests a batch of commitments, challenges one random edge per
round and checks every opening. The verifier can run passes continuously
until told to stop.
"""

import argparse
import logging
import random
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import requests
from networkx.readwrite import json_graph

from . import codec, sudoku
from .config import VerifierConfig
from .errors import ProtocolError, ProverUnavailableError, ZkSudokuError
from .graph import ConstraintGraph, Edge
from .rounds import Opening
from .server import ERROR_HEADER, SESSION_HEADER
from .session import SessionStore
from .utils import VALUE_SIZE, default_rng, value_from_bytes, verify_commitment

logger = logging.getLogger(__name__)

ACCEPTED = 'accepted'
REJECTED = 'rejected'
ERROR = 'error'


@dataclass
class PassResult:
    """
    Outcome of one verification pass.

    `rejected` means the prover failed a check; `error` means the pass could
    not be completed (transport or protocol failure) and says nothing about
    the proof.
    """
    status: str
    count: int
    reason: str = ''
    round: Optional[int] = None

    @property
    def accepted(self) -> bool:
        return self.status == ACCEPTED


class LocalProver:
    """In-process channel to a SessionStore."""

    def __init__(self, sessions: SessionStore):
        self.sessions = sessions

    def request_commitments(self, count: Optional[int] = None) -> Tuple[str, List[Sequence[bytes]]]:
        return self.sessions.request_commitments(None, count)

    def reveal_edges(self, session_id: str, edges: Sequence[Edge]) -> List[Opening]:
        return self.sessions.reveal_edges(session_id, edges)


class HttpProver:
    """Channel to the HTTP prover of `server.py`."""

    def __init__(self, url: str = 'http://localhost:8000', timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.url = url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()

    def _call(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            response = self.http.request(method, self.url + path, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProverUnavailableError(f'{method} {path}: {e}') from e
        if response.status_code != 200:
            error = response.headers.get(ERROR_HEADER, 'HTTP error')
            raise ProverUnavailableError(
                f'{method} {path}: {response.status_code} {error}: {response.text.strip()}')
        return response

    def request_commitments(self, count: Optional[int] = None) -> Tuple[str, List[List[bytes]]]:
        params = {'count': count} if count is not None else None
        response = self._call('GET', '/nodes', params=params)
        session_id = response.headers.get(SESSION_HEADER)
        if not session_id:
            raise ProtocolError('prover did not return a session id')
        return session_id, codec.decode_commitments(response.content)

    def reveal_edges(self, session_id: str, edges: Sequence[Edge]) -> List[Opening]:
        response = self._call('POST', '/verify', data=codec.encode_edges(edges),
                              headers={SESSION_HEADER: session_id,
                                       'Content-Type': 'application/octet-stream'})
        return codec.decode_openings(response.content)

    def fetch_graph(self) -> ConstraintGraph:
        """Public constraint graph as advertised by the prover."""
        msg = self._call('GET', '/graph').json()
        try:
            G = json_graph.adjacency_graph(msg['graph'], directed=False, multigraph=False)
            return ConstraintGraph(G, msg['alphabet'])
        except (KeyError, TypeError) as e:
            raise ProtocolError(f'malformed graph description: {e}') from e


class HonestVerifier:
    def __init__(self, prover, graph: ConstraintGraph, count: Optional[int] = None,
                 rng: Optional[random.Random] = None):
        self.prover = prover
        self.edges = list(graph.edges())
        self.n = graph.number_of_nodes()
        self.alphabet = set(graph.alphabet)
        self.count = count
        self.rng = rng if rng is not None else default_rng()
        if not self.edges:
            raise ValueError('cannot verify a graph without edges')

    def choose_edges(self, count: int) -> List[Edge]:
        return [self.rng.choice(self.edges) for _ in range(count)]

    def verify_round(self, rnd: int, commitments: Sequence[bytes], edge: Edge,
                     opening: Opening) -> Optional[str]:
        """
        Check the opening of one round.

        Returns:
            None if the round passes, otherwise the reason it failed
        """
        u, v = edge
        for node, value, key in ((u, opening.value_a, opening.key_a),
                                 (v, opening.value_b, opening.key_b)):
            if not verify_commitment(commitments[node], value, key):
                return f'hash mismatch for node {node}'
            if len(value) != VALUE_SIZE or value_from_bytes(value) not in self.alphabet:
                return f'invalid value for node {node}: {value.hex()}'

        if opening.value_a == opening.value_b:
            return f'adjacent identical nodes ({u}, {v})'

        logger.debug('Round %d: edge (%d, %d) ok', rnd, u, v)
        return None

    def verify(self) -> PassResult:
        """
        Execute one verification pass.

        Raises:
            ProverUnavailableError, ProtocolError, CodecError if the pass could
            not be completed
        """
        session_id, commitments = self.prover.request_commitments(self.count)
        count = self.count if self.count is not None else len(self.edges)
        if len(commitments) != count:
            raise ProtocolError(f'expected {count} rounds of commitments, got {len(commitments)}')
        for rnd, c in enumerate(commitments):
            if len(c) != self.n:
                raise ProtocolError(f'round {rnd}: expected {self.n} commitments, got {len(c)}')

        edges = self.choose_edges(count)
        openings = self.prover.reveal_edges(session_id, edges)
        if len(openings) != count:
            raise ProtocolError(f'expected {count} openings, got {len(openings)}')

        for rnd, (c, edge, opening) in enumerate(zip(commitments, edges, openings)):
            reason = self.verify_round(rnd, c, edge, opening)
            if reason is not None:
                logger.info('Pass rejected at round %d: %s', rnd, reason)
                return PassResult(REJECTED, count, reason, rnd)

        logger.info('Pass accepted: %d rounds', count)
        return PassResult(ACCEPTED, count)

    def run(self, stop: Optional[threading.Event] = None, interval: float = 1.0,
            max_passes: Optional[int] = None,
            on_result: Optional[Callable[[PassResult], None]] = None) -> Counter:
        """
        Run independent passes until `stop` is set or `max_passes` is reached.

        The stop signal is only checked between passes, so the pass in flight
        always completes its evaluation.

        Returns:
            number of passes per status
        """
        stop = stop or threading.Event()
        stats = Counter()
        while not stop.is_set():
            try:
                result = self.verify()
            except ZkSudokuError as e:
                logger.warning('Pass failed: %s', e)
                result = PassResult(ERROR, self.count or len(self.edges), str(e))
            stats[result.status] += 1
            if on_result is not None:
                on_result(result)
            if max_passes is not None and sum(stats.values()) >= max_passes:
                break
            stop.wait(interval)
        return stats


def print_result(result: PassResult):
    if result.accepted:
        print(f'Verifying - Success ({result.count} rounds)')
    elif result.status == REJECTED:
        print(f'Verifying - Failure: round {result.round}: {result.reason}')
    else:
        print(f'Verifying - Error: {result.reason}')


def parse_args(argv=None):
    config = VerifierConfig.from_env()
    parser = argparse.ArgumentParser(description='Zero-knowledge Sudoku verifier')
    parser.add_argument('--url', default=config.url)
    parser.add_argument('--count', type=int, default=config.count,
                        help='rounds per pass (default: one per edge)')
    parser.add_argument('--interval', type=float, default=config.interval)
    parser.add_argument('--timeout', type=float, default=config.timeout)
    parser.add_argument('--passes', type=int, default=None, help='stop after this many passes')
    parser.add_argument('--puzzle', default=None, help='JSON puzzle file (default: built-in sample)')
    parser.add_argument('--anchor-givens', action='store_true',
                        help='the prover binds its proof to the clues')
    parser.add_argument('--fetch-graph', action='store_true',
                        help='use the constraint graph advertised by the prover')
    args = parser.parse_args(argv)
    config = VerifierConfig(url=args.url, count=args.count, interval=args.interval, timeout=args.timeout)
    return config, args


def main(argv=None):
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    config, args = parse_args(argv)

    prover = HttpProver(config.url, config.timeout)
    if args.fetch_graph:
        graph = prover.fetch_graph()
    else:
        puzzle = sudoku.load(args.puzzle) if args.puzzle else sudoku.PUZZLE
        graph = sudoku.public_graph(puzzle, anchor_givens=args.anchor_givens)

    print('=' * 60)
    print('Honest Verifier - Zero-Knowledge Sudoku')
    print('=' * 60)
    print(f'[+] Graph has {graph.number_of_nodes()} nodes and {len(graph.edges())} edges')

    verifier = HonestVerifier(prover, graph, count=config.count)
    stop = threading.Event()
    try:
        stats = verifier.run(stop, config.interval, args.passes, print_result)
    except KeyboardInterrupt:
        stop.set()
        print('\n[+] Stopped')
        return
    print(f'[+] {stats[ACCEPTED]} accepted, {stats[REJECTED]} rejected, {stats[ERROR]} errors')


if __name__ == '__main__':
    main()
