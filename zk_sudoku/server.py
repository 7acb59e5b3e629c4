"""
HTTP prover.

    GET  /nodes?count=N[&session=ID]   commitments of N fresh rounds
    POST /verify                       openings of one edge per round
    GET  /graph                        public constraint graph (JSON)

The session id is returned in the X-Session-Id header of /nodes and must be
sent back (header or `session` query parameter) with /verify.
"""

import argparse
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from networkx.readwrite import json_graph

from . import codec, sudoku
from .config import ProverConfig
from .errors import CodecError, InvalidCountError, ZkSudokuError
from .graph import ConstraintGraph
from .session import SessionStore

logger = logging.getLogger(__name__)

SESSION_HEADER = 'X-Session-Id'
ERROR_HEADER = 'X-Error'
MAX_BODY = 16 * 1024 * 1024


class Prover(BaseHTTPRequestHandler):
    protocol_version = 'HTTP/1.1'

    def send_msg(self, body: bytes, status: int = 200, content_type: str = 'application/octet-stream',
                 headers: Optional[dict] = None):
        self.send_response(status)
        self.send_header('Content-Type', content_type)
        self.send_header('Content-Length', str(len(body)))
        for k, v in (headers or {}).items():
            self.send_header(k, v)
        self.end_headers()
        self.wfile.write(body)

    def send_error_msg(self, e: Exception, status: int = 400):
        logger.warning('%s %s from %s: %s: %s', self.command, self.path,
                       self.client_address[0], type(e).__name__, e)
        # The request body may be unread
        self.close_connection = True
        self.send_msg(str(e).encode('utf-8'), status, 'text/plain; charset=utf-8',
                      {ERROR_HEADER: type(e).__name__, 'Connection': 'close'})

    def send_not_found(self):
        self.close_connection = True
        self.send_msg(b'', 404, headers={'Connection': 'close'})

    def recv_msg(self) -> bytes:
        try:
            length = int(self.headers.get('Content-Length') or 0)
        except ValueError:
            raise CodecError('invalid Content-Length header') from None
        if not 0 <= length <= MAX_BODY:
            raise CodecError(f'invalid body length {length}')
        return self.rfile.read(length)

    def session_id(self, query: dict) -> Optional[str]:
        return self.headers.get(SESSION_HEADER) or query.get('session', [None])[0]

    def do_GET(self):
        url = urlsplit(self.path)
        query = parse_qs(url.query)
        try:
            if url.path == '/nodes':
                self.handle_nodes(query)
            elif url.path == '/graph':
                self.handle_graph()
            else:
                self.send_not_found()
        except ZkSudokuError as e:
            self.send_error_msg(e)

    def do_POST(self):
        url = urlsplit(self.path)
        query = parse_qs(url.query)
        try:
            if url.path == '/verify':
                self.handle_verify(query)
            else:
                self.send_not_found()
        except ZkSudokuError as e:
            self.send_error_msg(e)

    def handle_nodes(self, query: dict):
        count = None
        if 'count' in query:
            try:
                count = int(query['count'][0])
            except ValueError:
                raise InvalidCountError(f'count must be an integer, got {query["count"][0]!r}') from None
        session_id, commitments = self.server.sessions.request_commitments(self.session_id(query), count)
        logger.debug('Sending %d rounds of commitments to %s', len(commitments), self.client_address[0])
        self.send_msg(codec.encode_commitments(commitments), headers={SESSION_HEADER: session_id})

    def handle_verify(self, query: dict):
        edges = codec.decode_edges(self.recv_msg())
        session_id = self.session_id(query)
        openings = self.server.sessions.reveal_edges(session_id, edges)
        logger.debug('Opening %d rounds for %s', len(openings), self.client_address[0])
        self.send_msg(codec.encode_openings(openings), headers={SESSION_HEADER: session_id})

    def handle_graph(self):
        public = self.server.public_graph
        msg = {'statement': 'I know a solution for the puzzle.',
               'nodes': public.number_of_nodes(),
               'edges': len(public.edges()),
               'alphabet': list(public.alphabet),
               'graph': json_graph.adjacency_data(public.G)}
        self.send_msg(json.dumps(msg).encode('utf-8'), content_type='application/json')

    def log_message(self, format, *args):
        logger.debug('%s - %s', self.address_string(), format % args)


class Server(ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, graph: ConstraintGraph, public_graph: Optional[ConstraintGraph] = None,
                 sessions: Optional[SessionStore] = None):
        self.graph = graph
        self.public_graph = public_graph or ConstraintGraph(graph.G, graph.alphabet)
        self.sessions = sessions or SessionStore(graph)
        if self.public_graph.edges() != graph.edges():
            raise ValueError('public graph does not match the topology of the solution graph')
        if not graph.is_proper():
            logger.warning('The loaded solution is not a proper coloring, verifiers will reject it')
        ThreadingHTTPServer.__init__(self, server_address, Prover)

    @classmethod
    def from_config(cls, config: ProverConfig) -> 'Server':
        solution = sudoku.load(config.solution_file) if config.solution_file else sudoku.SOLUTION
        puzzle = sudoku.load(config.puzzle_file) if config.puzzle_file else sudoku.PUZZLE
        graph = sudoku.build(solution, anchor_givens=config.anchor_givens, puzzle=puzzle)
        public = sudoku.public_graph(puzzle, anchor_givens=config.anchor_givens)
        sessions = SessionStore(graph, ttl=config.session_ttl, max_sessions=config.max_sessions,
                                max_count=config.max_count)
        return cls((config.host, config.port), graph, public_graph=public, sessions=sessions)


def parse_args(argv=None) -> ProverConfig:
    config = ProverConfig.from_env()
    parser = argparse.ArgumentParser(description='Zero-knowledge Sudoku prover')
    parser.add_argument('--host', default=config.host)
    parser.add_argument('--port', type=int, default=config.port)
    parser.add_argument('--solution', dest='solution_file', default=config.solution_file,
                        help='JSON solution file (default: built-in sample)')
    parser.add_argument('--puzzle', dest='puzzle_file', default=config.puzzle_file,
                        help='JSON public puzzle (default: built-in sample)')
    parser.add_argument('--anchor-givens', action='store_true', default=config.anchor_givens,
                        help="bind the proof to the puzzle's clues")
    parser.add_argument('--session-ttl', type=float, default=config.session_ttl)
    parser.add_argument('--max-sessions', type=int, default=config.max_sessions)
    parser.add_argument('--max-count', type=int, default=config.max_count)
    return ProverConfig(**vars(parser.parse_args(argv)))


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    config = parse_args(argv)
    server = Server.from_config(config)
    print(f'[+] Prover running on {config.host}:{config.port}')
    print(f'[+] Graph: {server.graph.number_of_nodes()} nodes, {len(server.graph.edges())} edges')
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print('[+] Shutting down')
    finally:
        server.server_close()


if __name__ == '__main__':
    main()
