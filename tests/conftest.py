"""
Pytest fixtures for the zk_sudoku test suite.
"""

import random
import threading

import pytest

from zk_sudoku import sudoku
from zk_sudoku.server import Server


def conflicting_solution() -> sudoku.Sudoku:
    """The sample solution with cell (0, 1) copied from its peer (0, 0)."""
    grid = [list(row) for row in sudoku.SOLUTION.grid]
    grid[0][1] = grid[0][0]
    return sudoku.Sudoku(grid, sudoku.SOLUTION.given)


@pytest.fixture
def rng():
    """Seeded random source for reproducible rounds."""
    return random.Random(1234)


@pytest.fixture
def solution_graph():
    return sudoku.build(sudoku.SOLUTION)


@pytest.fixture
def public_graph():
    return sudoku.public_graph(sudoku.PUZZLE)


@pytest.fixture
def bad_graph():
    return sudoku.build(conflicting_solution())


@pytest.fixture
def make_server():
    """Start HTTP provers on ephemeral ports; shut them down after the test."""
    servers = []

    def _make(graph, **kwargs):
        server = Server(('127.0.0.1', 0), graph, **kwargs)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append(server)
        host, port = server.server_address[:2]
        return server, f'http://{host}:{port}'

    yield _make

    for server in servers:
        server.shutdown()
        server.server_close()
