"""
Sudoku puzzles and their constraint graphs.

Cells are numbered row-major, `row * n + col`, for an n-by-n grid made of
`box_size`-by-`box_size` boxes. Blank cells hold 0.
"""

from math import isqrt
from typing import Dict, Iterable, Optional, Sequence, Tuple
import json
import logging
import sys

import networkx as nx

from .errors import InvalidPuzzleError
from .graph import ConstraintGraph

logger = logging.getLogger(__name__)

BLANKS = ('_', '.', '0')


class Sudoku:
    """A grid plus the set of `(row, col)` positions that are given clues."""

    def __init__(self, grid: Sequence[Sequence[int]], given: Iterable[Tuple[int, int]] = ()):
        self.grid = tuple(tuple(int(c) for c in row) for row in grid)
        self.given = frozenset((int(r), int(c)) for r, c in given)
        n = len(self.grid)
        b = isqrt(n)
        if n == 0 or b * b != n or any(len(row) != n for row in self.grid):
            raise InvalidPuzzleError(f'grid must be n-by-n with n a square, got {n} rows')
        if any(not (0 <= r < n and 0 <= c < n) for r, c in self.given):
            raise InvalidPuzzleError('given position outside of the grid')
        self.box_size = b

    @property
    def size(self) -> int:
        return len(self.grid)

    @classmethod
    def from_text(cls, text: str) -> 'Sudoku':
        """
        Parse rows of whitespace separated digits, one row per line (or per `;`).
        Blanks are `_`, `.` or `0`; every filled cell is a given clue.
        """
        rows = [line.split() for line in text.replace(';', '\n').splitlines() if line.strip()]
        grid = [[0 if tok in BLANKS else int(tok) for tok in row] for row in rows]
        given = [(r, c) for r, row in enumerate(grid) for c, v in enumerate(row) if v]
        return cls(grid, given)

    def with_givens_of(self, puzzle: 'Sudoku') -> 'Sudoku':
        """This grid, claiming the clues of `puzzle`."""
        return Sudoku(self.grid, puzzle.given)

    def cell(self, row: int, col: int) -> int:
        return row * self.size + col

    def is_filled(self) -> bool:
        return all(v != 0 for row in self.grid for v in row)

    def to_dict(self) -> dict:
        return {'grid': [list(row) for row in self.grid],
                'given': sorted([r, c] for r, c in self.given)}

    @classmethod
    def from_dict(cls, d: dict) -> 'Sudoku':
        try:
            return cls(d['grid'], d.get('given', ()))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPuzzleError(f'malformed puzzle data: {e}') from e

    def __eq__(self, other):
        return isinstance(other, Sudoku) and (self.grid, self.given) == (other.grid, other.given)

    def __hash__(self):
        return hash((self.grid, self.given))

    def __repr__(self):
        return f'Sudoku(size={self.size}, given={len(self.given)})'

    def __str__(self):
        b, n = self.box_size, self.size

        def seg(l, m, r, heavy, light):
            return l + heavy.join(light.join([m * 3] * b) for _ in range(b)) + r

        top = seg('╔', '═', '╗', '╦', '╤')
        thick = seg('╠', '═', '╣', '╬', '╪')
        thin = seg('╟', '─', '╢', '╫', '┼')
        bottom = seg('╚', '═', '╝', '╩', '╧')
        lines = [top]
        for y, row in enumerate(self.grid):
            if y > 0:
                lines.append(thick if y % b == 0 else thin)
            cells = []
            for x, v in enumerate(row):
                sep = '║' if x % b == 0 else '│'
                text = f'{v or "":>2} ' if n > 9 else f' {v or " "} '
                if v and (y, x) in self.given:
                    # Clues in reverse video
                    text = f'\x1b[1;7m{text}\x1b[0m'
                cells.append(sep + text)
            lines.append(''.join(cells) + '║')
        lines.append(bottom)
        return '\n'.join(lines)


def value_node(n: int, v: int) -> int:
    """Index of the anchor node carrying value `v` in an n-by-n grid."""
    return n * n + v - 1


def peer_graph(box_size: int = 3, anchors: Optional[Dict[int, int]] = None) -> nx.Graph:
    """
    Peer relation of a Sudoku: cells sharing a row, column or box are joined.

    With `anchors` (cell index -> given value), n value nodes are appended,
    pairwise joined, and every given cell is joined to the value nodes whose
    value differs from its clue. A proper coloring then has to agree with the
    clues up to the same relabeling as the rest of the grid.
    """
    G = nx.sudoku_graph(box_size)
    if anchors is None:
        return G

    n = box_size * box_size
    values = range(1, n + 1)
    G.add_nodes_from(value_node(n, v) for v in values)
    for v in values:
        for w in range(v + 1, n + 1):
            G.add_edge(value_node(n, v), value_node(n, w))
    for cell, given in sorted(anchors.items()):
        for v in values:
            if v != given:
                G.add_edge(cell, value_node(n, v))
    return G


def _anchors(puzzle: Sudoku) -> Dict[int, int]:
    anchors = {}
    for r, c in puzzle.given:
        v = puzzle.grid[r][c]
        if not 1 <= v <= puzzle.size:
            raise InvalidPuzzleError(f'given cell ({r}, {c}) holds {v}')
        anchors[puzzle.cell(r, c)] = v
    return anchors


def public_graph(puzzle: Sudoku, anchor_givens: bool = False) -> ConstraintGraph:
    """Topology only, as known to a verifier holding the unsolved puzzle."""
    anchors = _anchors(puzzle) if anchor_givens else None
    alphabet = range(1, puzzle.size + 1)
    return ConstraintGraph(peer_graph(puzzle.box_size, anchors), alphabet)


def build(solution: Sudoku, anchor_givens: bool = False, puzzle: Optional[Sudoku] = None) -> ConstraintGraph:
    """
    Constraint graph of a solved puzzle, carrying the solution values.

    With `anchor_givens`, the anchor edges are taken from the clues of the
    public `puzzle`, never from the solution itself, so that prover and
    verifier agree on the topology and a solution ignoring the clues is not
    a proper coloring.

    Raises InvalidPuzzleError if a cell is blank or holds a value outside
    1..n, or if anchoring is asked for without a puzzle of the same size.
    The solution does not need to be valid: the proof is what catches an
    invalid one.
    """
    n = solution.size
    for r, row in enumerate(solution.grid):
        for c, v in enumerate(row):
            if v == 0:
                raise InvalidPuzzleError(f'cell ({r}, {c}) is unfilled')
            if not 1 <= v <= n:
                raise InvalidPuzzleError(f'cell ({r}, {c}) holds {v}, expected 1..{n}')

    values = [v for row in solution.grid for v in row]
    anchors = None
    if anchor_givens:
        if puzzle is None:
            raise InvalidPuzzleError('anchoring the givens needs the public puzzle')
        if puzzle.size != n:
            raise InvalidPuzzleError(f'puzzle is {puzzle.size}x{puzzle.size}, solution is {n}x{n}')
        anchors = _anchors(puzzle)
        values.extend(range(1, n + 1))

    graph = ConstraintGraph.from_peers(values, peer_graph(solution.box_size, anchors), range(1, n + 1))
    logger.debug('Built %r', graph)
    return graph


def load(path: str) -> Sudoku:
    with open(path, 'r') as f:
        return Sudoku.from_dict(json.load(f))


def dump(puzzle: Sudoku, path: str):
    with open(path, 'w') as f:
        json.dump(puzzle.to_dict(), f)


PUZZLE = Sudoku.from_text("""
    4 _ _ _ 9 6 2 _ 8
    3 _ 8 1 _ _ _ 9 _
    9 6 1 _ _ _ 7 _ _
    _ _ 3 4 _ 5 9 6 _
    6 _ _ 9 2 8 _ 7 4
    _ _ 4 7 _ _ 1 _ _
    _ _ 9 _ _ 2 _ _ 1
    _ _ _ 8 3 1 6 4 _
    _ _ _ _ 4 _ _ 2 7
""")

SOLUTION = Sudoku.from_text("""
    4 5 7 3 9 6 2 1 8
    3 2 8 1 5 7 4 9 6
    9 6 1 2 8 4 7 5 3
    7 8 3 4 1 5 9 6 2
    6 1 5 9 2 8 3 7 4
    2 9 4 7 6 3 1 8 5
    8 4 9 6 7 2 5 3 1
    5 7 2 8 3 1 6 4 9
    1 3 6 5 4 9 8 2 7
""").with_givens_of(PUZZLE)

# A valid Sudoku that ignores the clues of PUZZLE.
FAKE_SOLUTION = Sudoku.from_text("""
    1 2 3 4 5 6 7 8 9
    4 5 6 7 8 9 1 2 3
    7 8 9 1 2 3 4 5 6
    2 3 4 5 6 7 8 9 1
    5 6 7 8 9 1 2 3 4
    8 9 1 2 3 4 5 6 7
    3 4 5 6 7 8 9 1 2
    6 7 8 9 1 2 3 4 5
    9 1 2 3 4 5 6 7 8
""").with_givens_of(PUZZLE)


def main(prefix):
    assert build(SOLUTION, anchor_givens=True, puzzle=PUZZLE).is_proper()
    assert not build(FAKE_SOLUTION, anchor_givens=True, puzzle=PUZZLE).is_proper()
    print(PUZZLE)
    dump(PUZZLE, f'{prefix}-puzzle.json')
    dump(SOLUTION, f'{prefix}-solution.json')
    dump(FAKE_SOLUTION, f'{prefix}-fake.json')
    print(f'[+] Wrote {prefix}-puzzle.json, {prefix}-solution.json and {prefix}-fake.json')


if __name__ == '__main__':
    if len(sys.argv) != 2:
        print(f'usage: {sys.argv[0]} <output-prefix>')
        exit(1)
    main(sys.argv[1])
