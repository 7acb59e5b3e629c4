"""
Constraint graph of a coloring-reducible puzzle.

Nodes are the integers 0..n-1, edges are the "must differ" constraints.
A solution is a proper coloring: no edge joins two nodes of the same value.
"""

import logging
from typing import Iterable, Optional, Sequence, Tuple

import networkx as nx

from .errors import InvalidEdgeError, InvalidPuzzleError, NodeNotInGraphError
from .utils import is_valid_coloring

logger = logging.getLogger(__name__)

Edge = Tuple[int, int]


def ordered_edges(G: nx.Graph) -> Tuple[Edge, ...]:
    """Edges of `G` as sorted `(min, max)` pairs."""
    return tuple(sorted((min(u, v), max(u, v)) for u, v in G.edges))


class ConstraintGraph:
    """
    Immutable constraint graph, optionally carrying a coloring.

    The verifier only needs the topology (`values is None`); the prover
    builds the graph together with its solution values.
    """

    def __init__(self, peers: nx.Graph, alphabet: Sequence[int],
                 values: Optional[Sequence[int]] = None):
        n = peers.number_of_nodes()
        if sorted(peers.nodes) != list(range(n)):
            raise InvalidPuzzleError('graph nodes must be numbered 0..n-1')
        self._alphabet = tuple(alphabet)
        if len(set(self._alphabet)) != len(self._alphabet):
            raise InvalidPuzzleError('alphabet contains duplicate values')

        if values is not None:
            values = tuple(values)
            if len(values) != n:
                raise InvalidPuzzleError(f'expected {n} values, got {len(values)}')
            bad = [v for v in values if v not in self._alphabet]
            if bad:
                raise InvalidPuzzleError(f'values outside of the alphabet: {sorted(set(bad))}')

        self._G = nx.freeze(peers.copy())
        self._values = values
        self._edges = ordered_edges(self._G)

    @classmethod
    def from_peers(cls, values: Sequence[int], peers: nx.Graph,
                   alphabet: Sequence[int]) -> 'ConstraintGraph':
        return cls(peers, alphabet, values)

    @property
    def G(self) -> nx.Graph:
        return self._G

    @property
    def alphabet(self) -> Tuple[int, ...]:
        return self._alphabet

    @property
    def values(self) -> Optional[Tuple[int, ...]]:
        return self._values

    def number_of_nodes(self) -> int:
        return self._G.number_of_nodes()

    def edges(self) -> Tuple[Edge, ...]:
        return self._edges

    def value(self, node: int) -> int:
        if self._values is None:
            raise ValueError('graph carries no values')
        return self._values[node]

    def check_edge(self, edge: Iterable[int]) -> Edge:
        """Validate a challenged edge and return it as a pair of ints."""
        u, v = edge
        n = self.number_of_nodes()
        for x in (u, v):
            if not isinstance(x, int) or not 0 <= x < n:
                raise NodeNotInGraphError(f'node {x!r} is not in the graph (0..{n - 1})')
        if not self._G.has_edge(u, v):
            raise InvalidEdgeError(f'({u}, {v}) is not a constraint edge')
        return u, v

    def is_proper(self) -> bool:
        """True when the carried values are a proper coloring."""
        if self._values is None:
            return False
        return is_valid_coloring(self._G, self._values, self._alphabet)

    def __repr__(self):
        return (f'ConstraintGraph(nodes={self.number_of_nodes()}, '
                f'edges={len(self._edges)}, alphabet={len(self._alphabet)})')
