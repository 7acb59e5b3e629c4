import logging
import random
from typing import Dict, List, NamedTuple, Optional, Tuple

from .errors import RoundAlreadySpentError
from .graph import ConstraintGraph, Edge
from .utils import KEY_SIZE, commit, default_rng, value_to_bytes

logger = logging.getLogger(__name__)


class Opening(NamedTuple):
    """Opening information of both endpoints of a challenged edge."""
    value_a: bytes
    key_a: bytes
    value_b: bytes
    key_b: bytes


def random_permutation(alphabet, rng: random.Random) -> Dict[int, int]:
    perm = list(alphabet)
    rng.shuffle(perm)
    return dict(zip(alphabet, perm))


def commit_to_coloring(coloring, perm: Dict[int, int], rng: random.Random) -> ([bytes], [bytes]):
    """
    Commit to a permuted version of the given coloring.

    Input: a coloring as a list of values, and a permutation of its alphabet
    Outputs:
    - commitments to the permuted value of each node, in node order
    - opening key of each commitment
    """
    commitments = []
    openings = []
    seen = set()

    for c in coloring:
        r = rng.randbytes(KEY_SIZE)
        # Keys must be distinct within a round
        while r in seen:
            r = rng.randbytes(KEY_SIZE)
        seen.add(r)
        commitments.append(commit(value_to_bytes(perm[c]), r))
        openings.append(r)

    return commitments, openings


class CommitmentRound:
    """
    One round of the proof: a fresh permutation of the values, a fresh key per
    node and the commitments to the permuted values.

    A round answers exactly one challenge. The plaintext values and keys stay
    private until `reveal` opens the two endpoints of an edge.
    """

    def __init__(self, graph: ConstraintGraph, perm: Dict[int, int],
                 commitments: List[bytes], keys: List[bytes]):
        self.graph = graph
        self._perm = perm
        self._commitments = tuple(commitments)
        self._keys = keys
        self._spent = False

    @classmethod
    def generate(cls, graph: ConstraintGraph, rng: Optional[random.Random] = None) -> 'CommitmentRound':
        if graph.values is None:
            raise ValueError('cannot commit to a graph without values')
        if rng is None:
            rng = default_rng()
        perm = random_permutation(graph.alphabet, rng)
        commitments, keys = commit_to_coloring(graph.values, perm, rng)
        return cls(graph, perm, commitments, keys)

    @property
    def commitments(self) -> Tuple[bytes, ...]:
        return self._commitments

    @property
    def spent(self) -> bool:
        return self._spent

    def permuted_value(self, node: int) -> int:
        return self._perm[self.graph.value(node)]

    def check(self, edge: Edge) -> Edge:
        if self._spent:
            raise RoundAlreadySpentError('round has already been opened')
        return self.graph.check_edge(edge)

    def reveal(self, edge: Edge) -> Opening:
        u, v = self.check(edge)
        self._spent = True
        opening = Opening(
            value_to_bytes(self.permuted_value(u)), self._keys[u],
            value_to_bytes(self.permuted_value(v)), self._keys[v],
        )
        # Nothing of this round is needed any more
        self._perm = None
        self._keys = None
        return opening
