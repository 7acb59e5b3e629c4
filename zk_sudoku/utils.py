from hashlib import sha3_256
from secrets import SystemRandom
import random
import networkx as nx

from .errors import CodecError

KEY_SIZE = 32
VALUE_SIZE = 1


def commit(m: bytes, r: bytes) -> bytes:
    """Hash commitment to `m` under the opening key `r`."""
    h = sha3_256(m)
    h.update(r)
    return h.digest()


def verify_commitment(c: bytes, m: bytes, r: bytes) -> bool:
    h = sha3_256(m)
    h.update(r)
    c_prime = h.digest()
    return len(r) == KEY_SIZE and c_prime == c


def value_to_bytes(v: int) -> bytes:
    return v.to_bytes(VALUE_SIZE, 'big')


def value_from_bytes(b: bytes) -> int:
    if len(b) != VALUE_SIZE:
        raise CodecError(f'expected a {VALUE_SIZE} byte value, got {len(b)} bytes')
    return int.from_bytes(b, 'big')


def default_rng() -> random.Random:
    """Cryptographically secure source used for permutations and keys."""
    return SystemRandom()


def is_valid_coloring(G: nx.Graph, coloring: [int], colors=None) -> bool:
    n = G.number_of_nodes()
    if sorted(G.nodes) != list(range(n)):
        return False
    if len(coloring) != n:
        return False
    if colors is not None and any(c not in colors for c in coloring):
        return False
    if any(coloring[u] == coloring[v] for u, v in G.edges):
        return False
    return True
