"""
Length-prefixed byte codec for the messages of the protocol.

- unsigned integer: 8 bytes, little endian
- byte string: its length, then its bytes
- sequence: its length, then its items

Messages:
- commitments: sequence (rounds) of sequences (nodes) of byte strings
- edges: sequence of (integer, integer)
- openings: sequence of (value_a, key_a, value_b, key_b) byte strings
"""

from typing import Callable, List, Sequence, Tuple

from .errors import CodecError
from .rounds import Opening

encoded_uint_len = 8


def uint_to_bytes(x: int) -> bytes:
    """Serialize an unsigned integer into 8 bytes"""
    if not 0 <= x < 2**64:
        raise CodecError(f'integer out of range: {x}')
    return x.to_bytes(encoded_uint_len, 'little')


class BytesWriter:
    def __init__(self):
        self.parts = []

    def uint(self, x: int):
        self.parts.append(uint_to_bytes(x))

    def blob(self, b: bytes):
        self.uint(len(b))
        self.parts.append(bytes(b))

    def sequence(self, items, write_item: Callable):
        self.uint(len(items))
        for item in items:
            write_item(item)

    def finish(self) -> bytes:
        return b''.join(self.parts)


class BytesReader:
    def __init__(self, data: bytes):
        self.data = memoryview(data)
        self.pos = 0

    def _take(self, n: int) -> bytes:
        if self.pos + n > len(self.data):
            raise CodecError(f'truncated input: need {n} bytes at offset {self.pos}')
        chunk = self.data[self.pos:self.pos + n].tobytes()
        self.pos += n
        return chunk

    def uint(self) -> int:
        return int.from_bytes(self._take(encoded_uint_len), 'little')

    def blob(self) -> bytes:
        return self._take(self.uint())

    def sequence(self, read_item: Callable) -> list:
        n = self.uint()
        # Every item takes at least one byte; refuse absurd lengths early
        if n > len(self.data) - self.pos:
            raise CodecError(f'sequence length {n} exceeds the remaining input')
        return [read_item() for _ in range(n)]

    def finish(self):
        if self.pos != len(self.data):
            raise CodecError(f'{len(self.data) - self.pos} trailing bytes')


def encode_commitments(commitments: Sequence[Sequence[bytes]]) -> bytes:
    w = BytesWriter()
    w.sequence(commitments, lambda rnd: w.sequence(rnd, w.blob))
    return w.finish()


def decode_commitments(data: bytes) -> List[List[bytes]]:
    r = BytesReader(data)
    commitments = r.sequence(lambda: r.sequence(r.blob))
    r.finish()
    return commitments


def encode_edges(edges: Sequence[Tuple[int, int]]) -> bytes:
    w = BytesWriter()

    def write_edge(edge):
        u, v = edge
        w.uint(u)
        w.uint(v)

    w.sequence(edges, write_edge)
    return w.finish()


def decode_edges(data: bytes) -> List[Tuple[int, int]]:
    r = BytesReader(data)
    edges = r.sequence(lambda: (r.uint(), r.uint()))
    r.finish()
    return edges


def encode_openings(openings: Sequence[Opening]) -> bytes:
    w = BytesWriter()

    def write_opening(opening):
        for field in opening:
            w.blob(field)

    w.sequence(openings, write_opening)
    return w.finish()


def decode_openings(data: bytes) -> List[Opening]:
    r = BytesReader(data)
    openings = r.sequence(lambda: Opening(r.blob(), r.blob(), r.blob(), r.blob()))
    r.finish()
    return openings
