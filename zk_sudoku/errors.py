"""
Errors raised by the prover and the verifier.

Every error here is recoverable at the request boundary: the HTTP server turns
it into a 400 response and the verifier loop records it as a failed pass.
A rejected proof is not an error, see `verifier.PassResult`.
"""


class ZkSudokuError(Exception):
    """Base class for all protocol errors."""


class InvalidPuzzleError(ZkSudokuError):
    """The puzzle is malformed, has unfilled cells or out-of-range values."""


class InvalidCountError(ZkSudokuError):
    """The requested number of rounds is not a positive integer within bounds."""


class StatePrecedenceError(ZkSudokuError):
    """Edges were submitted before any commitments were requested."""


class LengthMismatchError(ZkSudokuError):
    """The number of challenged edges differs from the number of rounds."""


class RoundAlreadySpentError(ZkSudokuError):
    """A round (or a whole batch) has already been opened once."""


class NodeNotInGraphError(ZkSudokuError):
    """An edge references a node index outside of the graph."""


class InvalidEdgeError(ZkSudokuError):
    """A pair of nodes that is not a constraint edge of the graph."""


class CodecError(ZkSudokuError, ValueError):
    """Malformed length-prefixed data."""


class ProtocolError(ZkSudokuError):
    """The prover answered with data of the wrong shape."""


class ProverUnavailableError(ZkSudokuError):
    """The prover could not be reached or answered with an error status."""
