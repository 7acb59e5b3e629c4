"""
Interactive zero-knowledge proof of a Sudoku solution, by graph coloring.
"""

from .errors import (InvalidCountError, InvalidEdgeError, InvalidPuzzleError, LengthMismatchError,
                     NodeNotInGraphError, RoundAlreadySpentError, StatePrecedenceError, ZkSudokuError)
from .graph import ConstraintGraph
from .rounds import CommitmentRound, Opening
from .session import ProverSession, SessionStore
from .sudoku import Sudoku

__version__ = '0.1.0'
