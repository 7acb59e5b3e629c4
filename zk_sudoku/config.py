"""
Prover and verifier configuration.

Defaults can be overridden with ZK_SUDOKU_* environment variables; the command
line entry points override both.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .session import DEFAULT_MAX_COUNT, DEFAULT_MAX_SESSIONS, DEFAULT_SESSION_TTL

logger = logging.getLogger(__name__)

ENV_PREFIX = 'ZK_SUDOKU_'


def _env(name: str, default, cast=str):
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f'Invalid {ENV_PREFIX}{name}={raw!r}, using {default!r}')
        return default


def _bool(raw: str) -> bool:
    if raw.lower() in ('1', 'true', 'yes', 'on'):
        return True
    if raw.lower() in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(raw)


@dataclass
class ProverConfig:
    """
    Attributes:
        host, port: address the HTTP prover listens on
        solution_file: JSON solution to prove (None: built-in sample)
        puzzle_file: JSON public puzzle whose clues anchor the proof (None: built-in sample)
        anchor_givens: bind the proof to the puzzle's clues
        session_ttl: seconds of inactivity before a session is evicted
        max_sessions: maximum number of live sessions
        max_count: maximum number of rounds per batch
    """
    host: str = 'localhost'
    port: int = 8000
    solution_file: Optional[str] = None
    puzzle_file: Optional[str] = None
    anchor_givens: bool = False
    session_ttl: float = DEFAULT_SESSION_TTL
    max_sessions: int = DEFAULT_MAX_SESSIONS
    max_count: int = DEFAULT_MAX_COUNT

    def __post_init__(self) -> None:
        if not 0 <= self.port < 65536:
            logger.warning(f'Invalid port {self.port}, defaulting to 8000')
            self.port = 8000
        if self.session_ttl <= 0:
            logger.warning(f'session_ttl must be > 0, got {self.session_ttl}, defaulting to {DEFAULT_SESSION_TTL}')
            self.session_ttl = DEFAULT_SESSION_TTL
        if self.max_sessions < 1:
            logger.warning(f'max_sessions must be >= 1, got {self.max_sessions}, defaulting to {DEFAULT_MAX_SESSIONS}')
            self.max_sessions = DEFAULT_MAX_SESSIONS
        if self.max_count < 1:
            logger.warning(f'max_count must be >= 1, got {self.max_count}, defaulting to {DEFAULT_MAX_COUNT}')
            self.max_count = DEFAULT_MAX_COUNT

    @classmethod
    def from_env(cls) -> 'ProverConfig':
        return cls(
            host=_env('HOST', cls.host),
            port=_env('PORT', cls.port, int),
            solution_file=_env('SOLUTION_FILE', cls.solution_file),
            puzzle_file=_env('PUZZLE_FILE', cls.puzzle_file),
            anchor_givens=_env('ANCHOR_GIVENS', cls.anchor_givens, _bool),
            session_ttl=_env('SESSION_TTL', cls.session_ttl, float),
            max_sessions=_env('MAX_SESSIONS', cls.max_sessions, int),
            max_count=_env('MAX_COUNT', cls.max_count, int),
        )


@dataclass
class VerifierConfig:
    """
    Attributes:
        url: base URL of the HTTP prover
        count: rounds per pass (None: one per edge of the graph)
        interval: seconds between passes
        timeout: HTTP timeout in seconds
    """
    url: str = 'http://localhost:8000'
    count: Optional[int] = None
    interval: float = 1.0
    timeout: float = 10.0

    def __post_init__(self) -> None:
        self.url = self.url.rstrip('/')
        if self.count is not None and self.count < 1:
            logger.warning(f'count must be >= 1, got {self.count}, using the edge count')
            self.count = None
        if self.interval < 0:
            logger.warning(f'interval must be >= 0, got {self.interval}, clamping')
            self.interval = 0.0
        if self.timeout <= 0:
            logger.warning(f'timeout must be > 0, got {self.timeout}, defaulting to 10')
            self.timeout = 10.0

    @classmethod
    def from_env(cls) -> 'VerifierConfig':
        return cls(
            url=_env('URL', cls.url),
            count=_env('COUNT', cls.count, int),
            interval=_env('INTERVAL', cls.interval, float),
            timeout=_env('TIMEOUT', cls.timeout, float),
        )
