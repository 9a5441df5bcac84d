"""Game domain services: card sampling, the round engine and ranking.

This package contains pure domain logic that is driven by the socket
handlers, keeping transport concerns separated from core game mechanics.
"""

from .engine import GameInfo, GameOptions, Round, RoundEngine, RoundInfo, RoundStatus
from .sampler import Sampler
from .scoring import compute_ranks

__all__ = [
    'compute_ranks',
    'GameInfo',
    'GameOptions',
    'Round',
    'RoundEngine',
    'RoundInfo',
    'RoundStatus',
    'Sampler',
]
