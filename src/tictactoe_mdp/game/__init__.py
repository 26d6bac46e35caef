"""
Tic-Tac-Toe game layer.

Includes:
- immutable positions/moves and the state-space enumerator
- opponent models (uniform random, fixed policy)
- rewards and the Outcome/TransitionProb records
- a live gymnasium environment for model-free learning
"""

from .board import (
    X,
    O,
    EMPTY,
    Move,
    TicTacToeState,
    enumerate_states,
    equivalent_moves,
    sweeps_for_exact_values,
)
from .opponents import RandomOpponent, PolicyOpponent
from .transitions import RewardConfig, Outcome, TransitionProb
from .environment import TicTacToeEnv, Executed, Rejected

__all__ = [
    "X",
    "O",
    "EMPTY",
    "Move",
    "TicTacToeState",
    "enumerate_states",
    "equivalent_moves",
    "sweeps_for_exact_values",
    "RandomOpponent",
    "PolicyOpponent",
    "RewardConfig",
    "Outcome",
    "TransitionProb",
    "TicTacToeEnv",
    "Executed",
    "Rejected",
]
