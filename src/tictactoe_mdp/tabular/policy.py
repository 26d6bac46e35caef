from __future__ import annotations

from typing import Iterable, Iterator, Sequence
import numpy as np

from tictactoe_mdp.exceptions import StateSpaceError
from tictactoe_mdp.game.board import Move, TicTacToeState


def greedy_index(q_values: Sequence[float]) -> int:
    """
    Index of the first maximal value.

    Floats within 1e-12 of the max count as ties, and the first one in encounter order wins,
    so extraction is deterministic and does not flip between actions that differ only by rounding.

    :param q_values: Action values in legal-move order.
        :type q_values: Sequence[float]

    :return: Index of the chosen action.
        :rtype: int
    """
    q = np.asarray(q_values, dtype=np.float64)
    if q.size == 0:
        raise ValueError("Cannot pick a greedy action among zero actions.")
    best = np.flatnonzero(np.isclose(a=q, b=np.max(q), rtol=1e-12, atol=1e-12))
    return int(best[0])


class Policy:
    """
    Deterministic policy: non-terminal state -> chosen move.

    The mapping only ever holds legal moves for non-terminal states; set() enforces it.
    States never seen by the solver have no entry and action_for() returns None
    ("no recommendation"), which callers must not treat as an error.

    :param mapping: Optional initial entries.
        :type mapping: dict[TicTacToeState, Move] | None
    """

    def __init__(self, mapping: dict[TicTacToeState, Move] | None = None):
        self._actions: dict[TicTacToeState, Move] = dict()
        for state, move in (mapping or {}).items():
            self.set(state, move)

    def set(self, state: TicTacToeState, move: Move) -> None:
        if state.is_terminal():
            raise ValueError(f"A policy cannot map a terminal state:\n{state}")
        if not state.is_legal(move):
            raise ValueError(f"Move {move.position} is not legal in state:\n{state}")
        self._actions[state] = move

    def action_for(self, state: TicTacToeState) -> Move | None:
        return self._actions.get(state)

    def __getitem__(self, state: TicTacToeState) -> Move:
        return self._actions[state]

    def __contains__(self, state: object) -> bool:
        return state in self._actions

    def __len__(self) -> int:
        return len(self._actions)

    def __iter__(self) -> Iterator[TicTacToeState]:
        return iter(self._actions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Policy):
            return NotImplemented
        return self._actions == other._actions

    def items(self):
        return self._actions.items()

    def copy(self) -> "Policy":
        p = Policy()
        p._actions = dict(self._actions)
        return p


class QTable:
    """
    Action-value table Q(s, a) for every enumerated (state, legal move) pair.

    Entries are created once, at zero, from the enumerated states; afterwards a lookup of an
    unknown pair raises StateSpaceError because it means enumeration missed a reachable state.

    :param states: Enumerated states (terminal ones contribute no pairs).
        :type states: Iterable[TicTacToeState]
    """

    def __init__(self, states: Iterable[TicTacToeState] = ()):
        self._q: dict[tuple[TicTacToeState, Move], float] = dict()
        self._actions: dict[TicTacToeState, list[Move]] = dict()
        for state in states:
            moves = state.legal_actions()
            self._actions[state] = moves
            for move in moves:
                self._q[(state, move)] = 0.0

    def get(self, state: TicTacToeState, move: Move) -> float:
        try:
            return self._q[(state, move)]
        except KeyError:
            raise StateSpaceError(f"(state, move={move.position}) missing from the Q-table:\n{state}") from None

    def set(self, state: TicTacToeState, move: Move, value: float) -> None:
        if (state, move) not in self._q:
            raise StateSpaceError(f"(state, move={move.position}) missing from the Q-table:\n{state}")
        self._q[(state, move)] = float(value)

    def actions(self, state: TicTacToeState) -> list[Move]:
        try:
            return self._actions[state]
        except KeyError:
            raise StateSpaceError(f"State missing from the Q-table:\n{state}") from None

    def values(self, state: TicTacToeState) -> list[float]:
        """Q-values of `state` in legal-move order."""
        return [self.get(state, m) for m in self.actions(state)]

    def max_value(self, state: TicTacToeState) -> float:
        return max(self.values(state))

    def best_action(self, state: TicTacToeState) -> Move:
        moves = self.actions(state)
        return moves[greedy_index(self.values(state))]

    def states(self) -> list[TicTacToeState]:
        return list(self._actions)

    def as_dict(self) -> dict[tuple[TicTacToeState, Move], float]:
        return dict(self._q)

    def __len__(self) -> int:
        return len(self._q)

    def __contains__(self, key: object) -> bool:
        return key in self._q
