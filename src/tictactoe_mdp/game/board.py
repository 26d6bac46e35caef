"""
Tic-Tac-Toe rules: immutable positions, legal moves, win/draw detection and
enumeration of the reachable state space.

Board cells are indexed 0..8 row by row:

    0 | 1 | 2
    3 | 4 | 5
    6 | 7 | 8

X always opens.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable
import math
import numpy as np

from tictactoe_mdp.exceptions import IllegalMoveError

X = "X"
O = "O"
EMPTY = "-"
MARKERS = (X, O)

WIN_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # columns
    (0, 4, 8), (2, 4, 6),  # diagonals
)


def other(marker: str) -> str:
    """
    Return the opposing marker.

    :param marker: "X" or "O".
        :type marker: str

    :return: The other marker.
        :rtype: str
    """
    if marker == X:
        return O
    if marker == O:
        return X
    raise ValueError(f"Unknown marker {marker!r}. Must be one of {MARKERS}.")


@dataclass(frozen=True)
class Move:
    """
    A single placement on the board. Equality is by position only.

    :param position: Cell index in [0, 8].
        :type position: int
    """
    position: int

    def __post_init__(self):
        if not (0 <= int(self.position) < 9):
            raise ValueError(f"position must be in [0, 8], got {self.position}")

    @property
    def row(self) -> int:
        return self.position // 3

    @property
    def col(self) -> int:
        return self.position % 3

    def __str__(self) -> str:
        return f"({self.row}, {self.col})"


@dataclass(frozen=True)  # frozen -> hash/eq are derived from (board, turn) only
class TicTacToeState:
    """
    Immutable snapshot of a game: the nine cells plus the marker to move.

    Two states built in different ways (different move orders) but with the same
    cells and turn compare equal and hash the same, so they can key value tables.

    :param board: Nine cells, each "X", "O" or "-".
        :type board: tuple[str, ...]
    :param turn: Marker to move next.
        :type turn: str
    """
    board: tuple[str, ...]
    turn: str = X

    def __post_init__(self):
        if len(self.board) != 9:
            raise ValueError(f"board must have 9 cells, got {len(self.board)}")
        if self.turn not in MARKERS:
            raise ValueError(f"turn must be one of {MARKERS}, got {self.turn!r}")

    @classmethod
    def initial(cls) -> "TicTacToeState":
        """Empty board, X to move."""
        return cls(board=(EMPTY,) * 9, turn=X)

    @classmethod
    def from_string(cls, cells: str, turn: str | None = None) -> "TicTacToeState":
        """
        Build a state from a 9-character string such as "XO-X-----".

        If turn is None it is inferred from the piece counts (X opens).

        :param cells: Nine characters from {"X", "O", "-"}.
            :type cells: str
        :param turn: Marker to move, or None to infer it.
            :type turn: str | None

        :return: The parsed state.
            :rtype: TicTacToeState
        """
        board = tuple(cells)
        if any(c not in (X, O, EMPTY) for c in board):
            raise ValueError(f"cells must only contain X, O or {EMPTY!r}, got {cells!r}")
        if turn is None:
            turn = X if board.count(X) == board.count(O) else O
        return cls(board=board, turn=turn)

    def winner(self) -> str | None:
        for a, b, c in WIN_LINES:
            if self.board[a] != EMPTY and self.board[a] == self.board[b] == self.board[c]:
                return self.board[a]
        return None

    def is_full(self) -> bool:
        return EMPTY not in self.board

    def is_draw(self) -> bool:
        return self.is_full() and self.winner() is None

    def is_terminal(self) -> bool:
        return self.winner() is not None or self.is_full()

    def n_pieces(self) -> int:
        return 9 - self.board.count(EMPTY)

    def legal_actions(self) -> list[Move]:
        """
        Legal moves in ascending position order (empty iff the state is terminal).

        :return: List of moves.
            :rtype: list[Move]
        """
        if self.is_terminal():
            return []
        return [Move(i) for i, cell in enumerate(self.board) if cell == EMPTY]

    def is_legal(self, move: Move) -> bool:
        return not self.is_terminal() and self.board[move.position] == EMPTY

    def play(self, move: Move) -> "TicTacToeState":
        """
        Place the marker to move on `move` and pass the turn.

        :param move: Move to play.
            :type move: Move

        :return: The resulting state.
            :rtype: TicTacToeState
        """
        if self.is_terminal():
            raise IllegalMoveError(move.position, "the game is over")
        if self.board[move.position] != EMPTY:
            raise IllegalMoveError(move.position, f"cell already holds {self.board[move.position]}")

        cells = list(self.board)
        cells[move.position] = self.turn
        return TicTacToeState(board=tuple(cells), turn=other(self.turn))

    def to_array(self) -> np.ndarray:
        """
        Encode the board for gymnasium observations: 0 empty, 1 X, 2 O.

        :return: int8 array of shape (9,).
            :rtype: np.ndarray
        """
        codes = {EMPTY: 0, X: 1, O: 2}
        return np.array([codes[c] for c in self.board], dtype=np.int8)

    def __str__(self) -> str:
        rows = [" ".join(self.board[r * 3:(r + 1) * 3]) for r in range(3)]
        return "\n".join(rows)


def enumerate_states(turn: str = X) -> list[TicTacToeState]:
    """
    Enumerate every reachable position where `turn` is to move, plus every reachable terminal position.

    Breadth-first closure from the empty board over an explicit frontier.
    A `seen` set keyed by state content guarantees each position is expanded once,
    so there is no recursion and no duplicate in the output.

    Terminal positions are kept whoever made the last move: the transition model returns the position
    right after the agent's winning/drawing move, and the one after the opponent's reply, and both must
    have an entry in the value tables.

    :param turn: Marker of the player whose decision points are enumerated ("X" or "O").
        :type turn: str

    :return: States in breadth-first discovery order (deterministic).
        :rtype: list[TicTacToeState]
    """
    if turn not in MARKERS:
        raise ValueError(f"turn must be one of {MARKERS}, got {turn!r}")

    start = TicTacToeState.initial()
    seen = {start}
    frontier = deque([start])
    states = list()

    while frontier:
        state = frontier.popleft()

        if state.is_terminal() or state.turn == turn:
            states.append(state)

        for move in state.legal_actions():
            nxt = state.play(move)
            if nxt not in seen:
                seen.add(nxt)
                frontier.append(nxt)

    return states


# Board symmetries.
# Each entry p is a permutation such that transformed[i] = board[p[i]].
def _rotate(p: tuple[int, ...]) -> tuple[int, ...]:
    return tuple(p[(2 - c) * 3 + r] for r in range(3) for c in range(3))


def _reflect(p: tuple[int, ...]) -> tuple[int, ...]:
    return tuple(p[r * 3 + (2 - c)] for r in range(3) for c in range(3))


def _all_symmetries() -> tuple[tuple[int, ...], ...]:
    perms = list()
    p = tuple(range(9))
    for _ in range(4):
        perms.append(p)
        perms.append(_reflect(p))
        p = _rotate(p)
    return tuple(dict.fromkeys(perms))  # keep order, drop duplicates


SYMMETRIES = _all_symmetries()


def transform(state: TicTacToeState, perm: Iterable[int]) -> TicTacToeState:
    perm = tuple(perm)
    return TicTacToeState(board=tuple(state.board[i] for i in perm), turn=state.turn)


def equivalent_moves(state: TicTacToeState, move: Move) -> set[Move]:
    """
    Moves that are equivalent to `move` under the board symmetries that leave `state` unchanged.

    On the empty board, for example, all four corners are equivalent.
    Useful to compare two policies "modulo symmetry".

    :param state: Position the move is played from.
        :type state: TicTacToeState
    :param move: Reference move.
        :type move: Move

    :return: Set of equivalent moves (always contains `move`).
        :rtype: set[Move]
    """
    moves = {move}
    for perm in SYMMETRIES:
        if transform(state, perm) == state:
            moves.add(Move(perm.index(move.position)))
    return moves


def remaining_agent_moves(state: TicTacToeState, agent: str = X) -> int:
    """
    Upper bound on how many more decisions `agent` can take from `state`.

    :param state: A position where `agent` is to move (or a terminal one).
        :type state: TicTacToeState
    :param agent: Agent marker.
        :type agent: str

    :return: 0 for terminal states, else ceil(empty cells / 2) when the agent is to move.
        :rtype: int
    """
    if state.is_terminal():
        return 0
    empty = 9 - state.n_pieces()
    if state.turn == agent:
        return math.ceil(empty / 2)
    return empty // 2


def sweeps_for_exact_values(states: Iterable[TicTacToeState], agent: str = X) -> int:
    """
    Number of synchronous value-iteration sweeps after which values are exact.

    The agent-move graph is acyclic: every agent decision (plus the opponent reply) adds two pieces.
    After k sweeps from V=0, every state with at most k remaining agent decisions holds its exact value,
    so k = max remaining decisions is enough (5 for the player who opens, 4 for the other one).
    This is an upper bound: depending on the rewards, values may stop changing a sweep earlier.

    :param states: Enumerated states.
        :type states: Iterable[TicTacToeState]
    :param agent: Agent marker.
        :type agent: str

    :return: The sweep count bound.
        :rtype: int
    """
    return max((remaining_agent_moves(s, agent) for s in states), default=0)
