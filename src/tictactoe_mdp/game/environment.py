from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union
import gymnasium as gym
from gymnasium import spaces
import numpy as np

from tictactoe_mdp.common.seeding import make_rng
from tictactoe_mdp.exceptions import IllegalMoveError
from tictactoe_mdp.game.board import X, Move, TicTacToeState, other
from tictactoe_mdp.game.opponents import RandomOpponent
from tictactoe_mdp.game.transitions import Outcome, RewardConfig


@dataclass(frozen=True)
class Executed:
    """Successful execution of an agent move."""
    outcome: Outcome


@dataclass(frozen=True)
class Rejected:
    """
    The agent submitted a move that is not legal in the current state. The environment did not change.

    :param state: State the move was submitted in.
        :type state: TicTacToeState
    :param error: Why the move was rejected.
        :type error: IllegalMoveError
    """
    state: TicTacToeState
    error: IllegalMoveError


ExecuteResult = Union[Executed, Rejected]


class TicTacToeEnv(gym.Env):
    """
    Live Tic-Tac-Toe environment for model-free learning.

    The agent plays one marker; the opponent's reply is resolved inside the environment,
    so one agent step is the two-ply exchange "agent moves, opponent replies", the same unit
    the transition model uses.

    Two interfaces are exposed:
    - the solver interface: reset(), current_state(), is_terminal(), legal_actions(), execute(move)
      where execute returns an explicit Executed/Rejected result instead of raising
    - the gymnasium interface: reset(seed=..., options=...) -> (obs, info) and
      step(action) -> (obs, reward, terminated, truncated, info), with actions in Discrete(9)

    Opponent replies are sampled with the environment's own generator (self.np_random),
    seeded at construction or through reset(seed=...).

    :param opponent: Opponent model (default: uniform random).
        :type opponent: RandomOpponent | PolicyOpponent | None
    :param rewards: Reward constants.
        :type rewards: RewardConfig | None
    :param agent: Marker played by the agent. If "O", the opponent opens on reset.
        :type agent: str
    :param seed: Seed (or generator) for opponent replies.
        :type seed: int | np.random.Generator | None
    """

    metadata = {"render_modes": ["ansi"]}

    def __init__(
        self,
        opponent=None,
        rewards: RewardConfig | None = None,
        agent: str = X,
        seed: int | np.random.Generator | None = None,
    ):
        super().__init__()
        self.opponent = opponent if opponent is not None else RandomOpponent()
        self.rewards = rewards if rewards is not None else RewardConfig()
        self.agent = agent
        self.opponent_marker = other(agent)  # also validates the marker

        self.observation_space = spaces.MultiDiscrete([3] * 9)
        self.action_space = spaces.Discrete(9)

        self.np_random = make_rng(seed)

        self._state = TicTacToeState.initial()
        self._needs_reset = True

    # Solver interface

    def reset(self, *, seed: int | None = None, options: dict[str, Any] | None = None):
        """
        Start a fresh game.

        If the agent plays O, the opponent's opening move is already on the board when this returns.

        :param seed: Optional reseed of the environment generator.
            :type seed: int | None
        :param options: Unused (gymnasium signature).
            :type options: dict | None

        :return: (observation, info) with info["state"] holding the TicTacToeState.
            :rtype: tuple[np.ndarray, dict]
        """
        if seed is not None:
            super().reset(seed=seed)

        self._state = TicTacToeState.initial()
        if self._state.turn != self.agent:
            reply = self.opponent.select_action(self._state, self.np_random)
            self._state = self._state.play(reply)

        self._needs_reset = False
        return self._state.to_array(), {"state": self._state}

    def current_state(self) -> TicTacToeState:
        return self._state

    def is_terminal(self) -> bool:
        return self._state.is_terminal()

    def legal_actions(self) -> list[Move]:
        return self._state.legal_actions()

    def execute(self, move: Move) -> ExecuteResult:
        """
        Play the agent's move, then let the opponent reply (unless the game is over).

        :param move: Agent move.
            :type move: Move

        :return: Executed(outcome) on success, Rejected(state, error) if the move is not legal here.
            :rtype: Executed | Rejected
        """
        if self._needs_reset:
            raise RuntimeError("You must call reset() before execute().")

        source = self._state
        if not source.is_legal(move):
            reason = "the game is over" if source.is_terminal() else f"cell holds {source.board[move.position]}"
            return Rejected(state=source, error=IllegalMoveError(move.position, reason))

        after_agent = source.play(move)
        if after_agent.is_terminal():
            next_state = after_agent
        else:
            reply = self.opponent.select_action(after_agent, self.np_random)
            next_state = after_agent.play(reply)

        reward = self.rewards.reward_for(next_state, self.agent)
        self._state = next_state
        return Executed(Outcome(state=source, action=move, reward=reward, next_state=next_state))

    # Gymnasium interface

    def step(self, action: int):
        """
        Gymnasium-style step with a cell index as action.

        Unlike execute(), an illegal action raises IllegalMoveError (gymnasium has no result type).

        :param action: Cell index in [0, 8].
            :type action: int

        :return: (obs, reward, terminated, truncated, info); info["outcome"] holds the Outcome.
            :rtype: tuple[np.ndarray, float, bool, bool, dict]
        """
        result = self.execute(Move(int(action)))
        if isinstance(result, Rejected):
            raise result.error

        outcome = result.outcome
        info = {"state": outcome.next_state, "outcome": outcome}
        return outcome.next_state.to_array(), outcome.reward, outcome.done, False, info

    def render(self) -> str:
        return str(self._state)
