from __future__ import annotations

from dataclasses import dataclass

from tictactoe_mdp.game.board import Move, TicTacToeState, other


@dataclass(frozen=True)
class RewardConfig:
    """
    The four reward constants of the Tic-Tac-Toe MDP (agent's point of view).

    Defaults match the classic setting: +10 for a win, -10 for a loss, nothing otherwise.

    :param win: Reward when the agent completes a line.
        :type win: float
    :param lose: Reward when the opponent completes a line.
        :type lose: float
    :param living: Reward for an agent move + opponent reply that does not end the game.
        :type living: float
    :param draw: Reward when the board fills up without a winner.
        :type draw: float
    """
    win: float = 10.0
    lose: float = -10.0
    living: float = 0.0
    draw: float = 0.0

    def reward_for(self, state: TicTacToeState, agent: str) -> float:
        """
        Reward paid when play reaches `state`.

        :param state: Position just reached.
            :type state: TicTacToeState
        :param agent: Agent marker.
            :type agent: str

        :return: win/lose/draw reward for terminal positions, living reward otherwise.
            :rtype: float
        """
        winner = state.winner()
        if winner == agent:
            return float(self.win)
        if winner == other(agent):
            return float(self.lose)
        if state.is_full():
            return float(self.draw)
        return float(self.living)


@dataclass(frozen=True)
class Outcome:
    """
    One realised transition [s, a, r, s'].

    s' is the position after the agent's move and, when the game goes on, the opponent's reply.

    :param state: Source state (agent to move).
        :type state: TicTacToeState
    :param action: Agent move.
        :type action: Move
    :param reward: Reward of the exchange.
        :type reward: float
    :param next_state: Resulting state.
        :type next_state: TicTacToeState
    """
    state: TicTacToeState
    action: Move
    reward: float
    next_state: TicTacToeState

    @property
    def done(self) -> bool:
        return self.next_state.is_terminal()


@dataclass(frozen=True)
class TransitionProb:
    """
    One branch of the distribution of results of (state, action).

    :param prob: Probability of this branch.
        :type prob: float
    :param outcome: The branch itself.
        :type outcome: Outcome
    """
    prob: float
    outcome: Outcome
