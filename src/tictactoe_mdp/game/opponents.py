from __future__ import annotations

import numpy as np

from tictactoe_mdp.game.board import Move, TicTacToeState


class RandomOpponent:
    """
    Opponent that replies uniformly at random among its legal moves.

    This is the default opponent both for the transition model (each reply has probability 1/n)
    and for the live environment used by Q-learning, so the two see the same dynamics.
    """

    def action_probabilities(self, state: TicTacToeState) -> list[tuple[Move, float]]:
        """
        Distribution over replies in `state`.

        :param state: Non-terminal position where the opponent is to move.
            :type state: TicTacToeState

        :return: (move, probability) pairs in legal-move order, probabilities sum to 1.
            :rtype: list[tuple[Move, float]]
        """
        moves = state.legal_actions()
        if not moves:
            return []
        p = 1.0 / len(moves)
        return [(m, p) for m in moves]

    def select_action(self, state: TicTacToeState, rng: np.random.Generator) -> Move:
        moves = state.legal_actions()
        return moves[int(rng.integers(low=0, high=len(moves)))]


class PolicyOpponent:
    """
    Opponent that follows a fixed policy (for example one trained with the other marker).

    Where the policy has no recommendation the opponent falls back to a uniform random reply.

    :param policy: Object exposing action_for(state) -> Move | None.
        :type policy: Policy
    """

    def __init__(self, policy):
        self.policy = policy
        self._fallback = RandomOpponent()

    def action_probabilities(self, state: TicTacToeState) -> list[tuple[Move, float]]:
        move = self.policy.action_for(state)
        if move is None or not state.is_legal(move):
            return self._fallback.action_probabilities(state)
        return [(move, 1.0)]

    def select_action(self, state: TicTacToeState, rng: np.random.Generator) -> Move:
        move = self.policy.action_for(state)
        if move is None or not state.is_legal(move):
            return self._fallback.select_action(state, rng)
        return move
