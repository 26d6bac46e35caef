from __future__ import annotations

from typing import Mapping

from tictactoe_mdp.exceptions import StateSpaceError
from tictactoe_mdp.game.board import X, Move, TicTacToeState, enumerate_states, other
from tictactoe_mdp.game.opponents import RandomOpponent
from tictactoe_mdp.game.transitions import Outcome, RewardConfig, TransitionProb


class TicTacToeMDP:
    """
    Tic-Tac-Toe seen from one player as a finite MDP.

    States are the positions where the agent is to move (plus terminal positions).
    The opponent is part of the environment: taking an action means
    "agent moves, then the opponent replies", so one MDP step covers two plies.

    transitions(s, a) returns:
    - one deterministic branch if the agent's move ends the game (win or draw reward)
    - otherwise one branch per opponent reply, weighted by the opponent model,
      with reward lose / draw / living depending on the position after the reply

    The state list is enumerated lazily on first access, and transition lists are memoised:
    the DP solvers ask for the same (s, a) pairs sweep after sweep.

    :param agent: Marker played by the agent.
        :type agent: str
    :param rewards: Reward constants.
        :type rewards: RewardConfig | None
    :param opponent: Opponent model exposing action_probabilities(state). Default: uniform random.
        :type opponent: RandomOpponent | PolicyOpponent | None
    """

    def __init__(
        self,
        agent: str = X,
        rewards: RewardConfig | None = None,
        opponent=None,
    ):
        self.agent = agent
        self.opponent_marker = other(agent)
        self.rewards = rewards if rewards is not None else RewardConfig()
        self.opponent = opponent if opponent is not None else RandomOpponent()

        self._states: list[TicTacToeState] | None = None
        self._non_terminal: list[TicTacToeState] | None = None
        self._cache: dict[tuple[TicTacToeState, Move], list[TransitionProb]] = dict()

    @property
    def states(self) -> list[TicTacToeState]:
        if self._states is None:
            self._states = enumerate_states(self.agent)
        return self._states

    @property
    def n_states(self) -> int:
        return len(self.states)

    def non_terminal_states(self) -> list[TicTacToeState]:
        if self._non_terminal is None:
            self._non_terminal = [s for s in self.states if not s.is_terminal()]
        return self._non_terminal

    def actions(self, state: TicTacToeState) -> list[Move]:
        return state.legal_actions()

    def transitions(self, state: TicTacToeState, action: Move) -> list[TransitionProb]:
        """
        Distribution of results of taking `action` in `state`.

        :param state: Non-terminal state with the agent to move.
            :type state: TicTacToeState
        :param action: Legal move in `state`.
            :type action: Move

        :return: TransitionProb branches; probabilities sum to 1.
            :rtype: list[TransitionProb]
        """
        key = (state, action)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if state.is_terminal():
            raise ValueError(f"No transitions from a terminal state:\n{state}")
        if state.turn != self.agent:
            raise ValueError(f"State has {state.turn} to move, but the agent plays {self.agent}")
        if not state.is_legal(action):
            raise ValueError(f"Move {action.position} is not legal in state:\n{state}")

        after_agent = state.play(action)

        if after_agent.is_terminal():
            # agent won or filled the board -> no reply, single deterministic branch
            reward = self.rewards.reward_for(after_agent, self.agent)
            result = [TransitionProb(prob=1.0, outcome=Outcome(state, action, reward, after_agent))]
        else:
            result = list()
            for reply, prob in self.opponent.action_probabilities(after_agent):
                next_state = after_agent.play(reply)
                reward = self.rewards.reward_for(next_state, self.agent)
                result.append(TransitionProb(prob=float(prob), outcome=Outcome(state, action, reward, next_state)))

        self._cache[key] = result
        return result


def state_value(V: Mapping[TicTacToeState, float], state: TicTacToeState) -> float:
    """
    Look up V[state]; a missing entry means the enumeration missed a reachable state.

    :param V: Value table.
        :type V: Mapping[TicTacToeState, float]
    :param state: State to look up.
        :type state: TicTacToeState

    :return: The stored value.
        :rtype: float
    """
    try:
        return V[state]
    except KeyError:
        raise StateSpaceError(f"State missing from the value table:\n{state}") from None


def one_step_lookahead(
    mdp: TicTacToeMDP,
    V: Mapping[TicTacToeState, float],
    state: TicTacToeState,
    action: Move,
    gamma: float,
) -> float:
    """
    Expected return of taking `action` once and then collecting V:

        q(s,a) = sum_{s'} P(s'|s,a) * (r + gamma * V(s'))

    Terminal successors are in V with value 0, so there is no special case for them.

    :param mdp: The MDP.
        :type mdp: TicTacToeMDP
    :param V: Value table.
        :type V: Mapping[TicTacToeState, float]
    :param state: Source state.
        :type state: TicTacToeState
    :param action: Action to evaluate.
        :type action: Move
    :param gamma: Discount factor.
        :type gamma: float

    :return: One-step lookahead action value.
        :rtype: float
    """
    q = 0.0
    for tr in mdp.transitions(state, action):
        q += tr.prob * (tr.outcome.reward + gamma * state_value(V, tr.outcome.next_state))
    return q
