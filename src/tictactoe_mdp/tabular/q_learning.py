from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence
import warnings
import numpy as np

from tictactoe_mdp.common.seeding import make_rng
from tictactoe_mdp.game.board import Move, TicTacToeState
from tictactoe_mdp.game.environment import Rejected, TicTacToeEnv
from tictactoe_mdp.game.transitions import Outcome
from tictactoe_mdp.tabular.policy import Policy, QTable, greedy_index


@dataclass(frozen=True)
class QLearningConfig:
    """
    Hyperparameters of tabular Q-learning.

    :param alpha: Learning rate in (0, 1].
        :type alpha: float
    :param gamma: Discount factor in [0, 1].
        :type gamma: float
    :param epsilon: Exploration probability for ε-greedy, in [0, 1].
        :type epsilon: float
    :param n_episodes: Number of training games.
        :type n_episodes: int
    """

    alpha: float = 0.1
    gamma: float = 0.9
    epsilon: float = 0.1
    n_episodes: int = 50_000

    def __post_init__(self):
        if not (0.0 < self.alpha <= 1.0):
            raise ValueError(f"alpha must be in (0, 1], got {self.alpha}")
        if not (0.0 <= self.gamma <= 1.0):
            raise ValueError(f"gamma must be in [0, 1], got {self.gamma}")
        if not (0.0 <= self.epsilon <= 1.0):
            raise ValueError(f"epsilon must be in [0, 1], got {self.epsilon}")
        if self.n_episodes < 0:
            raise ValueError(f"n_episodes must be >= 0, got {self.n_episodes}")


class QLearningAgent:
    """
    Tabular Q-learning agent with ε-greedy exploration, trained against a live TicTacToeEnv.

        - Tabular: Q[s,a] stored for every enumerated (state, legal move) pair, all starting at 0.
        - Off-policy TD control: behaves ε-greedily, but the update target assumes greedy behaviour at s'.
        - Model-free: it never calls the transition model, the opponent is only seen through env outcomes.

    Update (written as a running average):
        Q(s,a) <- (1 - alpha) * Q(s,a) + alpha * sample
        sample  = r                                  if s' is terminal
                = r + gamma * max_a' Q(s',a')        otherwise

    :param states: Enumerated states used to initialise the Q-table (see enumerate_states).
        :type states: Iterable[TicTacToeState]
    :param config: Hyperparameters.
        :type config: QLearningConfig | None
    :param seed: RNG seed (or generator) for action selection.
        :type seed: int | np.random.Generator | None
    """

    def __init__(
        self,
        states: Iterable[TicTacToeState],
        config: QLearningConfig | None = None,
        seed: int | np.random.Generator | None = None,
    ):
        self.config = config if config is not None else QLearningConfig()
        self.alpha = float(self.config.alpha)
        self.gamma = float(self.config.gamma)
        self.epsilon = float(self.config.epsilon)

        self.rng = make_rng(seed)
        self.Q = QTable(states)

        self.visits: Counter[TicTacToeState] = Counter()  # number of updates per source state
        self.illegal_moves = 0

    def select_action(self, state: TicTacToeState, legal: Sequence[Move]) -> Move:
        """
        Select an action using ε-greedy.

            1. With probability epsilon: explore -> uniformly random legal move
            2. Else: exploit -> the legal move with the highest Q-value (first one on ties)

        :param state: Current state.
            :type state: TicTacToeState
        :param legal: Legal moves in that state.
            :type legal: Sequence[Move]

        :return: Chosen move.
            :rtype: Move
        """
        if not legal:
            raise ValueError(f"No legal moves in state:\n{state}")

        # Exploration
        if self.rng.random() < self.epsilon:
            return legal[int(self.rng.integers(low=0, high=len(legal)))]

        # Exploitation
        q = [self.Q.get(state, a) for a in legal]
        return legal[greedy_index(q)]

    def update(self, outcome: Outcome) -> None:
        """
        Apply the Q-learning update for one realised [s, a, r, s'].

        :param outcome: Outcome returned by the environment.
            :type outcome: Outcome

        :return: None
            :rtype: None
        """
        s, a, r, s_next = outcome.state, outcome.action, outcome.reward, outcome.next_state

        sample = r
        if not s_next.is_terminal():
            sample += self.gamma * self.Q.max_value(s_next)  # greedy target -> off-policy

        new_q = (1.0 - self.alpha) * self.Q.get(s, a) + self.alpha * sample
        self.Q.set(s, a, new_q)
        self.visits[s] += 1

    def run_episode(self, env: TicTacToeEnv) -> tuple[float, int]:
        """
        Play one training game with online TD updates.

        An illegal move returned as Rejected by the environment is counted, reported with a
        RuntimeWarning, and ends the episode without an update for that step.
        Training then goes on with the next episode.

        :param env: Environment to train in.
            :type env: TicTacToeEnv

        :return: (episode_return, steps)
            :rtype: tuple[float, int]
        """
        env.reset()
        state = env.current_state()

        total_reward = 0.0
        steps = 0

        while not env.is_terminal():
            action = self.select_action(state, env.legal_actions())
            result = env.execute(action)

            if isinstance(result, Rejected):
                self.illegal_moves += 1
                warnings.warn(message=f"Illegal move during training ({result.error}); episode ended.",
                              category=RuntimeWarning)
                break

            outcome = result.outcome
            self.update(outcome)

            total_reward += outcome.reward
            steps += 1
            state = outcome.next_state

        return total_reward, steps

    def train(self, env: TicTacToeEnv, n_episodes: int | None = None) -> np.ndarray:
        """
        Run n_episodes training games (config.n_episodes by default).

        :param env: Environment to train in.
            :type env: TicTacToeEnv
        :param n_episodes: Optional override of config.n_episodes.
            :type n_episodes: int | None

        :return: Return of every episode, shape (n_episodes,).
            :rtype: np.ndarray
        """
        n = self.config.n_episodes if n_episodes is None else int(n_episodes)
        returns = np.zeros(n, dtype=np.float64)
        for ep in range(n):
            returns[ep], _ = self.run_episode(env)
        return returns

    def extract_policy(self) -> Policy:
        """
        Greedy policy from the learned Q-values, for every non-terminal state in the Q-table.

        :return: Policy
            :rtype: Policy
        """
        policy = Policy()
        for s in self.Q.states():
            if s.is_terminal():
                continue
            policy.set(s, self.Q.best_action(s))
        return policy


def q_learning(
    env: TicTacToeEnv,
    states: Iterable[TicTacToeState],
    config: QLearningConfig | None = None,
    seed: int | np.random.Generator | None = None,
) -> tuple[QLearningAgent, Policy]:
    """
    Train a fresh agent for config.n_episodes and return it with its greedy policy.

    :param env: Environment to train in.
        :type env: TicTacToeEnv
    :param states: Enumerated states for the Q-table.
        :type states: Iterable[TicTacToeState]
    :param config: Hyperparameters.
        :type config: QLearningConfig | None
    :param seed: Seed for the agent's ε-greedy choices (the env has its own).
        :type seed: int | np.random.Generator | None

    :return: (agent, policy)
        :rtype: tuple[QLearningAgent, Policy]
    """
    agent = QLearningAgent(states=states, config=config, seed=seed)
    agent.train(env)
    return agent, agent.extract_policy()
