"""
Tabular RL on the Tic-Tac-Toe MDP.

Includes:
- the transition model (agent move + stochastic opponent reply)
- Policy Iteration / Value Iteration (model-based DP)
- Q-learning (model-free TD control against the live environment)
- Policy and Q-table containers
"""

from .mdp import TicTacToeMDP, one_step_lookahead
from .policy import Policy, QTable
from .policy_iteration import policy_evaluation, policy_improvement, policy_iteration
from .value_iteration import value_iteration, extract_greedy_policy
from .q_learning import QLearningAgent, QLearningConfig, q_learning

__all__ = [
    "TicTacToeMDP",
    "one_step_lookahead",
    "Policy",
    "QTable",
    "policy_evaluation",
    "policy_improvement",
    "policy_iteration",
    "value_iteration",
    "extract_greedy_policy",
    "QLearningAgent",
    "QLearningConfig",
    "q_learning",
]
