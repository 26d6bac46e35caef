"""
This script contains three things:

1. Policy evaluation: given a fixed policy pi, compute V^pi using DP backups
2. Policy improvement: one-step greedy lookahead w.r.t. the current V
3. Policy iteration: alternate evaluate -> improve until the policy stops changing
"""

from __future__ import annotations

import numpy as np

from tictactoe_mdp.common.seeding import make_rng
from tictactoe_mdp.exceptions import NonConvergenceError
from tictactoe_mdp.game.board import TicTacToeState
from tictactoe_mdp.tabular.mdp import TicTacToeMDP, one_step_lookahead
from tictactoe_mdp.tabular.policy import Policy, greedy_index


def random_policy(mdp: TicTacToeMDP, rng: np.random.Generator) -> Policy:
    """
    Initial policy: a uniformly random legal move for every non-terminal state.

    The starting point only changes how many improvement rounds are needed, not where policy iteration ends up.

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param rng: Random generator.
        :type rng: np.random.Generator

    :return: Random policy.
        :rtype: Policy
    """
    policy = Policy()
    for s in mdp.non_terminal_states():
        moves = s.legal_actions()
        policy.set(s, moves[int(rng.integers(low=0, high=len(moves)))])
    return policy


def policy_evaluation(
    mdp: TicTacToeMDP,
    policy: Policy,
    gamma: float = 0.9,
    theta: float = 1e-4,
    max_iters: int = 10_000,
    V_init: dict[TicTacToeState, float] | None = None,
) -> dict[TicTacToeState, float]:
    """
    Iterative policy evaluation for the Tic-Tac-Toe MDP.

    Repeats in-place sweeps of the Bellman expectation equation under the fixed policy:

        V(s) <- sum_{s'} P(s'|s,pi(s)) * (r + gamma * V(s'))

    until the largest change in one sweep is below theta.
    If V_init is given we warm-start from it: pi_{k+1} is usually a small change of pi_k,
    so V^{pi_{k+1}} is close to V^{pi_k} and fewer sweeps are needed.

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param policy: Policy to evaluate (one move per non-terminal state).
        :type policy: Policy
    :param gamma: Discount factor.
        :type gamma: float
    :param theta: Convergence threshold.
        :type theta: float
    :param max_iters: Max evaluation sweeps before raising NonConvergenceError.
        :type max_iters: int
    :param V_init: Previous value estimate used as the initial guess.
        :type V_init: dict[TicTacToeState, float] | None

    :return: Value function V^pi for every enumerated state.
        :rtype: dict[TicTacToeState, float]
    """
    if V_init is None:
        V = {s: 0.0 for s in mdp.states}
    else:
        V = dict(V_init)

    non_terminal = mdp.non_terminal_states()
    for s in mdp.states:
        if s.is_terminal():
            # terminal states have no outgoing transitions -> remaining return is 0
            V[s] = 0.0

    for _ in range(max_iters):
        delta = 0.0

        for s in non_terminal:
            a = policy.action_for(s)
            if a is None:
                raise ValueError(f"policy has no action for non-terminal state:\n{s}")

            v_old = V[s]
            V[s] = one_step_lookahead(mdp, V, s, a, gamma)
            delta = max(delta, abs(v_old - V[s]))

        if delta < theta:
            return V

    raise NonConvergenceError(f"Policy evaluation did not converge within {max_iters} sweeps (theta={theta}).")


def policy_improvement(
    mdp: TicTacToeMDP,
    policy: Policy,
    V: dict[TicTacToeState, float],
    gamma: float = 0.9,
) -> int:
    """
    Greedy improvement step, in place.

    For each non-terminal state compute

        q(s,a) = sum_{s'} P(s'|s,a) (r + gamma V(s'))

    for every legal a and set pi(s) <- first argmax_a q(s,a).

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param policy: Policy to improve (modified in place).
        :type policy: Policy
    :param V: Value function of the current policy.
        :type V: dict[TicTacToeState, float]
    :param gamma: Discount factor.
        :type gamma: float

    :return: Number of states whose action changed (0 means the policy is stable).
        :rtype: int
    """
    changes = 0
    for s in mdp.non_terminal_states():
        moves = s.legal_actions()
        q_values = [one_step_lookahead(mdp, V, s, a, gamma) for a in moves]
        best_action = moves[greedy_index(q_values)]

        if best_action != policy.action_for(s):
            policy.set(s, best_action)
            changes += 1

    return changes


def policy_iteration(
    mdp: TicTacToeMDP,
    gamma: float = 0.9,
    theta: float = 1e-4,
    max_eval_iters: int = 10_000,
    max_improve_iters: int = 100,
    seed: int | np.random.Generator | None = None,
    value_history: list[dict[TicTacToeState, float]] | None = None,
) -> tuple[dict[TicTacToeState, float], Policy]:
    """
    Policy Iteration (evaluation + improvement) for the Tic-Tac-Toe MDP.

    This is the classic loop:
    1. Evaluate current policy pi -> get V^pi
    2. Improve policy greedily w.r.t. that value function
    3. Repeat until an improvement pass changes nothing

    On a finite MDP this fixed point is reached in finitely many rounds;
    max_improve_iters only guards against a bug turning it into an infinite loop.

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param gamma: Discount factor.
        :type gamma: float
    :param theta: Convergence threshold for evaluation.
        :type theta: float
    :param max_eval_iters: Max sweeps inside one policy evaluation.
        :type max_eval_iters: int
    :param max_improve_iters: Max outer evaluate/improve rounds.
        :type max_improve_iters: int
    :param seed: Seed (or generator) for the random initial policy.
        :type seed: int | np.random.Generator | None
    :param value_history: Optional list receiving a copy of V after every evaluation.
        :type value_history: list[dict[TicTacToeState, float]] | None

    :return: (V, policy)
        - V: value function of the final policy
        - policy: greedy, stable policy
        :rtype: tuple[dict[TicTacToeState, float], Policy]
    """
    rng = make_rng(seed)
    policy = random_policy(mdp, rng)
    V = {s: 0.0 for s in mdp.states}

    for _ in range(max_improve_iters):
        V = policy_evaluation(
            mdp=mdp,
            policy=policy,
            gamma=gamma,
            theta=theta,
            max_iters=max_eval_iters,
            V_init=V,
        )
        if value_history is not None:
            value_history.append(dict(V))

        if policy_improvement(mdp, policy, V, gamma) == 0:
            return V, policy

    raise NonConvergenceError(f"Policy iteration did not stabilise within {max_improve_iters} improvement rounds.")
