from __future__ import annotations

from tictactoe_mdp.game.board import TicTacToeState
from tictactoe_mdp.tabular.mdp import TicTacToeMDP, one_step_lookahead
from tictactoe_mdp.tabular.policy import Policy, greedy_index


def extract_greedy_policy(
    mdp: TicTacToeMDP,
    V: dict[TicTacToeState, float],
    gamma: float = 0.9,
) -> Policy:
    """
    Greedy policy w.r.t. V (one step of expectimax from every non-terminal state):

        pi(s) = first argmax_a sum_{s'} P(s'|s,a) (r + gamma V(s'))

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param V: Value table.
        :type V: dict[TicTacToeState, float]
    :param gamma: Discount factor.
        :type gamma: float

    :return: Greedy policy.
        :rtype: Policy
    """
    policy = Policy()
    for s in mdp.non_terminal_states():
        moves = s.legal_actions()
        q_values = [one_step_lookahead(mdp, V, s, a, gamma) for a in moves]
        policy.set(s, moves[greedy_index(q_values)])
    return policy


def value_iteration(
    mdp: TicTacToeMDP,
    gamma: float = 0.9,
    k: int = 10,
    deltas: list[float] | None = None,
) -> tuple[dict[TicTacToeState, float], Policy]:
    """
    Value Iteration with a fixed number of sweeps.

    Each sweep applies the Bellman optimality backup to every non-terminal state:

        V_{i+1}(s) = max_a sum_{s'} P(s'|s,a) [r + gamma * V_i(s')]

    Sweeps are synchronous: V_{i+1} is computed only from V_i, never from values updated in the same sweep.
    No policy is tracked during the sweeps; a greedy one is extracted at the end.

    There is no convergence test, the caller picks k. Every agent decision adds two pieces to the board,
    so after k sweeps a state with at most k decisions left holds its exact value.
    k >= sweeps_for_exact_values(mdp.states, mdp.agent) (5 when the agent opens) gives exact values everywhere.

    :param mdp: MDP instance.
        :type mdp: TicTacToeMDP
    :param gamma: Discount factor in [0, 1].
        :type gamma: float
    :param k: Number of sweeps.
        :type k: int
    :param deltas: Optional list to store the per-sweep metric delta_i = max_s |V_{i+1}(s) - V_i(s)|.
        :type deltas: list[float] | None

    :return: (V, policy)
        - V: state values after k sweeps
        - policy: greedy policy w.r.t. V
        :rtype: tuple[dict[TicTacToeState, float], Policy]
    """
    if k < 0:
        raise ValueError(f"k must be >= 0, got {k}")

    V = {s: 0.0 for s in mdp.states}  # terminal states keep 0 forever
    non_terminal = mdp.non_terminal_states()

    for _ in range(int(k)):
        V_new = dict(V)
        delta = 0.0

        for s in non_terminal:
            q_values = [one_step_lookahead(mdp, V, s, a, gamma) for a in s.legal_actions()]
            V_new[s] = max(q_values)
            delta = max(delta, abs(V_new[s] - V[s]))

        V = V_new
        if deltas is not None:
            deltas.append(float(delta))

    return V, extract_greedy_policy(mdp, V, gamma)
