import numpy as np
import pytest

from tictactoe_mdp.exceptions import NonConvergenceError
from tictactoe_mdp.game import RewardConfig, TicTacToeState, equivalent_moves, sweeps_for_exact_values
from tictactoe_mdp.tabular import (
    Policy,
    TicTacToeMDP,
    one_step_lookahead,
    policy_evaluation,
    policy_improvement,
    policy_iteration,
    value_iteration,
)
from tictactoe_mdp.tabular.policy_iteration import random_policy

GAMMA = 0.9


@pytest.fixture(scope="module")
def mdp() -> TicTacToeMDP:
    rewards = RewardConfig(win=10.0, lose=-10.0, living=-0.01, draw=0.0)
    return TicTacToeMDP(agent="X", rewards=rewards)


@pytest.fixture(scope="module")
def vi_solution(mdp: TicTacToeMDP):
    deltas: list[float] = list()
    V, pi = value_iteration(mdp, gamma=GAMMA, k=sweeps_for_exact_values(mdp.states, mdp.agent), deltas=deltas)
    return V, pi, deltas


@pytest.fixture(scope="module")
def pi_solution(mdp: TicTacToeMDP):
    history: list[dict] = list()
    V, pi = policy_iteration(mdp, gamma=GAMMA, theta=1e-4, seed=0, value_history=history)
    return V, pi, history


def _assert_greedy(mdp: TicTacToeMDP, V: dict, pi: Policy) -> None:
    for s in mdp.non_terminal_states():
        a = pi.action_for(s)
        assert a is not None
        q_values = [one_step_lookahead(mdp, V, s, m, GAMMA) for m in s.legal_actions()]
        assert one_step_lookahead(mdp, V, s, a, GAMMA) >= max(q_values) - 1e-9


def test_value_iteration_policy_is_greedy_wrt_V(mdp: TicTacToeMDP, vi_solution) -> None:
    """
    The extracted policy from value iteration must be greedy wrt the value function.

    Test Goal: validate that policy extraction chooses, in every non-terminal state, an action with maximal
    one-step lookahead value q(s,a) = sum P (r + gamma V(s')).
    Why this matters: if extraction is wrong, VI can compute correct values and still output a bad policy.
    """
    V, pi, _ = vi_solution
    _assert_greedy(mdp, V, pi)


def test_policy_iteration_policy_is_greedy_wrt_its_V(mdp: TicTacToeMDP, pi_solution) -> None:
    """
    Test Goal: at termination PI's policy must be greedy wrt V^pi (the policy-stable condition).
    """
    V, pi, _ = pi_solution
    _assert_greedy(mdp, V, pi)


def test_policies_cover_exactly_the_non_terminal_states(mdp: TicTacToeMDP, vi_solution, pi_solution) -> None:
    """
    Both solvers must recommend a legal move in every non-terminal state and never map a terminal one.
    """
    non_terminal = set(mdp.non_terminal_states())

    for _, pi, _ in (vi_solution, pi_solution):
        assert set(pi) == non_terminal
        for s, a in pi.items():
            assert s.is_legal(a)

    terminal = [s for s in mdp.states if s.is_terminal()]
    assert terminal
    for s in terminal:
        assert vi_solution[1].action_for(s) is None
        assert pi_solution[1].action_for(s) is None


def test_terminal_values_are_zero(mdp: TicTacToeMDP, vi_solution, pi_solution) -> None:
    for s in mdp.states:
        if s.is_terminal():
            assert vi_solution[0][s] == 0.0
            assert pi_solution[0][s] == 0.0


def test_value_iteration_matches_policy_iteration(mdp: TicTacToeMDP, vi_solution, pi_solution) -> None:
    """
    With enough sweeps VI values are exact, so they must agree with the converged PI values.

    PI evaluation stops at theta=1e-4, so we compare with a small tolerance.
    """
    V_vi, _, _ = vi_solution
    V_pi, _, _ = pi_solution

    diffs = np.array([abs(V_vi[s] - V_pi[s]) for s in mdp.states])
    assert diffs.max() < 1e-2


def test_solvers_agree_on_first_move_modulo_symmetry(mdp: TicTacToeMDP, vi_solution, pi_solution) -> None:
    """
    Concrete scenario: win 10, lose -10, draw 0, living -0.01, gamma 0.9, random opponent.

    Test Goal: both solvers pick the same opening move up to board symmetry, and
    the empty board is worth something positive against a random opponent.
    """
    start = TicTacToeState.initial()
    V_vi, pi_vi, _ = vi_solution
    V_pi, pi_pi, _ = pi_solution

    assert pi_vi.action_for(start) in equivalent_moves(start, pi_pi.action_for(start))
    assert V_vi[start] > 0.0
    assert V_pi[start] > 0.0


def test_value_iteration_is_exact_after_bound(mdp: TicTacToeMDP) -> None:
    """
    Synchronous VI from zero is exact after sweeps_for_exact_values sweeps.

    The bound is an upper bound, not a tight one: optimal play can make the last decision
    irrelevant, so values may stop changing earlier. Extra sweeps must never move them.
    """
    k_exact = sweeps_for_exact_values(mdp.states, mdp.agent)
    V_exact, _ = value_iteration(mdp, gamma=GAMMA, k=k_exact)

    deltas: list[float] = list()
    V_more, _ = value_iteration(mdp, gamma=GAMMA, k=k_exact + 3, deltas=deltas)

    assert len(deltas) == k_exact + 3
    assert deltas[0] > 0.0
    assert np.allclose(deltas[k_exact:], 0.0, atol=1e-12)
    assert max(abs(V_exact[s] - V_more[s]) for s in mdp.states) < 1e-12


def test_value_iteration_zero_sweeps(mdp: TicTacToeMDP) -> None:
    """
    k=0 leaves V at zero; the extracted policy then looks only at immediate rewards,
    so it still takes an immediate win when one exists.
    """
    V, pi = value_iteration(mdp, gamma=GAMMA, k=0)
    assert all(v == 0.0 for v in V.values())

    s = TicTacToeState.from_string("XX-OO----")
    assert pi.action_for(s).position == 2

    with pytest.raises(ValueError):
        value_iteration(mdp, gamma=GAMMA, k=-1)


def test_policy_iteration_values_improve_monotonically(mdp: TicTacToeMDP, pi_solution) -> None:
    """
    Policy improvement theorem: V^{pi_{k+1}}(s) >= V^{pi_k}(s) for every s.

    Evaluation is approximate (theta), so allow a small slack.
    """
    _, _, history = pi_solution
    assert len(history) >= 2

    for prev, curr in zip(history[:-1], history[1:]):
        worst = min(curr[s] - prev[s] for s in mdp.states)
        assert worst >= -1e-2


def test_policy_iteration_is_a_fixed_point(mdp: TicTacToeMDP, pi_solution) -> None:
    """
    Running one more improvement step on the returned (V, policy) changes nothing.
    """
    V, pi, _ = pi_solution
    assert policy_improvement(mdp, pi.copy(), V, GAMMA) == 0


def test_policy_iteration_converges_in_few_rounds(mdp: TicTacToeMDP) -> None:
    """
    Every agent decision adds two pieces, so the MDP is acyclic and shallow:
    policy iteration must stabilise within a handful of evaluate/improve rounds, whatever the start.
    """
    for seed in (0, 1, 2):
        history: list[dict] = list()
        policy_iteration(mdp, gamma=GAMMA, theta=1e-4, seed=seed, value_history=history)
        assert 2 <= len(history) <= 10


def test_policy_evaluation_of_fixed_policy(mdp: TicTacToeMDP) -> None:
    """
    The evaluated V must satisfy the Bellman expectation equation up to theta-sized errors.
    """
    pi = random_policy(mdp, np.random.default_rng(3))
    V = policy_evaluation(mdp, pi, gamma=GAMMA, theta=1e-8)

    for s in mdp.non_terminal_states():
        expected = one_step_lookahead(mdp, V, s, pi.action_for(s), GAMMA)
        assert np.isclose(V[s], expected, atol=1e-6)


def test_caps_raise_non_convergence(mdp: TicTacToeMDP) -> None:
    pi = random_policy(mdp, np.random.default_rng(0))
    with pytest.raises(NonConvergenceError):
        policy_evaluation(mdp, pi, gamma=GAMMA, theta=1e-4, max_iters=1)

    with pytest.raises(NonConvergenceError):
        policy_iteration(mdp, gamma=GAMMA, theta=1e-4, max_improve_iters=1, seed=0)


def test_policy_iteration_is_seed_independent(mdp: TicTacToeMDP, pi_solution) -> None:
    """
    Different random initial policies must reach the same optimal values.
    """
    V_ref, _, _ = pi_solution
    V_other, _ = policy_iteration(mdp, gamma=GAMMA, theta=1e-4, seed=42)

    start = TicTacToeState.initial()
    assert np.isclose(V_ref[start], V_other[start], atol=1e-2)
