"""
Solve the Tic-Tac-Toe MDP (agent = X, uniformly random opponent) with
Value Iteration and Policy Iteration.

This script prints:
- the value of the empty board under each solver
- the first move each solver recommends, and whether they agree modulo board symmetry
- the greedy move in every cell of the empty board (values of each opening move)

It also saves the value iteration convergence curve to assets/plots/.

Run from repo root (after pip install -e .):
    python examples/01_dp/solve_tictactoe_dp.py
"""

from __future__ import annotations

import argparse
from pathlib import Path
import time

from tictactoe_mdp.common.plotting import save_convergence_curve
from tictactoe_mdp.game import RewardConfig, TicTacToeState, equivalent_moves, sweeps_for_exact_values
from tictactoe_mdp.tabular import TicTacToeMDP, one_step_lookahead, policy_iteration, value_iteration


def format_opening_values(mdp: TicTacToeMDP, V: dict, gamma: float) -> str:
    """
    Format the one-step lookahead value of every opening move as a 3x3 grid.

    So you get, for example, something like this as an output:

      6.12   5.71   6.12
      5.71   6.90   5.71
      6.12   5.71   6.12

    :param mdp: The MDP.
        :type mdp: TicTacToeMDP
    :param V: Value table.
        :type V: dict
    :param gamma: Discount factor.
        :type gamma: float

    :return: Multi-line string.
        :rtype: str
    """
    start = TicTacToeState.initial()
    q = {m.position: one_step_lookahead(mdp, V, start, m, gamma) for m in start.legal_actions()}
    lines = []
    for r in range(3):
        lines.append(" ".join(f"{q[r * 3 + c]:6.2f}" for c in range(3)))
    return "\n".join(lines)


def parse_args() -> argparse.Namespace:
    """
    Parse CLI arguments.

    :return: Parsed args.
        :rtype: argparse.Namespace
    """
    p = argparse.ArgumentParser(description="DP on Tic-Tac-Toe (Value Iteration/Policy Iteration).")
    p.add_argument("--gamma", type=float, default=0.9, help="Discount factor.")
    p.add_argument("--theta", type=float, default=1e-4, help="Policy evaluation convergence threshold.")
    p.add_argument("--k", type=int, default=None, help="Value iteration sweeps (default: exact bound).")
    p.add_argument("--win", type=float, default=10.0, help="Win reward.")
    p.add_argument("--lose", type=float, default=-10.0, help="Loss reward.")
    p.add_argument("--living", type=float, default=-0.01, help="Living reward per exchange.")
    p.add_argument("--draw", type=float, default=0.0, help="Draw reward.")
    p.add_argument("--seed", type=int, default=0, help="Seed for the random initial policy.")
    p.add_argument("--out_dir", type=str, default="assets/plots", help="Where to save plots.")
    return p.parse_args()


def main():
    """
    Main entry point.

    1) Builds the MDP with the reward constants from the CLI
    2) Runs value iteration for k sweeps (k defaults to the number of sweeps that makes values exact)
    3) Runs policy iteration from a random initial policy
    4) Compares the results on the empty board
    """
    args = parse_args()
    out_dir = Path(args.out_dir)

    rewards = RewardConfig(win=args.win, lose=args.lose, living=args.living, draw=args.draw)
    mdp = TicTacToeMDP(agent="X", rewards=rewards)

    t0 = time.perf_counter()
    print(f"Enumerated {mdp.n_states} states ({len(mdp.non_terminal_states())} non-terminal) "
          f"in {time.perf_counter() - t0:.2f}s")

    k = args.k if args.k is not None else sweeps_for_exact_values(mdp.states, mdp.agent)
    start = TicTacToeState.initial()

    # ---------------------------
    # Value Iteration + deltas
    # ---------------------------

    deltas_vi: list[float] = list()
    t0 = time.perf_counter()
    V_vi, pi_vi = value_iteration(mdp, gamma=args.gamma, k=k, deltas=deltas_vi)

    print(f"\n=== Value Iteration (k={k}, {time.perf_counter() - t0:.2f}s) ===")
    print(f"V(empty board) = {V_vi[start]:.4f}")
    print(f"First move: {pi_vi.action_for(start)}")
    print("Opening move values:")
    print(format_opening_values(mdp, V_vi, args.gamma))

    save_convergence_curve(
        deltas=deltas_vi,
        out_path=out_dir / "tictactoe_value_iteration_convergence.png",
        title="Value Iteration convergence (max |V_{k+1} - V_k|)",
        logy=True,
    )

    # ---------------------------
    # Policy Iteration
    # ---------------------------

    history: list[dict] = list()
    t0 = time.perf_counter()
    V_pi, pi_pi = policy_iteration(mdp, gamma=args.gamma, theta=args.theta, seed=args.seed, value_history=history)

    print(f"\n=== Policy Iteration ({len(history)} evaluations, {time.perf_counter() - t0:.2f}s) ===")
    print(f"V(empty board) = {V_pi[start]:.4f}")
    print(f"First move: {pi_pi.action_for(start)}")

    same_first = pi_vi.action_for(start) in equivalent_moves(start, pi_pi.action_for(start))
    mismatched = sum(1 for s in pi_pi if pi_pi.action_for(s) != pi_vi.action_for(s))
    print(f"\nSame first move (modulo symmetry): {same_first}")
    print(f"States where the two policies differ: {mismatched}/{len(pi_pi)}")

    print(f"\nSaved plots to: {out_dir.resolve()}")


if __name__ == "__main__":
    main()
