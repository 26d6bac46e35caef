"""
Train tabular Q-learning on Tic-Tac-Toe against a uniformly random opponent
and compare the learned greedy policy with the one from value iteration.

Run from repo root:
    python examples/02_td/train_tictactoe_q_learning.py

It saves plots to:
    assets/plots/tictactoe_q_learning_returns.png

About the comparison:
    Many Tic-Tac-Toe positions have several equally good moves, so we do not count a state as a mismatch
    when Q-learning picks a different move whose DP value is within --tol of the best one.
    Only states visited at least --min-visits times during training are compared.
"""

from __future__ import annotations

import argparse
from pathlib import Path
import numpy as np

from tictactoe_mdp.common.plotting import save_returns_curve
from tictactoe_mdp.game import RandomOpponent, RewardConfig, TicTacToeEnv, TicTacToeState
from tictactoe_mdp.tabular import QLearningAgent, QLearningConfig, TicTacToeMDP, one_step_lookahead, value_iteration


def parse_args() -> argparse.Namespace:
    """
    Parse CLI arguments.

    :return: Parsed args.
        :rtype: argparse.Namespace
    """
    p = argparse.ArgumentParser(description="Train Q-learning on Tic-Tac-Toe and compare with value iteration.")
    p.add_argument("--episodes", type=int, default=50_000, help="Training episodes.")
    p.add_argument("--alpha", type=float, default=0.1, help="Learning rate.")
    p.add_argument("--gamma", type=float, default=0.9, help="Discount factor.")
    p.add_argument("--epsilon", type=float, default=0.1, help="Exploration probability.")
    p.add_argument("--seed", type=int, default=0, help="Master seed.")
    p.add_argument("--min-visits", type=int, default=200, help="Only compare states visited this often.")
    p.add_argument("--tol", type=float, default=0.5, help="Value tolerance when comparing with value iteration.")
    p.add_argument("--smooth", type=int, default=500, help="Smoothing window for plotting.")
    p.add_argument("--out_dir", type=str, default="assets/plots", help="Where to save plots.")
    return p.parse_args()


def main():
    """
    Main training loop:
    - build env + agent from two seeds drawn from the master seed
    - train for --episodes games and plot the smoothed return
    - solve the same MDP with value iteration and report how often the greedy choices agree
    """
    args = parse_args()

    rng = np.random.default_rng(args.seed)
    env_seed, agent_seed = (int(x) for x in rng.integers(low=0, high=1_000_000, size=2))

    rewards = RewardConfig()
    mdp = TicTacToeMDP(agent="X", rewards=rewards)

    env = TicTacToeEnv(opponent=RandomOpponent(), rewards=rewards, agent="X", seed=env_seed)
    config = QLearningConfig(alpha=args.alpha, gamma=args.gamma, epsilon=args.epsilon, n_episodes=args.episodes)
    agent = QLearningAgent(states=mdp.states, config=config, seed=agent_seed)

    returns = agent.train(env)
    policy_ql = agent.extract_policy()

    tail = min(1000, args.episodes)
    print(f"Trained {args.episodes} episodes, mean return over the last {tail}: {returns[-tail:].mean():.3f}")
    print(f"Illegal moves during training: {agent.illegal_moves}")

    out_dir = Path(args.out_dir)
    save_returns_curve(
        returns=returns,
        out_path=out_dir / "tictactoe_q_learning_returns.png",
        title="Tic-Tac-Toe vs random opponent: Q-learning return per episode",
        smooth_window=args.smooth,
    )

    V, _ = value_iteration(mdp, gamma=args.gamma, k=5)

    compared = 0
    mismatched = 0
    for s, n in agent.visits.items():
        if n < args.min_visits:
            continue
        moves = s.legal_actions()
        q_dp = {m: one_step_lookahead(mdp, V, s, m, args.gamma) for m in moves}
        compared += 1
        if q_dp[policy_ql.action_for(s)] < max(q_dp.values()) - args.tol:
            mismatched += 1

    start = TicTacToeState.initial()
    print(f"First move: {policy_ql.action_for(start)}")
    print(f"Compared {compared} frequently visited states, {mismatched} where Q-learning's move is worse "
          f"than the DP optimum by more than {args.tol}")
    print(f"\nSaved plots to: {out_dir.resolve()}")


if __name__ == "__main__":
    main()
