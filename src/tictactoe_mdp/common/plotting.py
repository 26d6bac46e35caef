from __future__ import annotations
from pathlib import Path
from typing import Sequence
import matplotlib.pyplot as plt
import numpy as np


def trailing_mean(x: np.ndarray, window: int) -> np.ndarray:
    """
    Mean of the last `window` points at every index (fewer at the start, where less history exists).

    :param x: 1D array, e.g. the return of every training game.
        :type x: np.ndarray
    :param window: Number of points averaged. 1 returns x unchanged.
        :type window: int

    :return: Array with the same length as x.
        :rtype: np.ndarray
    """
    if window <= 1:
        return x

    csum = np.cumsum(np.asarray(x, dtype=np.float64))
    out = csum.copy()
    out[window:] = csum[window:] - csum[:-window]
    counts = np.minimum(np.arange(1, len(x) + 1), window)
    return out / counts


def save_returns_curve(
    *,
    returns: np.ndarray,
    out_path: str | Path,
    title: str,
    smooth_window: int = 1,
) -> None:
    """
    Plot the per-episode returns of a training run: raw games in the background, trailing mean on top.

    With rewards in {-10, 0, +10} the raw curve is pure noise, so the mean is what shows progress;
    it tends to the win rate times 10 minus the loss rate times 10.

    :param returns: Return of every episode, as given by QLearningAgent.train.
        :type returns: np.ndarray
    :param out_path: Output path for the saved image.
        :type out_path: str | Path
    :param title: Plot title.
        :type title: str
    :param smooth_window: Trailing mean window (1 means no smoothing, raw curve only).
        :type smooth_window: int

    :return: None.
        :rtype: None
    """
    y = np.asarray(returns, dtype=np.float64)
    if y.ndim != 1:
        raise ValueError(f"returns must be a 1D array, got shape {y.shape}")

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    episodes = np.arange(1, len(y) + 1)
    plt.figure()
    if smooth_window > 1:
        plt.plot(episodes, y, alpha=0.15, linewidth=0.5, label="episode return")
        plt.plot(episodes, trailing_mean(y, smooth_window), label=f"mean of last {smooth_window}")
        plt.legend()
    else:
        plt.plot(episodes, y)

    plt.title(title)
    plt.xlabel("Episode")
    plt.ylabel("Return")
    plt.grid(True)
    plt.tight_layout()
    plt.savefig(out_path)
    plt.close()


def save_convergence_curve(
    *,
    deltas: Sequence[float],
    out_path: str | Path,
    title: str,
    logy: bool = True,
) -> None:
    """
    Plot the per-sweep max value change of a DP solver.

    Zero deltas (exact convergence) cannot be drawn on a log axis, so they are clipped to a tiny positive value.

    :param deltas: One value per sweep.
        :type deltas: Sequence[float]
    :param out_path: Output path for the saved image.
        :type out_path: str | Path
    :param title: Plot title.
        :type title: str
    :param logy: Log scale on the y axis.
        :type logy: bool

    :return: None.
        :rtype: None
    """
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    y = np.asarray(deltas, dtype=np.float64)
    if logy:
        y = np.clip(y, a_min=1e-16, a_max=None)
    x = np.arange(1, len(y) + 1)

    plt.figure()
    plt.plot(x, y, marker="o")
    if logy:
        plt.yscale("log")
    plt.title(title)
    plt.xlabel("Sweep")
    plt.ylabel("max_s |V_{i+1}(s) - V_i(s)|")
    plt.grid(True)
    plt.tight_layout()
    plt.savefig(out_path)
    plt.close()
