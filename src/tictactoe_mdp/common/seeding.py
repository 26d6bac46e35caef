from __future__ import annotations
import numpy as np


def make_rng(seed: int | np.random.Generator | None = None) -> np.random.Generator:
    """
    Build the random generator a component owns.

    Every component that needs randomness (initial random policy, ε-greedy exploration,
    opponent replies) takes a seed or a generator and calls this function.
    Nothing in the library touches the global NumPy/Python RNGs, so two runs with the same
    seeds produce the same tables.

    Passing a Generator shares it (the caller keeps control of the stream);
    passing an int or None creates a fresh one.

    :param seed: Seed, existing generator, or None for OS entropy.
        :type seed: int | np.random.Generator | None

    :return: A NumPy random generator.
        :rtype: np.random.Generator
    """
    if isinstance(seed, np.random.Generator):
        return seed
    if seed is not None:
        seed = int(seed)
    return np.random.default_rng(seed)
