"""
Error types shared by the rules engine, the environment and the solvers.

Invalid requests to the transition model are plain ValueErrors (same as the rest of the
library when an argument is out of its domain); the classes below mark the conditions
callers may want to catch on their own.
"""

from __future__ import annotations


class IllegalMoveError(ValueError):
    """
    A move was requested that is not legal in the given position.

    :param position: Board index of the rejected move.
        :type position: int
    :param reason: Human readable reason.
        :type reason: str
    """

    def __init__(self, position: int, reason: str):
        self.position = int(position)
        self.reason = str(reason)
        super().__init__(f"Illegal move at position {self.position}: {self.reason}")


class NonConvergenceError(RuntimeError):
    """A fixed-point loop hit its iteration cap before converging."""


class StateSpaceError(RuntimeError):
    """A successor state (or state-action pair) is missing from a value table."""
