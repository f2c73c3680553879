"""Exception hierarchy for taupath.

Every error raised on purpose by the package derives from
:class:`TauPathError`, so callers can catch the whole family with one
``except`` clause while still matching the builtin base they expect
(``ValueError`` for bad input, ``RuntimeError`` for broken internal
state).
"""

from __future__ import annotations

__all__ = [
    "TauPathError",
    "InputLengthMismatch",
    "InternalInvariantViolation",
]


class TauPathError(Exception):
    """Base class for taupath errors."""


class InputLengthMismatch(TauPathError, ValueError):
    """The x and y vectors differ in length.

    Raised before any concordance matrix is built.
    """

    def __init__(self, n_x: int, n_y: int):
        self.n_x = n_x
        self.n_y = n_y
        super().__init__(
            f"x and y must have equal length (got {n_x} and {n_y})")


class InternalInvariantViolation(TauPathError, RuntimeError):
    """The search reached a state that cannot be correct.

    Examples: the permutation stopped being a bijection, the column-sum
    cache disagrees with a cold recomputation, or an observation chosen
    for elimination is not inside the active block.
    """
