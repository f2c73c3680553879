"""Tau-path scoring — per-prefix concordance coefficients.

For a permutation of N observations the tau-path holds one value per
stage ``k``: the mean concordance over all ordered pairs among the
observations at positions ``0..k``,

    tau[k] = stage_sum(k) / (k · (k + 1)),   k > 0

where ``stage_sum`` counts each unordered pair twice (the matrix stores
both ``(i, j)`` and ``(j, i)``).  No pair exists at ``k = 0``; by
convention ``tau[0] = tau[1]``.  A single observation gives ``[1.0]``.

Two routes produce the path:

* :class:`TauPathRecorder` — used by the FastBCS engine, fed from the
  cached column sums as each stage is reached.
* :func:`direct_tau_path` — the reference, recomputed from raw cells.

They agree at every stage; the test-suite checks it.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .concordance import ConcordanceMatrix
from .errors import InternalInvariantViolation

__all__ = [
    "tau_from_sum",
    "prefix_tau",
    "direct_tau_path",
    "TauPathRecorder",
]


def tau_from_sum(total: int, k: int) -> float:
    """Coefficient for stage *k* from its doubled pair sum."""
    if k <= 0:
        raise ValueError(f"tau is undefined for stage {k}")
    return total / (k * (k + 1))


def prefix_tau(matrix: ConcordanceMatrix, k: int) -> float:
    """Direct O(k²) coefficient for positions ``0..k`` of *matrix*."""
    if matrix.size <= 1:
        return 1.0
    k = max(k, 1)
    perm = matrix.perm[:k + 1]
    block = matrix.cells[np.ix_(perm, perm)]
    return tau_from_sum(int(block.sum(dtype=np.int64)), k)


def direct_tau_path(matrix: ConcordanceMatrix) -> np.ndarray:
    """Reference tau-path computed from raw cells in the current order.

    Uses a running sum over the strictly lower triangle, so the whole
    path costs O(N²) rather than O(N³).
    """
    n = matrix.size
    if n == 0:
        return np.zeros(0)
    if n == 1:
        return np.ones(1)
    lower = np.tril(matrix.permuted().astype(np.int64), k=-1)
    pair_sums = np.cumsum(lower.sum(axis=1))
    k = np.arange(n)
    tau = np.empty(n, dtype=float)
    tau[1:] = 2.0 * pair_sums[1:] / (k[1:] * (k[1:] + 1))
    tau[0] = tau[1]
    return tau


# ═══════════════════════════════════════════════════════════════════
# TauPathRecorder — incremental path built during the search
# ═══════════════════════════════════════════════════════════════════

class TauPathRecorder:
    """Stage-indexed tau buffer filled while the engine runs.

    Entries start as NaN ("pending").  :meth:`record` stores a value
    from a stage total, :meth:`invalidate` marks a range pending again
    after a retroactive correction, and :meth:`finalize` fills the fully
    concordant prefix below the terminal stage and applies the
    ``tau[0] = tau[1]`` convention.
    """

    def __init__(self, n: int):
        self.n = n
        self._tau = np.full(n, np.nan)

    def record(self, stage: int, total: int) -> Optional[float]:
        """Store ``tau[stage]`` from its stage total; stage 0 is skipped."""
        if stage <= 0:
            return None
        value = tau_from_sum(total, stage)
        self._tau[stage] = value
        return value

    def invalidate(self, lo: int, hi: int) -> None:
        """Mark stages ``lo..hi`` (inclusive) as pending."""
        if hi >= lo:
            self._tau[max(lo, 0):hi + 1] = np.nan

    def __getitem__(self, stage: int) -> float:
        return float(self._tau[stage])

    def finalize(self, terminal_stage: int) -> np.ndarray:
        """Return the completed path for a search ending at *terminal_stage*.

        The block ``0..terminal_stage`` is fully concordant, so every
        stage below it scores exactly 1.0.

        Raises
        ------
        InternalInvariantViolation
            If a stage above the terminal one was never recorded.
        """
        tau = self._tau.copy()
        if self.n == 0:
            return tau
        if self.n == 1:
            return np.ones(1)
        tau[1:terminal_stage] = 1.0
        pending = np.flatnonzero(np.isnan(tau[1:])) + 1
        if pending.size:
            raise InternalInvariantViolation(
                f"tau-path stages {pending.tolist()} were never recorded")
        tau[0] = tau[1]
        return tau

    def __repr__(self) -> str:
        done = int(np.count_nonzero(~np.isnan(self._tau)))
        return f"TauPathRecorder(n={self.n}, recorded={done})"
