"""ConcordanceMatrix — pairwise sign matrix with permutation-aware reads.

For N paired observations ``(x_i, y_i)`` the concordance cell is

    C[i, j] = sign((y_i - y_j) · (x_i - x_j))  ∈ {-1, 0, +1}

which is symmetric with a zero diagonal.  The cells are computed once
and frozen.  What mutates during a FastBCS search is

* the **permutation** ``perm`` (position → observation) together with
  its inverse ``pos`` (observation → position), and
* the **column-sum cache**: for the current stage ``s``,
  ``sums[j] = Σ_{i=0..s} C[perm[i], perm[j]]`` for every ``j ≤ s``.

The cache is maintained in O(s) per step by :meth:`add_column` /
:meth:`remove_column`; :meth:`recompute_column_sums` is the cold
O(s²) path and :meth:`cold_column_sums` the side-effect-free oracle.

Usage
-----
>>> m = ConcordanceMatrix.from_xy([1, 2, 3, 4], [1, 1, 3, 4])
>>> m.raw_value(0, 1)          # tied in y
0
>>> m.recompute_column_sums(3)
10
>>> m.tie_list(3)
[0, 1]
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

import numpy as np

from .errors import InputLengthMismatch, InternalInvariantViolation
from .settings import DEFAULT_SETTINGS, SearchSettings

logger = logging.getLogger(__name__)

__all__ = [
    "ConcordanceMatrix",
    "sign_matrix",
]

_ROW_BLOCK = 64
"""Rows per task when the sign matrix is filled by a thread pool."""


# ═══════════════════════════════════════════════════════════════════
# Sign matrix construction
# ═══════════════════════════════════════════════════════════════════

def _fill_rows(out: np.ndarray, x: np.ndarray, y: np.ndarray,
               lo: int, hi: int) -> None:
    """Write concordance signs for rows ``lo..hi-1`` into *out*.

    ``sign(dy·dx)`` is evaluated as ``sign(dy)·sign(dx)`` so that huge or
    tiny differences cannot overflow to ``inf`` or underflow to zero.
    """
    dx = np.sign(x[lo:hi, None] - x[None, :])
    dy = np.sign(y[lo:hi, None] - y[None, :])
    out[lo:hi] = (dx * dy).astype(np.int8)


def sign_matrix(
    x: Sequence[float],
    y: Sequence[float],
    *,
    parallel: bool = False,
    max_workers: Optional[int] = None,
) -> np.ndarray:
    """Return the N×N ``int8`` concordance sign matrix of *x* and *y*.

    Parameters
    ----------
    x, y : sequence of float
        Paired observations of equal length.
    parallel : bool
        Fill row blocks on a thread pool.  The result is bit-identical
        to sequential construction.
    max_workers : int, optional
        Thread count; ``None`` lets the executor decide.

    Raises
    ------
    InputLengthMismatch
        If ``len(x) != len(y)``.
    ValueError
        If the inputs are not 1-D or contain NaN/inf.
    """
    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    if xa.ndim != 1 or ya.ndim != 1:
        raise ValueError(
            f"x and y must be 1-D (got shapes {xa.shape} and {ya.shape})")
    if xa.shape[0] != ya.shape[0]:
        raise InputLengthMismatch(xa.shape[0], ya.shape[0])
    if not (np.all(np.isfinite(xa)) and np.all(np.isfinite(ya))):
        raise ValueError("x and y must contain only finite values")

    n = xa.shape[0]
    out = np.zeros((n, n), dtype=np.int8)
    if n == 0:
        return out

    if parallel and n > _ROW_BLOCK:
        bounds = [(lo, min(lo + _ROW_BLOCK, n))
                  for lo in range(0, n, _ROW_BLOCK)]
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_fill_rows, out, xa, ya, lo, hi)
                       for lo, hi in bounds]
            for fut in futures:
                fut.result()
    else:
        _fill_rows(out, xa, ya, 0, n)
    return out


# ═══════════════════════════════════════════════════════════════════
# ConcordanceMatrix
# ═══════════════════════════════════════════════════════════════════

class ConcordanceMatrix:
    """Immutable sign matrix plus a mutable permutation and sum cache.

    Parameters
    ----------
    cells : array_like, shape (N, N)
        Symmetric sign matrix with entries in {-1, 0, 1} and a zero
        diagonal.  Use :meth:`from_xy` to build one from data and
        :meth:`from_signs` to validate an arbitrary one.

    Notes
    -----
    The cache tracks the stage it is valid for (:attr:`cached_stage`).
    Reads that interpret the cache as a stage total — :meth:`stage_sum`
    and :meth:`tie_list` — require the requested stage to match it and
    raise :class:`InternalInvariantViolation` otherwise.
    """

    def __init__(self, cells: np.ndarray):
        cells = np.array(cells, dtype=np.int8, copy=True)
        if cells.ndim != 2 or cells.shape[0] != cells.shape[1]:
            raise ValueError(
                f"concordance cells must be square, got shape {cells.shape}")
        cells.setflags(write=False)
        n = cells.shape[0]
        self._cells = cells
        self._n = n
        self._perm = np.arange(n, dtype=np.int64)
        self._pos = np.arange(n, dtype=np.int64)
        self._sums = np.zeros(n, dtype=np.int64)
        self._cached_stage: Optional[int] = None

    # ── constructors ────────────────────────────────────────────

    @classmethod
    def from_xy(
        cls,
        x: Sequence[float],
        y: Sequence[float],
        *,
        parallel: Optional[bool] = None,
        max_workers: Optional[int] = None,
        settings: SearchSettings = DEFAULT_SETTINGS,
    ) -> "ConcordanceMatrix":
        """Build the matrix for paired observations *x*, *y*.

        ``parallel`` and ``max_workers`` default to ``matrix.parallel``
        and ``matrix.max_workers``.  Inputs shorter than
        ``matrix.parallel_min_size`` are always built sequentially.
        """
        if parallel is None:
            parallel = settings["matrix.parallel"]
        if max_workers is None:
            max_workers = settings["matrix.max_workers"] or None
        n = len(x)
        threaded = bool(parallel) and n >= settings["matrix.parallel_min_size"]
        logger.debug(
            f"Building {n}x{len(y)} concordance matrix "
            f"({'threaded' if threaded else 'sequential'})")
        cells = sign_matrix(x, y, parallel=threaded, max_workers=max_workers)
        return cls(cells)

    @classmethod
    def from_signs(cls, cells: Sequence[Sequence[int]]) -> "ConcordanceMatrix":
        """Build from a pre-computed sign matrix, validating its shape.

        Raises
        ------
        ValueError
            If *cells* is not square, has entries outside {-1, 0, 1},
            a non-zero diagonal, or is not symmetric.
        """
        arr = np.asarray(cells)
        if arr.ndim != 2 or arr.shape[0] != arr.shape[1]:
            raise ValueError(
                f"concordance cells must be square, got shape {arr.shape}")
        if not np.all(np.isin(arr, (-1, 0, 1))):
            raise ValueError("concordance cells must be in {-1, 0, 1}")
        if np.any(np.diag(arr) != 0):
            raise ValueError("concordance diagonal must be zero")
        if not np.array_equal(arr, arr.T):
            raise ValueError("concordance cells must be symmetric")
        return cls(arr)

    # ── shape and raw access ────────────────────────────────────

    @property
    def size(self) -> int:
        """Number of observations N."""
        return self._n

    def __len__(self) -> int:
        return self._n

    @property
    def cells(self) -> np.ndarray:
        """Read-only view of the unpermuted sign matrix."""
        return self._cells

    def raw_value(self, i: int, j: int) -> int:
        """Physical cell ``C[i, j]``, ignoring the permutation."""
        return int(self._cells[i, j])

    def permuted_value(self, i: int, j: int) -> int:
        """Cell read through the permutation: ``C[perm[i], perm[j]]``."""
        return int(self._cells[self._perm[i], self._perm[j]])

    def permuted(self) -> np.ndarray:
        """Dense copy of the matrix in current permutation order."""
        return self._cells[np.ix_(self._perm, self._perm)]

    # ── permutation ─────────────────────────────────────────────

    @property
    def perm(self) -> np.ndarray:
        """Copy of the permutation (position → observation)."""
        return self._perm.copy()

    def observation_at(self, position: int) -> int:
        return int(self._perm[position])

    def position_of(self, observation: int) -> int:
        return int(self._pos[observation])

    def set_permutation(self, perm: Sequence[int]) -> None:
        """Replace the permutation.  O(N).

        The column-sum cache is invalidated; call
        :meth:`recompute_column_sums` before reading it again.

        Raises
        ------
        InternalInvariantViolation
            If *perm* is not a bijection on ``0..N-1``.
        """
        arr = np.asarray(perm, dtype=np.int64)
        if arr.shape != (self._n,) or not np.array_equal(
                np.sort(arr), np.arange(self._n)):
            raise InternalInvariantViolation(
                f"permutation is not a bijection on 0..{self._n - 1}: "
                f"{arr.tolist()}")
        self._perm = arr.copy()
        self._pos[self._perm] = np.arange(self._n, dtype=np.int64)
        self._cached_stage = None

    def swap_positions(self, a: int, b: int) -> None:
        """Exchange the observations at positions *a* and *b*.  O(1).

        Cached sums at the two positions move with their columns.  When
        both positions lie inside the cached block, or both outside it,
        the cache stays valid; a swap across the block boundary changes
        the set of active rows and invalidates it.
        """
        if a == b:
            return
        obs_a = self._perm[a]
        obs_b = self._perm[b]
        self._perm[a], self._perm[b] = obs_b, obs_a
        self._pos[obs_a], self._pos[obs_b] = b, a
        self._sums[a], self._sums[b] = self._sums[b], self._sums[a]
        s = self._cached_stage
        if s is not None and (a <= s) != (b <= s):
            self._cached_stage = None

    def check_bijection(self) -> None:
        """Raise :class:`InternalInvariantViolation` unless perm/pos agree."""
        if not np.array_equal(np.sort(self._perm), np.arange(self._n)):
            raise InternalInvariantViolation(
                f"permutation is not a bijection: {self._perm.tolist()}")
        if not np.array_equal(self._pos[self._perm], np.arange(self._n)):
            raise InternalInvariantViolation(
                "inverse permutation is out of sync")

    # ── column-sum cache ────────────────────────────────────────

    @property
    def cached_stage(self) -> Optional[int]:
        """Stage the column-sum cache is valid for, or ``None``."""
        return self._cached_stage

    @property
    def column_sums(self) -> np.ndarray:
        """Read-only view of the cached sums at positions 0..cached_stage."""
        s = -1 if self._cached_stage is None else self._cached_stage
        view = self._sums[:s + 1]
        view.flags.writeable = False
        return view

    def cold_column_sums(self, up_to: int) -> np.ndarray:
        """Column sums for stage *up_to* computed from scratch.

        Does not touch the cache; used as a correctness oracle.
        """
        active = self._perm[:up_to + 1]
        block = self._cells[np.ix_(active, active)]
        return block.sum(axis=0, dtype=np.int64)

    def recompute_column_sums(self, up_to: int) -> int:
        """Cold O(up_to²) rebuild of the cache for stage *up_to*.

        Returns the stage total.
        """
        self._sums[:] = 0
        if up_to >= 0:
            self._sums[:up_to + 1] = self.cold_column_sums(up_to)
        self._cached_stage = up_to
        return int(self._sums[:up_to + 1].sum())

    def _require_stage(self, stage: int) -> None:
        if self._cached_stage != stage:
            raise InternalInvariantViolation(
                f"column sums are cached for stage {self._cached_stage}, "
                f"not {stage}")

    def add_column(self, stage: int, col_id: int) -> int:
        """Grow the cache from ``stage - 1`` to *stage*.  O(stage).

        Observation *col_id* must already sit at position *stage*.  Its
        own sum is taken over rows ``0..stage`` and every sum at
        ``j < stage`` gains ``C[perm[j], col_id]``.  Returns the new stage
        total.
        """
        self._require_stage(stage - 1)
        if self._pos[col_id] != stage:
            raise InternalInvariantViolation(
                f"observation {col_id} is at position "
                f"{self._pos[col_id]}, expected {stage}")
        column = self._cells[self._perm[:stage + 1], col_id].astype(np.int64)
        self._sums[:stage] += column[:stage]
        self._sums[stage] = column.sum()
        self._cached_stage = stage
        return int(self._sums[:stage + 1].sum())

    def remove_column(self, stage: int, col_id: int) -> int:
        """Shrink the cache from *stage* to ``stage - 1``.  O(stage).

        Observation *col_id* must sit at position *stage*; its row is
        subtracted from every sum at ``j < stage``.  Returns the new
        stage total.
        """
        self._require_stage(stage)
        if self._pos[col_id] != stage:
            raise InternalInvariantViolation(
                f"observation {col_id} is at position "
                f"{self._pos[col_id]}, expected {stage}")
        self._sums[:stage] -= self._cells[self._perm[:stage], col_id]
        self._sums[stage] = 0
        self._cached_stage = stage - 1
        return int(self._sums[:stage].sum())

    def stage_sum(self, stage: int) -> int:
        """Sum of all cells among positions ``0..stage``.

        Each unordered pair is counted twice (both ``(i, j)`` and
        ``(j, i)`` are stored), so a fully concordant block sums to
        ``stage · (stage + 1)``.
        """
        self._require_stage(stage)
        return int(self._sums[:stage + 1].sum())

    def stage_sum_range(self, lo: int, hi: int) -> int:
        """Sum of cached column sums at positions ``lo..hi`` inclusive."""
        if self._cached_stage is None or hi > self._cached_stage or lo < 0:
            raise InternalInvariantViolation(
                f"range {lo}..{hi} is outside the cached block "
                f"(stage {self._cached_stage})")
        return int(self._sums[lo:hi + 1].sum())

    def is_concordant_block(self, stage: int) -> bool:
        """Whether every pair among positions ``0..stage`` is concordant."""
        return self.stage_sum(stage) == stage * (stage + 1)

    def tie_list(self, stage: int) -> List[int]:
        """Observations whose cached column sum equals the minimum.

        Returned in position order, so the first entry is the one at the
        lowest position.
        """
        self._require_stage(stage)
        active = self._sums[:stage + 1]
        if active.size == 0:
            return []
        idx = np.flatnonzero(active == active.min())
        return [int(o) for o in self._perm[idx]]

    # ── stagewise dominance input ───────────────────────────────

    def cumulative_column(self, col: int, lo: int, hi: int) -> np.ndarray:
        """Running sums of permuted column *col* over the window ``lo..hi``.

        The column is read through the permutation for rows ``0..hi``.
        If the entry at row *lo* is exactly zero (the diagonal when
        ``col == lo``) it is exchanged with the entry at row *hi*, so the
        column is read as if its observation sat at position *hi*.

        Returns an ``int64`` array ``q`` of length ``hi - lo + 1`` with
        ``q[0] = Σ rows 0..lo`` and ``q[z] = q[z-1] + row(lo + z)``.
        """
        if not 0 <= lo <= hi < self._n:
            raise ValueError(
                f"need 0 <= lo <= hi < {self._n}, got lo={lo}, hi={hi}")
        values = self._cells[self._perm[:hi + 1], self._perm[col]]
        values = values.astype(np.int64)
        if values[lo] == 0:
            values[lo], values[hi] = values[hi], 0
        return np.cumsum(values)[lo:]

    # ── debugging ───────────────────────────────────────────────

    def to_table(self, upto: Optional[int] = None) -> str:
        """Printable rendering of the permuted matrix, perm and sums."""
        last = self._n - 1 if upto is None else upto
        lines = ["CONCORDANCE MATRIX"]
        for i in range(last + 1):
            lines.append("".join(
                f"{self.permuted_value(i, j):3d}" for j in range(last + 1)))
        lines.append(f"pi:          {self._perm[:last + 1].tolist()}")
        if self._cached_stage is None:
            lines.append("column sums: (not cached)")
        else:
            lines.append(f"column sums: {self.column_sums.tolist()} "
                         f"(stage {self._cached_stage})")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (f"ConcordanceMatrix(n={self._n}, "
                f"cached_stage={self._cached_stage})")
