"""FastBCS — Fast Backward Conditional Search.

Orders N bivariate observations by repeatedly eliminating the least
concordant one, from the full set down to a fully concordant block,
and derives the tau-path of the resulting permutation.

Algorithm
---------
Starting at ``stage = N - 1`` with the identity permutation:

1. Find the observations at positions ``0..stage`` with the minimum
   column sum (the tie list).  Record it when it has several members.
2. Eliminate the first of them: swap it into position ``stage`` and
   drop its row from the column-sum cache.
3. **Lookback.**  For every recorded stage ``k > stage`` whose tie list
   contains the observation just eliminated (highest ``k`` first),
   compare the two columns' cumulative concordance over rows
   ``stage..k``.  If the observation eliminated at ``k`` dominates, swap
   the two, resume at ``stage = k - 1`` and drop the stale tie records.
4. Otherwise move to ``stage - 1``.

The loop stops once ``stage_sum(stage) == stage · (stage + 1)``: every
pair still in the block is concordant.

Each correction fixes every position ``>= k`` for good (later tie
records all sit below ``k``), so at most N corrections can happen and
the search always terminates.

Column-sum strategies
---------------------
``"incremental"`` (the *FastBCS2* variant) patches the cache in
O(stage) per step.  ``"recompute"`` (the *FastBCS* variant) rebuilds it
cold in O(stage²) after every permutation change.  Both are exact
integer arithmetic and produce identical permutations and tau-paths.

Usage
-----
>>> from taupath import fastbcs
>>> result = fastbcs([1, 2, 3, 4], [1, 1, 3, 4])
>>> result.permutation.tolist()
[3, 1, 2, 0]
>>> result.tau_path.round(4).tolist()
[1.0, 1.0, 1.0, 0.8333]
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .concordance import ConcordanceMatrix
from .errors import InternalInvariantViolation
from .settings import DEFAULT_SETTINGS, SearchSettings
from .tau_path import TauPathRecorder
from .ties import TieTable, stagewise_dominates
from .trace import Correction, Elimination, SearchTrace

logger = logging.getLogger(__name__)

__all__ = [
    "SearchContext",
    "FastBCSResult",
    "FastBCS",
    "fastbcs",
    "get_pi",
    "get_tau",
]


# ═══════════════════════════════════════════════════════════════════
# Per-invocation state
# ═══════════════════════════════════════════════════════════════════

@dataclass
class SearchContext:
    """Mutable state of one search; never shared between runs."""

    n: int
    stage: int
    ties: TieTable
    tau: TauPathRecorder
    record_trace: bool = True
    eliminations: List[Elimination] = field(default_factory=list)
    corrections: List[Correction] = field(default_factory=list)

    @classmethod
    def start(cls, n: int, record_trace: bool = True) -> "SearchContext":
        return cls(
            n=n,
            stage=n - 1,
            ties=TieTable(n),
            tau=TauPathRecorder(n),
            record_trace=record_trace,
        )

    @property
    def watermark(self) -> int:
        return self.ties.watermark


@dataclass(frozen=True, eq=False)
class FastBCSResult:
    """Outcome of a search.

    Attributes
    ----------
    permutation : ndarray of int
        Final ordering, position → observation.  Observations nearer
        the front were retained longest.
    tau_path : ndarray of float
        ``tau_path[k]`` is the mean pairwise concordance among the
        observations at positions ``0..k``.
    terminal_stage : int
        Stage at which the remaining block became fully concordant.
    variant : str
        Column-sum strategy used.
    trace : SearchTrace
        Audit trail (empty record lists when tracing was disabled).
    """

    permutation: np.ndarray
    tau_path: np.ndarray
    terminal_stage: int
    variant: str
    trace: SearchTrace

    @property
    def n(self) -> int:
        return int(self.permutation.shape[0])

    def same_as(self, other: "FastBCSResult") -> bool:
        """Identical permutation and tau-path (bit-for-bit)."""
        return (np.array_equal(self.permutation, other.permutation)
                and np.array_equal(self.tau_path, other.tau_path))

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-safe dict."""
        return {
            "permutation": self.permutation.tolist(),
            "tau_path": [float(t) for t in self.tau_path],
            "terminal_stage": self.terminal_stage,
            "variant": self.variant,
            "trace": self.trace.to_dict(),
        }

    def summary(self) -> str:
        """One-line human-readable summary."""
        top = self.tau_path[-1] if self.n else float("nan")
        return (f"FastBCS[{self.variant}] n={self.n} "
                f"terminal_stage={self.terminal_stage} "
                f"tau(N-1)={top:.4f} "
                f"corrections={self.trace.n_corrections}")


# ═══════════════════════════════════════════════════════════════════
# FastBCS engine
# ═══════════════════════════════════════════════════════════════════

class FastBCS:
    """Backward conditional search over one concordance matrix.

    Parameters
    ----------
    matrix : ConcordanceMatrix
        Owned by the engine for the duration of :meth:`run`; its
        permutation and column-sum cache are reset at the start.
    settings : SearchSettings
        ``engine.*`` keys select the column-sum strategy, cache
        verification and tracing.
    variant : str, optional
        Overrides ``engine.column_sums`` (``"FastBCS"``,
        ``"FastBCS2"``, ``"recompute"`` or ``"incremental"``).
    """

    def __init__(
        self,
        matrix: ConcordanceMatrix,
        settings: SearchSettings = DEFAULT_SETTINGS,
        variant: Optional[str] = None,
    ):
        if variant is not None:
            settings = settings.with_variant(variant)
        self.matrix = matrix
        self.settings = settings
        self.mode: str = settings["engine.column_sums"]
        self.verify_cache: bool = settings["engine.verify_cache"]
        self.record_trace: bool = settings["engine.record_trace"]

    @property
    def incremental(self) -> bool:
        return self.mode == "incremental"

    # ── cache maintenance ───────────────────────────────────────

    def _shrink(self, stage: int) -> int:
        """Drop the observation at *stage*; cache ends at ``stage - 1``."""
        m = self.matrix
        if self.incremental:
            return m.remove_column(stage, m.observation_at(stage))
        return m.recompute_column_sums(stage - 1)

    def _grow(self, lo: int, hi: int) -> int:
        """Re-admit positions ``lo..hi``; cache ends at *hi*."""
        m = self.matrix
        if self.incremental:
            total = 0
            for u in range(lo, hi + 1):
                total = m.add_column(u, m.observation_at(u))
            return total
        return m.recompute_column_sums(hi)

    def _check_cache(self, stage: int) -> None:
        cold = self.matrix.cold_column_sums(stage)
        cached = self.matrix.column_sums
        if not np.array_equal(cold, cached):
            raise InternalInvariantViolation(
                f"column-sum cache diverged at stage {stage}: "
                f"cached={cached.tolist()} cold={cold.tolist()}")

    # ── one iteration ───────────────────────────────────────────

    def _eliminate(self, ctx: SearchContext) -> int:
        """Steps 1–3: pick the least concordant observation and drop it."""
        m = self.matrix
        stage = ctx.stage
        ties = m.tie_list(stage)
        if not ties:
            raise InternalInvariantViolation(
                f"empty tie list at stage {stage}")
        if len(ties) > 1:
            ctx.ties.record(stage, ties)

        chosen = ties[0]
        from_position = m.position_of(chosen)
        if from_position > stage:
            raise InternalInvariantViolation(
                f"observation {chosen} at position {from_position} lies "
                f"outside the active block 0..{stage}")
        m.swap_positions(from_position, stage)
        if m.cached_stage != stage:
            raise InternalInvariantViolation(
                f"swap inside the active block invalidated the cache "
                f"at stage {stage}")
        self._shrink(stage)

        if ctx.record_trace:
            ctx.eliminations.append(Elimination(
                stage=stage, ties=tuple(ties),
                eliminated=chosen, from_position=from_position))
        logger.debug(
            f"stage {stage}: eliminate {chosen} "
            f"(position {from_position}, ties={ties})")
        return chosen

    def _lookback(self, ctx: SearchContext) -> Optional[Correction]:
        """Step 4: revisit earlier ties involving the eliminated observation."""
        m = self.matrix
        stage = ctx.stage
        eliminated = m.observation_at(stage)

        for k in ctx.ties.candidates(eliminated, stage):
            q_stage = m.cumulative_column(stage, stage, k)
            q_k = m.cumulative_column(k, stage, k)
            if not stagewise_dominates(q_stage, q_k):
                continue

            retained = m.observation_at(k)
            # Cache is at stage - 1; both swapped slots lie above it.
            m.swap_positions(stage, k)
            total_k = self._grow(stage, k)
            ctx.tau.record(k, total_k)
            new_stage = k - 1
            total = self._shrink(k)

            dropped = ctx.ties.invalidate_from(new_stage)
            ctx.tau.invalidate(0, new_stage - 1)
            ctx.tau.record(new_stage, total)
            ctx.stage = new_stage

            correction = Correction(
                stage=stage, k=k, retained=retained, displaced=eliminated,
                new_stage=new_stage,
                q_stage=tuple(int(v) for v in q_stage),
                q_k=tuple(int(v) for v in q_k),
                invalidated_ties=dropped,
            )
            if ctx.record_trace:
                ctx.corrections.append(correction)
            logger.debug(
                f"stage {stage}: retain {retained} over {eliminated} "
                f"(k={k}), resume at stage {new_stage}")
            return correction
        return None

    def _is_terminal(self, stage: int) -> bool:
        return self.matrix.is_concordant_block(stage)

    # ── driver ──────────────────────────────────────────────────

    def run(self) -> FastBCSResult:
        """Run the search to completion and return the result."""
        m = self.matrix
        n = m.size
        t0 = time.perf_counter()
        m.set_permutation(np.arange(n))
        ctx = SearchContext.start(n, record_trace=self.record_trace)

        if n <= 1:
            # No pairs: the identity is already terminal.
            m.recompute_column_sums(n - 1)
            return self._result(ctx, max(n - 1, 0), t0)

        logger.info(f"FastBCS[{self.mode}] starting: n={n}")
        total = m.recompute_column_sums(ctx.stage)
        ctx.tau.record(ctx.stage, total)

        while not self._is_terminal(ctx.stage):
            if self.verify_cache:
                self._check_cache(ctx.stage)
            self._eliminate(ctx)
            if self._lookback(ctx) is None:
                ctx.stage -= 1
                ctx.tau.record(ctx.stage, m.stage_sum(ctx.stage))

        m.check_bijection()
        if self.verify_cache:
            self._check_cache(ctx.stage)
        result = self._result(ctx, ctx.stage, t0)
        logger.info(f"FastBCS[{self.mode}] finished: {result.trace.summary()}")
        return result

    def _result(self, ctx: SearchContext, terminal_stage: int,
                t0: float) -> FastBCSResult:
        perm = self.matrix.perm
        perm.setflags(write=False)
        tau = ctx.tau.finalize(terminal_stage)
        tau.setflags(write=False)
        trace = SearchTrace(
            n=ctx.n,
            variant=self.mode,
            eliminations=tuple(ctx.eliminations),
            corrections=tuple(ctx.corrections),
            terminal_stage=terminal_stage,
            elapsed_s=time.perf_counter() - t0,
        )
        return FastBCSResult(
            permutation=perm,
            tau_path=tau,
            terminal_stage=terminal_stage,
            variant=self.mode,
            trace=trace,
        )


# ═══════════════════════════════════════════════════════════════════
# Functional API
# ═══════════════════════════════════════════════════════════════════

def fastbcs(
    x: Sequence[float],
    y: Sequence[float],
    *,
    variant: Optional[str] = None,
    parallel: Optional[bool] = None,
    settings: Optional[SearchSettings] = None,
) -> FastBCSResult:
    """Order paired observations *x*, *y* with FastBCS.

    Parameters
    ----------
    x, y : sequence of float
        Equal-length observation vectors.
    variant : str, optional
        ``"FastBCS"`` / ``"recompute"`` or ``"FastBCS2"`` /
        ``"incremental"``.  Defaults to ``engine.column_sums``.
    parallel : bool, optional
        Threaded matrix construction.  Defaults to ``matrix.parallel``.
    settings : SearchSettings, optional
        Defaults to :data:`DEFAULT_SETTINGS`.

    Raises
    ------
    InputLengthMismatch
        If *x* and *y* differ in length.
    """
    settings = settings or DEFAULT_SETTINGS
    matrix = ConcordanceMatrix.from_xy(x, y, parallel=parallel,
                                       settings=settings)
    return FastBCS(matrix, settings=settings, variant=variant).run()


def get_pi(x: Sequence[float], y: Sequence[float], **kwargs) -> List[int]:
    """Final permutation as a list of ints."""
    return fastbcs(x, y, **kwargs).permutation.tolist()


def get_tau(x: Sequence[float], y: Sequence[float], **kwargs) -> List[float]:
    """Tau-path of the final permutation as a list of floats."""
    return [float(t) for t in fastbcs(x, y, **kwargs).tau_path]
