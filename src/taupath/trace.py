"""SearchTrace — audit trail for one FastBCS run.

Captures every elimination and every retroactive correction the engine
performed, in frozen dataclasses suitable for debugging, comparison
between variants, and serialisation.

Usage
-----
>>> from taupath import fastbcs
>>> result = fastbcs(x, y)
>>> trace = result.trace
>>> trace.n_corrections        # retroactive tie re-resolutions
>>> trace.elimination_order     # observations in elimination order
>>> trace.to_dict()            # JSON-safe dict
>>> print(trace.explain())
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

__all__ = [
    "Elimination",
    "Correction",
    "SearchTrace",
]


# ═══════════════════════════════════════════════════════════════════
# Per-iteration records
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Elimination:
    """One backward-elimination step.

    ``ties`` is the full tie list at ``stage`` (observation ids in
    position order); ``eliminated`` is its first entry, which was moved
    from ``from_position`` to position ``stage``.
    """

    stage: int
    ties: Tuple[int, ...]
    eliminated: int
    from_position: int

    @property
    def tied(self) -> bool:
        return len(self.ties) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "ties": list(self.ties),
            "eliminated": self.eliminated,
            "from_position": self.from_position,
        }


@dataclass(frozen=True)
class Correction:
    """One retroactive re-resolution of an earlier tie.

    Observation ``retained`` (previously eliminated at stage ``k``)
    moved to position ``stage``; observation ``displaced`` moved to
    position ``k``.  The search resumed at ``new_stage = k - 1``.
    """

    stage: int
    k: int
    retained: int
    displaced: int
    new_stage: int
    q_stage: Tuple[int, ...] = ()
    q_k: Tuple[int, ...] = ()
    invalidated_ties: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "k": self.k,
            "retained": self.retained,
            "displaced": self.displaced,
            "new_stage": self.new_stage,
            "q_stage": list(self.q_stage),
            "q_k": list(self.q_k),
            "invalidated_ties": self.invalidated_ties,
        }


# ═══════════════════════════════════════════════════════════════════
# SearchTrace — the full audit trail
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SearchTrace:
    """Complete audit trail for one search.

    1. **n** — number of observations
    2. **variant** — ``"incremental"`` or ``"recompute"``
    3. **eliminations** — :class:`Elimination` records in order
    4. **corrections** — :class:`Correction` records in order
    5. **terminal_stage** — stage at which the block became concordant
    6. **elapsed_s** — wall time of the search loop
    """

    n: int
    variant: str
    eliminations: Tuple[Elimination, ...] = ()
    corrections: Tuple[Correction, ...] = ()
    terminal_stage: int = 0
    elapsed_s: float = 0.0

    # ── Derived properties ──────────────────────────────────────

    @property
    def n_iterations(self) -> int:
        return len(self.eliminations)

    @property
    def n_corrections(self) -> int:
        return len(self.corrections)

    @property
    def n_ties(self) -> int:
        """Number of eliminations that had to break a tie."""
        return sum(1 for e in self.eliminations if e.tied)

    @property
    def elimination_order(self) -> List[int]:
        """Eliminated observations in the order they were chosen."""
        return [e.eliminated for e in self.eliminations]

    # ── Serialisation ───────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-safe dict of the full trace."""
        return {
            "n": self.n,
            "variant": self.variant,
            "eliminations": [e.to_dict() for e in self.eliminations],
            "corrections": [c.to_dict() for c in self.corrections],
            "terminal_stage": self.terminal_stage,
            "elapsed_s": round(self.elapsed_s, 6),
            "n_iterations": self.n_iterations,
            "n_corrections": self.n_corrections,
            "n_ties": self.n_ties,
        }

    def summary(self) -> str:
        """One-line human-readable summary."""
        return (
            f"n={self.n} variant={self.variant} "
            f"iterations={self.n_iterations} ties={self.n_ties} "
            f"corrections={self.n_corrections} "
            f"terminal_stage={self.terminal_stage} "
            f"({self.elapsed_s * 1000:.1f} ms)"
        )

    def explain(self, limit: int = 50) -> str:
        """Multi-line listing of the first *limit* events."""
        lines = [f"FastBCS search: {self.summary()}"]
        shown = 0
        pending = list(self.corrections)
        for e in self.eliminations:
            if shown >= limit:
                lines.append(f"  … {self.n_iterations - shown} more")
                break
            tie = f" ties={list(e.ties)}" if e.tied else ""
            lines.append(
                f"  stage {e.stage:>4d}: eliminate {e.eliminated}"
                f" (from position {e.from_position}){tie}")
            if pending and pending[0].stage == e.stage \
                    and pending[0].displaced == e.eliminated:
                c = pending.pop(0)
                lines.append(
                    f"      ↺ retain {c.retained} over {c.displaced}, "
                    f"re-open at stage {c.new_stage} (k={c.k})")
            shown += 1
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"SearchTrace(n={self.n}, variant={self.variant!r}, "
            f"iterations={self.n_iterations}, "
            f"corrections={self.n_corrections})"
        )
