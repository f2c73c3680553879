"""Tie bookkeeping and the stagewise dominance test.

When several observations share the minimum column sum at a stage, the
engine eliminates the one at the lowest position and remembers the
whole tie list.  If a later stage eliminates another member of that
list, :func:`stagewise_dominates` decides whether the earlier choice
should be revisited.
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Sequence, Tuple

import numpy as np

__all__ = [
    "TieTable",
    "stagewise_dominates",
]


def stagewise_dominates(q_stage: Sequence[int], q_k: Sequence[int]) -> bool:
    """Whether column ``k`` dominates column ``stage`` over a row window.

    Both arguments are cumulative vectors from
    :meth:`ConcordanceMatrix.cumulative_column` over rows ``stage..k``
    (length ``k - stage + 1``).  Only the first ``k - stage`` entries are
    compared; the last one sums the whole block ``0..k`` and is equal for
    both columns whenever they tied at stage ``k``.

    Returns ``True`` when ``q_stage <= q_k`` entrywise with at least one
    strict ``<``, i.e. keeping observation ``k`` in place of the one just
    eliminated gives a tau-path at least as high at every stage of the
    window and strictly higher at one.
    """
    a = np.asarray(q_stage)
    b = np.asarray(q_k)
    if a.shape != b.shape or a.ndim != 1:
        raise ValueError(
            f"cumulative vectors must be 1-D and equal length, "
            f"got {a.shape} and {b.shape}")
    a = a[:-1]
    b = b[:-1]
    return bool(np.all(a <= b) and np.any(a < b))


class TieTable:
    """Stage → tie list records with a validity watermark.

    Parameters
    ----------
    n : int
        Number of observations; the initial watermark is ``n - 1``.

    Notes
    -----
    Only stages whose tie list has more than one member are recorded.
    After a retroactive correction landing at stage ``s`` every record
    at ``>= s`` is stale; :meth:`invalidate_from` drops them and lowers
    the watermark to ``s``.
    """

    def __init__(self, n: int):
        self._records: Dict[int, Tuple[int, ...]] = {}
        self.watermark = n - 1

    def record(self, stage: int, ties: Sequence[int]) -> None:
        self._records[stage] = tuple(int(t) for t in ties)

    def get(self, stage: int) -> Tuple[int, ...]:
        return self._records.get(stage, ())

    def candidates(self, observation: int, stage: int) -> List[int]:
        """Recorded stages above *stage* whose tie list holds *observation*.

        Only stages up to the watermark are considered.  Sorted from the
        highest stage down.
        """
        return [
            k for k in range(self.watermark, stage, -1)
            if observation in self._records.get(k, ())
        ]

    def invalidate_from(self, stage: int) -> int:
        """Drop records at stages ``>= stage``; returns how many went."""
        stale = [k for k in self._records if k >= stage]
        for k in stale:
            del self._records[k]
        self.watermark = stage
        return len(stale)

    @property
    def stages(self) -> List[int]:
        """Recorded stages, highest first."""
        return sorted(self._records, reverse=True)

    def __contains__(self, stage: int) -> bool:
        return stage in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[int]:
        return iter(self.stages)

    def to_dict(self) -> Dict[int, List[int]]:
        return {k: list(v) for k, v in sorted(self._records.items())}

    def __repr__(self) -> str:
        return (f"TieTable({len(self._records)} stages, "
                f"watermark={self.watermark})")
