"""SearchSettings — every tunable knob of a FastBCS run in one place.

The concordance matrix and the FastBCS engine read their options from a
typed, immutable registry that can be:

* **inspected** — ``settings["engine.column_sums"]``
* **overridden** — ``settings.replace({"matrix.parallel": True})``
* **diffed** — ``settings.diff(other)``

Keys are dotted ``section.name`` strings.  Two sections exist:

``matrix``
    Construction of the sign matrix (threading).
``engine``
    Column-sum maintenance strategy, cache verification, tracing.

Usage
-----
>>> from taupath.settings import DEFAULT_SETTINGS
>>> DEFAULT_SETTINGS["engine.column_sums"]
'incremental'
>>> cold = DEFAULT_SETTINGS.replace({"engine.column_sums": "recompute"})
>>> cold.diff(DEFAULT_SETTINGS)
{'engine.column_sums': ('recompute', 'incremental')}
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, Optional, Tuple

__all__ = [
    "SearchSettings",
    "DEFAULT_SETTINGS",
    "COLUMN_SUM_MODES",
    "VARIANTS",
    "resolve_variant",
]

COLUMN_SUM_MODES: Tuple[str, ...] = ("incremental", "recompute")
"""Supported values of ``engine.column_sums``."""

VARIANTS: Dict[str, str] = {
    "fastbcs": "recompute",
    "fastbcs2": "incremental",
    "recompute": "recompute",
    "incremental": "incremental",
}
"""Variant names (case-insensitive) → ``engine.column_sums`` value.

``FastBCS`` recomputes column sums from scratch after every permutation
change; ``FastBCS2`` patches them incrementally.  Both produce the same
permutation and tau-path.
"""


def resolve_variant(name: str) -> str:
    """Map a variant name to its ``engine.column_sums`` mode.

    Raises
    ------
    ValueError
        If *name* is not a known variant.
    """
    key = str(name).strip().lower()
    if key not in VARIANTS:
        raise ValueError(
            f"Unknown FastBCS variant {name!r}. "
            f"Valid names: FastBCS, FastBCS2, incremental, recompute")
    return VARIANTS[key]


# ═══════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════

def _check_bool(key: str, value: Any) -> None:
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a bool, got {value!r}")


def _check_count(key: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{key} must be a non-negative int, got {value!r}")


def _check_mode(key: str, value: Any) -> None:
    if value not in COLUMN_SUM_MODES:
        raise ValueError(
            f"{key} must be one of {COLUMN_SUM_MODES}, got {value!r}")


_VALIDATORS = {
    "matrix.parallel": _check_bool,
    "matrix.max_workers": _check_count,
    "matrix.parallel_min_size": _check_count,
    "engine.column_sums": _check_mode,
    "engine.verify_cache": _check_bool,
    "engine.record_trace": _check_bool,
}


# ═══════════════════════════════════════════════════════════════════
# SearchSettings
# ═══════════════════════════════════════════════════════════════════

class SearchSettings:
    """Immutable mapping of dotted setting keys → values.

    Parameters
    ----------
    data : dict[str, Any]
        ``{"section.name": value, ...}``.  Known keys are validated.
    name : str, optional
        Human-readable label (e.g. ``"default"``, ``"cold-check"``).

    Notes
    -----
    * Read-only: ``__setitem__`` raises ``TypeError``.
    * ``replace()`` returns a new instance.
    * ``diff()`` compares two instances.
    * Iteration yields keys.
    """

    def __init__(self, data: Dict[str, Any], *, name: str = "custom"):
        for key, value in data.items():
            check = _VALIDATORS.get(key)
            if check is not None:
                check(key, value)
        self._data: Dict[str, Any] = dict(data)
        self._name = name

    # ── read ────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __repr__(self) -> str:
        return f"SearchSettings({self._name!r}, {len(self._data)} keys)"

    def get(self, key: str, default: Any = None) -> Any:
        """Return value for *key*, or *default* if missing."""
        return self._data.get(key, default)

    def keys(self):
        return self._data.keys()

    def values(self):
        return self._data.values()

    def items(self):
        return self._data.items()

    def to_dict(self) -> Dict[str, Any]:
        """Return a mutable copy of the data."""
        return dict(self._data)

    # ── immutable mutation ──────────────────────────────────────

    def __setitem__(self, key: str, value: Any):
        raise TypeError(
            "SearchSettings is immutable — use .replace() instead")

    def replace(
        self,
        overrides: Dict[str, Any],
        *,
        name: Optional[str] = None,
    ) -> "SearchSettings":
        """Return new settings with selected keys overridden.

        Parameters
        ----------
        overrides : dict
            ``{key: new_value}`` for keys to change.
        name : str, optional
            Name for the new instance.  Defaults to ``self.name + "+"``.

        Raises
        ------
        KeyError
            If any key in *overrides* is not present.
        ValueError
            If a new value fails validation.
        """
        for k in overrides:
            if k not in self._data:
                raise KeyError(
                    f"Unknown setting key {k!r}. "
                    f"Valid keys: {sorted(self._data.keys())}"
                )
        merged = dict(self._data)
        merged.update(overrides)
        return SearchSettings(merged, name=name or (self._name + "+"))

    # ── comparison ──────────────────────────────────────────────

    def diff(self, other: "SearchSettings") -> Dict[str, Tuple[Any, Any]]:
        """Return ``{key: (self_value, other_value)}`` for differing keys."""
        result = {}
        for k in sorted(set(self._data) | set(other._data)):
            v_self = self._data.get(k)
            v_other = other._data.get(k)
            if v_self != v_other:
                result[k] = (v_self, v_other)
        return result

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SearchSettings):
            return NotImplemented
        return self._data == other._data

    # ── section access ──────────────────────────────────────────

    def section(self, prefix: str) -> Dict[str, Any]:
        """Return all keys starting with *prefix* as a flat dict."""
        return {
            k: v for k, v in self._data.items()
            if k.startswith(prefix + ".")
        }

    @property
    def sections(self) -> Tuple[str, ...]:
        """Return sorted tuple of all section prefixes."""
        prefixes = set()
        for k in self._data:
            dot = k.find(".")
            if dot > 0:
                prefixes.add(k[:dot])
        return tuple(sorted(prefixes))

    # ── convenience ─────────────────────────────────────────────

    def with_variant(self, variant: str) -> "SearchSettings":
        """Return settings whose ``engine.column_sums`` matches *variant*."""
        mode = resolve_variant(variant)
        if mode == self._data.get("engine.column_sums"):
            return self
        return self.replace({"engine.column_sums": mode},
                            name=f"{self._name}:{mode}")


# ═══════════════════════════════════════════════════════════════════
# DEFAULT_SETTINGS
# ═══════════════════════════════════════════════════════════════════

DEFAULT_SETTINGS = SearchSettings({
    # Threaded construction of the N×N sign matrix.  Output is
    # identical either way; only wall time changes.
    "matrix.parallel": False,
    # 0 lets ThreadPoolExecutor pick its own worker count.
    "matrix.max_workers": 0,
    # Below this many observations construction stays sequential even
    # when parallel is requested.
    "matrix.parallel_min_size": 256,

    # "incremental" patches column sums in O(stage) per step,
    # "recompute" rebuilds them cold in O(stage²).
    "engine.column_sums": "incremental",
    # Compare the cache against a cold recomputation every iteration.
    "engine.verify_cache": False,
    # Keep per-iteration Elimination / Correction records.
    "engine.record_trace": True,
}, name="default")
