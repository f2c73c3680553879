"""taupath: concordance-ordered permutations and tau-paths.

Orders N paired observations with **Fast Backward Conditional Search**
(FastBCS): starting from the full set, the least concordant observation
is eliminated stage by stage, ties are broken deterministically, and
earlier tie resolutions are revisited when a later stage shows they were
suboptimal.  The **tau-path** of the resulting order gives the mean
pairwise concordance of every prefix.

>>> from taupath import fastbcs
>>> result = fastbcs([1, 2, 3, 4], [1, 1, 3, 4])
>>> result.permutation.tolist(), result.terminal_stage
([3, 1, 2, 0], 2)
"""
from .errors import TauPathError, InputLengthMismatch, InternalInvariantViolation
from .settings import (
    SearchSettings, DEFAULT_SETTINGS, COLUMN_SUM_MODES, VARIANTS,
    resolve_variant,
)
from .concordance import ConcordanceMatrix, sign_matrix
from .tau_path import tau_from_sum, prefix_tau, direct_tau_path, TauPathRecorder
from .ties import TieTable, stagewise_dominates
from .trace import Elimination, Correction, SearchTrace
from .fastbcs import (
    SearchContext, FastBCSResult, FastBCS,
    fastbcs, get_pi, get_tau,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "TauPathError", "InputLengthMismatch", "InternalInvariantViolation",
    # Settings
    "SearchSettings", "DEFAULT_SETTINGS", "COLUMN_SUM_MODES", "VARIANTS",
    "resolve_variant",
    # Concordance matrix
    "ConcordanceMatrix", "sign_matrix",
    # Tau-path scoring
    "tau_from_sum", "prefix_tau", "direct_tau_path", "TauPathRecorder",
    # Ties and dominance
    "TieTable", "stagewise_dominates",
    # Audit trail
    "Elimination", "Correction", "SearchTrace",
    # Engine
    "SearchContext", "FastBCSResult", "FastBCS",
    "fastbcs", "get_pi", "get_tau",
]
