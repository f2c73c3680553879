"""Tests for tau-path scoring."""

import numpy as np
import pytest
from scipy.stats import kendalltau

from conftest import SCENARIOS, random_xy
from taupath.concordance import ConcordanceMatrix
from taupath.errors import InternalInvariantViolation
from taupath.tau_path import (
    TauPathRecorder,
    direct_tau_path,
    prefix_tau,
    tau_from_sum,
)


class TestTauFromSum:

    def test_values(self):
        assert tau_from_sum(12, 3) == 1.0
        assert tau_from_sum(-12, 3) == -1.0
        assert tau_from_sum(10, 3) == pytest.approx(10 / 12)

    @pytest.mark.parametrize("k", [0, -1])
    def test_undefined_stage(self, k):
        with pytest.raises(ValueError):
            tau_from_sum(0, k)


# ═══════════════════════════════════════════════════════════════════
# Direct (reference) path
# ═══════════════════════════════════════════════════════════════════

class TestDirectTauPath:

    def test_concordant(self):
        m = ConcordanceMatrix.from_xy(*SCENARIOS["concordant"])
        assert direct_tau_path(m).tolist() == [1.0, 1.0, 1.0, 1.0]

    def test_discordant(self):
        m = ConcordanceMatrix.from_xy(*SCENARIOS["discordant"])
        assert direct_tau_path(m).tolist() == [-1.0, -1.0, -1.0, -1.0]

    def test_follows_permutation(self, tied_matrix):
        tied_matrix.set_permutation([3, 1, 2, 0])
        tau = direct_tau_path(tied_matrix)
        np.testing.assert_allclose(tau, [1.0, 1.0, 1.0, 10 / 12])

    def test_degenerate_sizes(self):
        assert direct_tau_path(ConcordanceMatrix.from_xy([], [])).size == 0
        assert direct_tau_path(
            ConcordanceMatrix.from_xy([1.0], [2.0])).tolist() == [1.0]

    def test_first_entry_copies_second(self, lookback_matrix):
        tau = direct_tau_path(lookback_matrix)
        assert tau[0] == tau[1] == -1.0

    @pytest.mark.parametrize("seed", [0, 1, 2, 3])
    def test_matches_prefix_tau(self, seed):
        x, y = random_xy(25, seed=seed, ties=True)
        m = ConcordanceMatrix.from_xy(x, y)
        m.set_permutation(np.random.default_rng(seed).permutation(25))
        tau = direct_tau_path(m)
        for k in range(25):
            assert tau[k] == pytest.approx(prefix_tau(m, k))

    @pytest.mark.parametrize("seed", [4, 5, 6])
    def test_matches_kendall_without_ties(self, seed):
        # Tau-a equals tau-b when no pair is tied.
        x, y = random_xy(40, seed=seed)
        tau = direct_tau_path(ConcordanceMatrix.from_xy(x, y))
        for k in (1, 5, 20, 39):
            expected = kendalltau(x[:k + 1], y[:k + 1])[0]
            assert tau[k] == pytest.approx(expected)


class TestPrefixTau:

    def test_stage_zero_uses_first_pair(self, lookback_matrix):
        assert prefix_tau(lookback_matrix, 0) == \
            prefix_tau(lookback_matrix, 1) == -1.0

    def test_single_observation(self):
        assert prefix_tau(ConcordanceMatrix.from_xy([3.0], [1.0]), 0) == 1.0


# ═══════════════════════════════════════════════════════════════════
# Recorder
# ═══════════════════════════════════════════════════════════════════

class TestTauPathRecorder:

    def test_record_and_finalize(self):
        rec = TauPathRecorder(5)
        assert rec.record(4, -6) == pytest.approx(-0.3)
        assert rec.record(3, -2) == pytest.approx(-1 / 6)
        assert rec.record(2, 6) == 1.0
        tau = rec.finalize(2)
        np.testing.assert_allclose(tau, [1.0, 1.0, 1.0, -1 / 6, -0.3])

    def test_stage_zero_is_skipped(self):
        rec = TauPathRecorder(3)
        assert rec.record(0, 0) is None
        assert np.isnan(rec[0])

    def test_finalize_fills_concordant_prefix(self):
        rec = TauPathRecorder(6)
        rec.record(5, 10)
        rec.record(4, 20)
        tau = rec.finalize(4)
        assert tau[:4].tolist() == [1.0, 1.0, 1.0, 1.0]
        assert tau[4] == 1.0
        assert tau[5] == pytest.approx(1 / 3)

    def test_pending_stage_fails_fast(self):
        rec = TauPathRecorder(5)
        rec.record(4, -6)
        with pytest.raises(InternalInvariantViolation, match=r"\[2, 3\]"):
            rec.finalize(2)

    def test_invalidate_marks_pending(self):
        rec = TauPathRecorder(5)
        for stage in range(1, 5):
            rec.record(stage, 0)
        rec.invalidate(0, 2)
        assert np.isnan(rec[1]) and np.isnan(rec[2])
        assert rec[3] == 0.0
        rec.invalidate(3, 2)
        assert rec[3] == 0.0

    def test_finalize_does_not_mutate_buffer(self):
        rec = TauPathRecorder(3)
        rec.record(2, 0)
        rec.finalize(2)
        assert np.isnan(rec[1])

    def test_degenerate_sizes(self):
        assert TauPathRecorder(0).finalize(0).size == 0
        assert TauPathRecorder(1).finalize(0).tolist() == [1.0]

    def test_repr(self):
        rec = TauPathRecorder(4)
        rec.record(3, 12)
        assert repr(rec) == "TauPathRecorder(n=4, recorded=1)"
