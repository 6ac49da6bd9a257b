"""Tests for baseline tempo induction."""

import numpy as np
import pytest

from conftest import tempo_matches
from tempokey.core.tempo import (
    DEFAULT_BPM,
    TempoCandidate,
    autocorrelation,
    beat_grid_alignment,
    clamp_bpm,
    comb_candidates,
    comb_score,
    estimate_bpm_from_odf,
    frames_per_beat,
    margin_confidence,
    tempo_prior,
)

FRAME_RATE = 22050 / 256.0


def spike_train(bpm, seconds=12.0, frame_rate=FRAME_RATE):
    n = int(seconds * frame_rate)
    odf = np.zeros(n, dtype=np.float32)
    period = 60.0 / bpm * frame_rate
    for pos in np.arange(0.0, n, period):
        odf[int(pos)] = 1.0
    return odf


class TestTempoPrior:
    @pytest.mark.parametrize(
        "bpm,expected",
        [(120.0, 1.0), (80.0, 1.0), (160.0, 1.0), (70.0, 0.9), (175.0, 0.9), (50.0, 0.7), (200.0, 0.7)],
    )
    def test_values(self, bpm, expected):
        assert tempo_prior(bpm) == expected

    def test_clamp(self):
        assert clamp_bpm(10.0) == 40.0
        assert clamp_bpm(300.0) == 240.0
        assert clamp_bpm(128.0) == 128.0


class TestAutocorrelation:
    def test_values(self):
        acf = autocorrelation(np.array([1.0, 2.0, 3.0]))
        assert np.allclose(acf, [14.0, 8.0, 3.0])

    def test_normalized(self):
        acf = autocorrelation(np.array([1.0, 2.0, 3.0]), normalize=True)
        assert acf[0] == pytest.approx(1.0)

    def test_empty(self):
        assert len(autocorrelation(np.zeros(0))) == 0


class TestCombFilter:
    def test_comb_score(self):
        odf = np.zeros(20)
        odf[::5] = 1.0
        # h=1 hits 4 spikes, h=2 hits 2
        assert comb_score(odf, 5, harmonics=2) == pytest.approx(4.0 + 2.0 / 2)

    def test_candidates_ascending_lag(self):
        cands = comb_candidates(spike_train(120.0), FRAME_RATE, 60.0, 180.0)
        bpms = [c.bpm for c in cands]
        assert bpms == sorted(bpms, reverse=True)
        assert bpms[0] <= 180.0 * 1.05
        assert frames_per_beat(60.0, FRAME_RATE) == int(FRAME_RATE)

    def test_margin_confidence(self):
        assert margin_confidence([1.0, 0.5, 0.25]) == pytest.approx(0.5)
        assert margin_confidence([1.0]) == 0.0
        assert margin_confidence([0.0, 0.0]) == 0.0
        assert margin_confidence([2.0, 2.0]) == 0.0


class TestBeatGridAlignment:
    def test_aligned_grid_scores_high(self):
        odf = spike_train(120.0)
        assert beat_grid_alignment(odf, FRAME_RATE, 120.0) > 0.9

    def test_off_tempo_scores_lower(self):
        odf = spike_train(120.0)
        assert beat_grid_alignment(odf, FRAME_RATE, 97.0) < beat_grid_alignment(odf, FRAME_RATE, 120.0)

    def test_empty(self):
        assert beat_grid_alignment(np.zeros(0), FRAME_RATE, 120.0) == 0.0


class TestEstimateBpm:
    @pytest.mark.parametrize("bpm", [90.0, 120.0, 140.0])
    def test_spike_train(self, bpm):
        cand = estimate_bpm_from_odf(spike_train(bpm), FRAME_RATE, 60.0, 180.0)
        assert isinstance(cand, TempoCandidate)
        assert tempo_matches(cand.bpm, bpm)

    def test_too_short(self):
        cand = estimate_bpm_from_odf(np.zeros(5, dtype=np.float32), FRAME_RATE)
        assert cand == TempoCandidate(DEFAULT_BPM, 0.0)
