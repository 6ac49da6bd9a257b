"""Tests for key classification and the key pipeline."""

import numpy as np
import pytest

from conftest import tone
from tempokey.config import KeyConfig
from tempokey.core.key import (
    CAMELOT_MAJOR,
    CAMELOT_MINOR,
    MINOR_PROFILE,
    NOTE_NAMES,
    UNKNOWN_CAMELOT,
    UNKNOWN_KEY,
    KeyAnalyzer,
    KeyResult,
    match_key,
)


MAJOR_TRIAD = np.zeros(12)
MAJOR_TRIAD[[0, 4, 7]] = [1.0, 0.6, 0.8]


class TestMatchKey:
    @pytest.mark.parametrize("tonic", range(12))
    def test_major_triads(self, tonic):
        match = match_key(np.roll(MAJOR_TRIAD, tonic))
        assert match.tonic_index == tonic
        assert not match.is_minor
        assert match.key == f"{NOTE_NAMES[tonic]} major"
        assert match.camelot == CAMELOT_MAJOR[tonic]

    @pytest.mark.parametrize("tonic", range(12))
    def test_minor_profiles(self, tonic):
        match = match_key(np.roll(MINOR_PROFILE, tonic))
        assert match.tonic_index == tonic
        assert match.is_minor
        assert match.key == f"{NOTE_NAMES[tonic]} minor"
        assert match.camelot == CAMELOT_MINOR[tonic]

    def test_camelot_wheel(self):
        assert match_key(MAJOR_TRIAD).camelot == "8B"
        assert match_key(np.roll(MINOR_PROFILE, 9)).camelot == "8A"
        assert match_key(np.roll(MAJOR_TRIAD, 7)).camelot == "9B"

    def test_scale_invariant(self):
        chroma = np.roll(MINOR_PROFILE, 4)
        a, b = match_key(chroma), match_key(chroma * 17.0)
        assert (a.key, a.camelot) == (b.key, b.camelot)
        assert a.confidence == pytest.approx(b.confidence)

    def test_confidence_range(self):
        rng = np.random.RandomState(0)
        for _ in range(20):
            match = match_key(rng.rand(12))
            assert 0.0 <= match.confidence <= 1.0

    def test_wrong_shape(self):
        with pytest.raises(ValueError):
            match_key(np.ones(24))


class TestKeyAnalyzer:
    @pytest.fixture
    def analyzer(self):
        return KeyAnalyzer()

    def test_pure_sine_is_a(self, analyzer, pure_sine):
        result = analyzer.analyze(pure_sine)
        assert isinstance(result, KeyResult)
        assert int(np.argmax(result.chroma)) == 9
        assert result.tonic_index == 9
        assert result.key == "A major"
        assert result.camelot == "11B"
        assert result.analyzed_seconds == 5

    def test_tuning_follows_detuned_sine(self, analyzer):
        detuned = tone([440.0 * 2 ** (20.0 / 1200.0)], 3.0)
        result = analyzer.analyze(detuned)
        assert result.reference_a4_hz == pytest.approx(445.1, abs=1.0)
        assert result.tonic_index == 9

    def test_c_major_chord_in_c_major_family(self, analyzer, c_major_chord):
        result = analyzer.analyze(c_major_chord)
        assert not result.is_unknown
        # C major diatonic roots: C(0), D(2), E(4), F(5), G(7), A(9), B(11)
        assert result.tonic_index in {0, 2, 4, 5, 7, 9, 11}
        assert 0.0 <= result.confidence <= 1.0

    def test_silence(self, analyzer, silence):
        result = analyzer.analyze(silence)
        assert result.key == UNKNOWN_KEY
        assert result.camelot == UNKNOWN_CAMELOT
        assert result.confidence == 0.0
        assert result.is_unknown

    def test_shorter_than_one_frame(self, analyzer, short_buffer):
        result = analyzer.analyze(short_buffer)
        assert result.key == UNKNOWN_KEY
        assert result.camelot == UNKNOWN_CAMELOT
        assert result.analyzed_seconds == 0

    def test_prefix_limit(self, pure_sine):
        result = KeyAnalyzer(KeyConfig(max_analyze_seconds=2.0)).analyze(pure_sine)
        assert result.analyzed_seconds == 2
        assert result.key == "A major"

    def test_deterministic(self, analyzer, c_major_chord):
        a = analyzer.analyze(c_major_chord)
        b = analyzer.analyze(c_major_chord)
        assert a.key == b.key
        assert a.confidence == b.confidence
        assert np.array_equal(a.chroma, b.chroma)

    def test_worker_count_does_not_change_key(self, c_major_chord):
        serial = KeyAnalyzer(KeyConfig(workers=1)).analyze(c_major_chord)
        parallel = KeyAnalyzer(KeyConfig(workers=4)).analyze(c_major_chord)
        assert serial.key == parallel.key
        assert np.allclose(serial.chroma, parallel.chroma)
