"""Tests for the combined tempo + key pipeline."""

import numpy as np
import pytest
from scipy.io import wavfile

from conftest import TEST_SR, click_track, tempo_matches
from tempokey.config import BpmConfig, KeyConfig
from tempokey.core.buffer import PcmBuffer
from tempokey.pipeline import AudioPipeline, TrackAnalysis


def song(seconds: float = 10.0) -> PcmBuffer:
    """Clicks at 120 BPM over a sustained A4."""
    clicks = click_track(120.0, seconds)
    t = np.arange(clicks.n_samples) / TEST_SR
    y = clicks.samples + 0.2 * np.sin(2 * np.pi * 440.0 * t)
    return PcmBuffer(y.astype(np.float32), TEST_SR)


@pytest.fixture
def pipeline():
    return AudioPipeline()


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "song.wav"
    pcm = song()
    wavfile.write(str(path), TEST_SR, (pcm.samples * 32767 * 0.8).astype(np.int16))
    return path


class TestAnalyzeBuffer:
    def test_fields(self, pipeline):
        pcm = song()
        analysis = pipeline.analyze_buffer(pcm)
        assert isinstance(analysis, TrackAnalysis)
        assert tempo_matches(analysis.bpm, 120.0)
        assert analysis.key is not None
        assert analysis.camelot is not None
        assert 0.0 <= analysis.bpm_confidence <= 1.0
        assert 0.0 <= analysis.key_confidence <= 1.0
        assert analysis.duration == pytest.approx(pcm.duration)
        assert analysis.sample_rate == TEST_SR
        assert len(analysis.beats_seconds) > 0
        assert analysis.bpm_analyzed_seconds == 10
        assert analysis.key_analyzed_seconds == 10

    def test_matches_individual_analyzers(self, pipeline):
        pcm = song()
        analysis = pipeline.analyze_buffer(pcm)
        bpm = pipeline.bpm_analyzer.analyze(pcm)
        key = pipeline.key_analyzer.analyze(pcm)
        assert analysis.bpm == bpm.bpm
        assert analysis.key == key.key
        assert analysis.camelot == key.camelot
        assert np.array_equal(analysis.beats_seconds, bpm.beats_seconds)

    def test_empty_buffer(self, pipeline):
        analysis = pipeline.analyze_buffer(PcmBuffer(np.zeros(0, dtype=np.float32), TEST_SR))
        assert analysis.bpm is None
        assert analysis.key is None
        assert analysis.camelot is None
        assert analysis.bpm_confidence == 0.0
        assert analysis.key_confidence == 0.0
        assert len(analysis.beats_seconds) == 0

    def test_silence_gives_sentinels(self, pipeline, silence):
        analysis = pipeline.analyze_buffer(silence)
        assert analysis.bpm == 120.0
        assert analysis.bpm_confidence == 0.0
        assert analysis.key == "Unknown"
        assert analysis.camelot == "--"

    def test_analyzed_seconds_per_pipeline(self):
        analysis = AudioPipeline(
            bpm_config=BpmConfig(max_analyze_seconds=6.0),
            key_config=KeyConfig(max_analyze_seconds=4.0),
        ).analyze_buffer(song())
        assert analysis.bpm_analyzed_seconds == 6
        assert analysis.key_analyzed_seconds == 4

    def test_configs_are_threaded_through(self):
        pipeline = AudioPipeline(
            bpm_config=BpmConfig(engine="baseline", max_analyze_seconds=5.0),
            key_config=KeyConfig(hpcp_bins=12),
        )
        assert pipeline.bpm_analyzer.config.engine == "baseline"
        assert pipeline.bpm_analyzer.config.max_analyze_seconds == 5.0
        assert pipeline.key_analyzer.config.hpcp_bins == 12


class TestProcess:
    def test_wav_file(self, pipeline, wav_file):
        analysis = pipeline.process(wav_file)
        assert analysis.sample_rate == TEST_SR
        assert analysis.duration == pytest.approx(10.0, abs=0.01)
        assert tempo_matches(analysis.bpm, 120.0)
        assert analysis.key is not None

    def test_decodes_only_analysis_window(self, wav_file):
        pipeline = AudioPipeline(
            bpm_config=BpmConfig(max_analyze_seconds=3.0),
            key_config=KeyConfig(max_analyze_seconds=4.0),
        )
        analysis = pipeline.process(str(wav_file))
        assert analysis.duration == pytest.approx(4.0, abs=0.01)

    def test_resample_on_load(self, pipeline, wav_file):
        analysis = pipeline.process(wav_file, sr=11025)
        assert analysis.sample_rate == 11025

    def test_missing_file(self, pipeline, tmp_path):
        with pytest.raises(Exception):
            pipeline.process(tmp_path / "missing.wav")
