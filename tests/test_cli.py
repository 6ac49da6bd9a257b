"""Tests for the command line interface."""

import json

import numpy as np
import pytest
from scipy.io import wavfile

from conftest import TEST_SR, click_track
from tempokey.cli import build_parser, format_text, main
from tempokey.pipeline import TrackAnalysis


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "clicks.wav"
    pcm = click_track(120.0, 8.0)
    wavfile.write(str(path), TEST_SR, (pcm.samples * 30000).astype(np.int16))
    return path


class TestParser:
    def test_defaults(self):
        args = build_parser().parse_args(["track.wav"])
        assert args.max_seconds == 120.0
        assert args.engine == "v2"
        assert args.bpm_min == 60.0
        assert args.bpm_max == 180.0
        assert not args.json
        assert not args.no_beats
        assert args.output is None

    def test_rejects_unknown_engine(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["track.wav", "--engine", "v3"])


class TestFormatText:
    def test_summary(self):
        analysis = TrackAnalysis(
            bpm=128.0,
            bpm_confidence=0.5,
            key="F minor",
            key_confidence=0.2,
            camelot="4A",
            beats_seconds=np.arange(10) * 0.46875,
        )
        text = format_text(analysis)
        assert "BPM:    128.00" in text
        assert "F minor  4A" in text
        assert text.endswith(" ...")
        assert "Beats" not in format_text(analysis, include_beats=False)

    def test_nothing_detected(self):
        analysis = TrackAnalysis(
            bpm=None, bpm_confidence=0.0, key=None, key_confidence=0.0, camelot=None
        )
        assert format_text(analysis) == "No audio to analyze"


class TestMain:
    def test_text_output(self, wav_file, capsys):
        assert main([str(wav_file)]) == 0
        out = capsys.readouterr().out
        assert "BPM:" in out
        assert "Key:" in out

    def test_json_output(self, wav_file, capsys):
        assert main([str(wav_file), "--json", "--no-beats"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["metadata"]["sample_rate"] == TEST_SR
        assert data["tempo"]["bpm"] > 0
        assert "beats_seconds" not in data["tempo"]

    def test_output_file(self, wav_file, tmp_path, capsys):
        out_path = tmp_path / "result.json"
        assert main([str(wav_file), "-o", str(out_path), "--engine", "baseline"]) == 0
        with open(out_path, encoding="utf-8") as f:
            data = json.load(f)
        assert data["tempo"]["n_beats"] == len(data["tempo"]["beats_seconds"])
        assert "BPM:" in capsys.readouterr().out

    def test_max_seconds(self, wav_file, capsys):
        assert main([str(wav_file), "--json", "--max-seconds", "3"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["metadata"]["duration"] == pytest.approx(3.0, abs=0.01)

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "nope.wav")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_undecodable_file(self, tmp_path, capsys):
        bad = tmp_path / "bad.wav"
        bad.write_bytes(b"definitely not audio")
        assert main([str(bad)]) == 1
        assert "could not analyze" in capsys.readouterr().err
