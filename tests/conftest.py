"""Shared synthetic-signal fixtures."""

import numpy as np
import pytest

from tempokey.core.buffer import PcmBuffer

TEST_SR = 22050


def click_track(bpm: float, seconds: float, sr: int = TEST_SR) -> PcmBuffer:
    """Short broadband noise bursts every ``60 / bpm`` seconds, starting at 0."""
    n = int(seconds * sr)
    y = np.zeros(n, dtype=np.float64)
    burst_len = int(0.01 * sr)
    rng = np.random.RandomState(0)
    burst = rng.uniform(-1.0, 1.0, burst_len) * np.exp(-np.linspace(0.0, 6.0, burst_len))
    for onset in np.arange(0.0, seconds, 60.0 / bpm):
        start = int(round(onset * sr))
        stop = min(n, start + burst_len)
        y[start:stop] += 0.9 * burst[: stop - start]
    return PcmBuffer(y.astype(np.float32), sr)


def tone(freqs, seconds: float, sr: int = TEST_SR, amplitude: float = 0.3) -> PcmBuffer:
    """Sum of sustained sines."""
    t = np.arange(int(seconds * sr)) / sr
    y = sum(amplitude * np.sin(2 * np.pi * f * t) for f in freqs)
    return PcmBuffer(np.asarray(y, dtype=np.float32), sr)


def tempo_matches(estimate: float, truth: float, tolerance: float = 0.02) -> bool:
    """True if ``estimate`` is within tolerance of ``truth`` or its half / double."""
    return any(
        abs(estimate - ref) <= tolerance * ref
        for ref in (truth, truth / 2.0, truth * 2.0)
    )


@pytest.fixture
def make_click_track():
    return click_track


@pytest.fixture
def click_120():
    """12 seconds of clicks at 120 BPM."""
    return click_track(120.0, 12.0)


@pytest.fixture
def pure_sine():
    """Sustained A4 (440 Hz), 5 seconds."""
    return tone([440.0], 5.0)


@pytest.fixture
def c_major_chord():
    """A C-major chord (C4, E4, G4) lasting 4 seconds."""
    return tone([261.63, 329.63, 392.00], 4.0)


@pytest.fixture
def silence():
    return PcmBuffer(np.zeros(5 * TEST_SR, dtype=np.float32), TEST_SR)


@pytest.fixture
def short_buffer():
    """Fewer samples than one analysis frame."""
    rng = np.random.RandomState(1)
    return PcmBuffer(rng.uniform(-0.5, 0.5, 1000).astype(np.float32), TEST_SR)
