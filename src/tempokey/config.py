"""
Analysis configuration objects.

Every tunable parameter of the BPM and key pipelines lives here and is
threaded explicitly through constructors. Out-of-range values are never
rejected: they are clamped in ``__post_init__`` and a warning is logged.
"""

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

ENGINES = ("v2", "baseline")

MIN_FRAME_SIZE = 256
MAX_FRAME_SIZE = 16384
SANE_BPM_MIN = 40.0
SANE_BPM_MAX = 240.0


def _next_power_of_two(n: int) -> int:
    power = 1
    while power < n:
        power <<= 1
    return power


def _clamp(name: str, value, low, high):
    clamped = min(max(value, low), high)
    if clamped != value:
        logger.warning("%s=%s out of range, clamped to %s", name, value, clamped)
    return clamped


def _frame_size(name: str, value: int) -> int:
    size = _clamp(name, int(value), MIN_FRAME_SIZE, MAX_FRAME_SIZE)
    pow2 = _next_power_of_two(size)
    if pow2 != size:
        logger.warning("%s=%d is not a power of two, using %d", name, size, pow2)
    return pow2


def _worker_count(name: str, value: int, cap: int) -> int:
    requested = _clamp(name, int(value), 1, cap)
    # core count bound applies without a warning
    return max(1, min(requested, os.cpu_count() or 1))


@dataclass
class BpmConfig:
    """
    Parameters of the tempo pipeline.

    Attributes:
        max_analyze_seconds: Length of the PCM prefix that is analyzed.
        frame_size: STFT frame length (power of two).
        hop_size: STFT hop length in samples.
        bpm_min: Lower edge of the tempo search range.
        bpm_max: Upper edge of the tempo search range.
        engine: ``"v2"`` (tempogram + HPS) or ``"baseline"``
            (four-ODF bank + comb filter).
        workers: Upper bound on the STFT worker pool.
    """

    max_analyze_seconds: float = 120.0
    frame_size: int = 2048
    hop_size: int = 256
    bpm_min: float = 60.0
    bpm_max: float = 180.0
    engine: str = "v2"
    workers: int = 8

    def __post_init__(self):
        self.max_analyze_seconds = _clamp(
            "max_analyze_seconds", float(self.max_analyze_seconds), 1.0, float("inf")
        )
        self.frame_size = _frame_size("frame_size", self.frame_size)
        self.hop_size = _clamp("hop_size", int(self.hop_size), 1, self.frame_size)

        low = _clamp("bpm_min", float(self.bpm_min), SANE_BPM_MIN, SANE_BPM_MAX)
        high = _clamp("bpm_max", float(self.bpm_max), SANE_BPM_MIN, SANE_BPM_MAX)
        if low > high:
            logger.warning("bpm_min > bpm_max, swapping (%s, %s)", low, high)
            low, high = high, low
        if high - low < 1.0:
            high = min(SANE_BPM_MAX, low + 1.0)
            low = high - 1.0
        self.bpm_min = low
        self.bpm_max = high

        if self.engine not in ENGINES:
            logger.warning("unknown engine %r, falling back to 'v2'", self.engine)
            self.engine = "v2"
        self.workers = _worker_count("workers", self.workers, 8)


@dataclass
class KeyConfig:
    """
    Parameters of the key pipeline.

    Attributes:
        max_analyze_seconds: Length of the PCM prefix that is analyzed.
        frame_size: Frame length for spectral peak picking (power of two).
        hop_size: Hop between frames in samples.
        hpcp_bins: HPCP resolution before folding (multiple of 12).
        min_freq_hz: Lowest spectral peak kept.
        max_freq_hz: Highest spectral peak kept.
        max_peaks: Peaks kept per frame, strongest first.
        harmonics: Harmonics each peak contributes to.
        harmonic_decay: Exponent of the ``1/h**decay`` harmonic weight.
        window_semitones: Full width of the cosine spreading bell.
        tuning_frames: Frames inspected by the tuning estimator.
        workers: Size of the HPCP worker pool.
    """

    max_analyze_seconds: float = 120.0
    frame_size: int = 4096
    hop_size: int = 2048
    hpcp_bins: int = 36
    min_freq_hz: float = 80.0
    max_freq_hz: float = 5000.0
    max_peaks: int = 80
    harmonics: int = 8
    harmonic_decay: float = 1.0
    window_semitones: float = 1.0
    tuning_frames: int = 20
    workers: int = 6

    def __post_init__(self):
        self.max_analyze_seconds = _clamp(
            "max_analyze_seconds", float(self.max_analyze_seconds), 1.0, float("inf")
        )
        self.frame_size = _frame_size("frame_size", self.frame_size)
        self.hop_size = _clamp("hop_size", int(self.hop_size), 1, self.frame_size)

        bins = _clamp("hpcp_bins", int(self.hpcp_bins), 12, 120)
        rounded = max(12, int(round(bins / 12.0)) * 12)
        if rounded != bins:
            logger.warning("hpcp_bins=%d is not a multiple of 12, using %d", bins, rounded)
        self.hpcp_bins = rounded

        self.min_freq_hz = _clamp("min_freq_hz", float(self.min_freq_hz), 1.0, 20000.0)
        self.max_freq_hz = _clamp(
            "max_freq_hz", float(self.max_freq_hz), self.min_freq_hz, 24000.0
        )
        self.max_peaks = _clamp("max_peaks", int(self.max_peaks), 1, 1000)
        self.harmonics = _clamp("harmonics", int(self.harmonics), 1, 16)
        self.harmonic_decay = _clamp("harmonic_decay", float(self.harmonic_decay), 0.0, 4.0)
        self.window_semitones = _clamp(
            "window_semitones", float(self.window_semitones), 0.1, 6.0
        )
        self.tuning_frames = _clamp("tuning_frames", int(self.tuning_frames), 1, 1000)
        self.workers = _worker_count("workers", self.workers, 6)
