"""
Key detection.

``KeyAnalyzer`` turns PCM into a 12-bin chroma vector (tuning estimate,
frame-parallel HPCP accumulation, folding, contrast boost) and
``match_key`` classifies it with Krumhansl-Kessler key profiles.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from tempokey.config import KeyConfig
from tempokey.core.buffer import PcmBuffer, frame_count
from tempokey.core.hpcp import (
    STANDARD_A4_HZ,
    HpcpConfig,
    compute_hpcp,
    contrast_boost,
    estimate_reference_pitch,
    fold_to_12,
)
from tempokey.core.parallel import fork_join, timed
from tempokey.core.peaks import spectral_peaks
from tempokey.core.spectrum import FFT

logger = logging.getLogger(__name__)

# Krumhansl-Kessler probe-tone profiles, tonic first
MAJOR_PROFILE = np.array(
    [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
)
MINOR_PROFILE = np.array(
    [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
)

NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
CAMELOT_MAJOR = ["8B", "3B", "10B", "5B", "12B", "7B", "2B", "9B", "4B", "11B", "6B", "1B"]
CAMELOT_MINOR = ["5A", "12A", "7A", "2A", "9A", "4A", "11A", "6A", "1A", "8A", "3A", "10A"]

UNKNOWN_KEY = "Unknown"
UNKNOWN_CAMELOT = "--"


@dataclass(frozen=True)
class KeyMatch:
    """Classifier output for one chroma vector."""

    key: str
    camelot: str
    is_minor: bool
    confidence: float
    tonic_index: int


@dataclass
class KeyResult:
    """Key of a track (or the unknown sentinel)."""

    key: str
    camelot: str
    confidence: float
    analyzed_seconds: int
    is_minor: Optional[bool] = None
    tonic_index: Optional[int] = None
    reference_a4_hz: Optional[float] = None
    chroma: np.ndarray = field(default_factory=lambda: np.zeros(12))

    @property
    def is_unknown(self) -> bool:
        return self.key == UNKNOWN_KEY


def _best_rotation(chroma: np.ndarray, profile: np.ndarray) -> Tuple[int, float]:
    # rotation r pairs chroma[i] with profile[(i + r) % 12]; tonic is (12 - r) % 12
    best_idx = 0
    best_score = float("-inf")
    for r in range(12):
        score = float(np.dot(chroma, np.roll(profile, -r)))
        if score > best_score:
            best_score = score
            best_idx = (12 - r) % 12
    return best_idx, best_score


def match_key(hpcp12: np.ndarray) -> KeyMatch:
    """
    Classify a 12-bin chroma vector.

    The vector is normalized to sum 1, then dot-producted against every
    rotation of the major and minor profiles. Minor wins only if its best
    score is strictly higher.

    Confidence is ``|major - minor| / (major + minor + 1e-9)`` clamped to
    [0, 1]: it measures how clearly one mode wins, not whether the tonic
    is right.

    Raises:
        ValueError: If the input does not hold exactly 12 values.
    """
    x = np.asarray(hpcp12, dtype=np.float64)
    if x.shape != (12,):
        raise ValueError(f"chroma must have shape (12,), got {x.shape}")
    total = x.sum()
    if total > 1e-9:
        x = x / total

    major_idx, major_score = _best_rotation(x, MAJOR_PROFILE)
    minor_idx, minor_score = _best_rotation(x, MINOR_PROFILE)
    is_minor = minor_score > major_score
    idx = minor_idx if is_minor else major_idx

    name = NOTE_NAMES[idx] + (" minor" if is_minor else " major")
    camelot = CAMELOT_MINOR[idx] if is_minor else CAMELOT_MAJOR[idx]
    confidence = abs(major_score - minor_score) / (major_score + minor_score + 1e-9)
    return KeyMatch(
        key=name,
        camelot=camelot,
        is_minor=is_minor,
        confidence=float(np.clip(confidence, 0.0, 1.0)),
        tonic_index=idx,
    )


class KeyAnalyzer:
    """
    Estimates the musical key of a PCM buffer.

    Stateless apart from its configuration; safe to share between threads.
    """

    def __init__(self, config: Optional[KeyConfig] = None):
        self.config = config or KeyConfig()

    def _frame_peaks(self, samples: np.ndarray, sample_rate: int, index: int, transform: FFT):
        cfg = self.config
        start = index * cfg.hop_size
        return spectral_peaks(
            samples[start:start + cfg.frame_size],
            sample_rate,
            min_freq_hz=cfg.min_freq_hz,
            max_freq_hz=cfg.max_freq_hz,
            max_peaks=cfg.max_peaks,
            transform=transform,
        )

    def estimate_tuning(self, samples: np.ndarray, sample_rate: int, n_frames: int) -> float:
        """Reference A4 from the peaks of the first ``tuning_frames`` frames."""
        transform = FFT(self.config.frame_size)
        count = min(n_frames, self.config.tuning_frames)
        peak_lists = [
            self._frame_peaks(samples, sample_rate, i, transform) for i in range(count)
        ]
        return estimate_reference_pitch(peak_lists)

    def chroma(self, pcm: PcmBuffer) -> Tuple[np.ndarray, float, int]:
        """
        Pooled 12-bin chroma of a buffer.

        Returns:
            ``(chroma12, reference_a4_hz, n_frames)``. The chroma is all
            zeros when no frame holds a spectral peak.
        """
        cfg = self.config
        samples = pcm.samples
        sr = pcm.sample_rate
        n_frames = frame_count(len(samples), cfg.frame_size, cfg.hop_size)
        if n_frames == 0:
            return np.zeros(12), STANDARD_A4_HZ, 0

        with timed("key.tuning"):
            reference = self.estimate_tuning(samples, sr, n_frames)
        hpcp_config = HpcpConfig(
            bins=cfg.hpcp_bins,
            reference_a4_hz=reference,
            harmonics=cfg.harmonics,
            harmonic_decay=cfg.harmonic_decay,
            window_semitones=cfg.window_semitones,
        )

        def task(indices: np.ndarray) -> np.ndarray:
            transform = FFT(cfg.frame_size)
            acc = np.zeros(cfg.hpcp_bins, dtype=np.float64)
            for i in indices:
                acc += compute_hpcp(self._frame_peaks(samples, sr, int(i), transform), hpcp_config)
            return acc

        with timed("key.hpcp"):
            partials = fork_join(n_frames, cfg.workers, task)
        pooled = np.sum(partials, axis=0) / n_frames
        max_val = pooled.max()
        if max_val <= 0.0:
            return np.zeros(12), reference, n_frames
        pooled = pooled / max_val

        return contrast_boost(fold_to_12(pooled)), reference, n_frames

    def analyze(self, pcm: PcmBuffer) -> KeyResult:
        """
        Detect the key of (at most ``max_analyze_seconds`` of) a buffer.

        Args:
            pcm: Mono PCM buffer.

        Returns:
            KeyResult. Buffers shorter than one frame or without tonal
            content give ``"Unknown"`` / ``"--"`` with zero confidence.
        """
        data = pcm.prefix(self.config.max_analyze_seconds)
        analyzed_seconds = data.n_samples // data.sample_rate

        chroma, reference, n_frames = self.chroma(data)
        if n_frames == 0:
            logger.warning("key analysis: input shorter than one frame")
            return KeyResult(UNKNOWN_KEY, UNKNOWN_CAMELOT, 0.0, analyzed_seconds)
        if not np.any(chroma > 0.0):
            logger.warning("key analysis: no tonal content in %d frames", n_frames)
            return KeyResult(
                UNKNOWN_KEY, UNKNOWN_CAMELOT, 0.0, analyzed_seconds, reference_a4_hz=reference
            )

        match = match_key(chroma)
        logger.info(
            "key: %s (%s), confidence %.3f, A4=%.2f Hz, %d s",
            match.key, match.camelot, match.confidence, reference, analyzed_seconds,
        )
        return KeyResult(
            key=match.key,
            camelot=match.camelot,
            confidence=match.confidence,
            analyzed_seconds=analyzed_seconds,
            is_minor=match.is_minor,
            tonic_index=match.tonic_index,
            reference_a4_hz=reference,
            chroma=chroma,
        )
